"""Embedding capability used by the runbook index."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

WORD_PATTERN = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")

DEFAULT_CATEGORY_KEYWORDS: dict[str, frozenset[str]] = {
    "network": frozenset({
        "vpn", "wifi", "wi-fi", "wireless", "network", "dns", "dhcp", "proxy", "firewall",
        "ethernet", "router", "latency", "disconnecting", "disconnects", "disconnected", "ip",
    }),
    "access": frozenset({
        "password", "login", "logon", "locked", "lockout", "mfa", "2fa", "sso", "account",
        "permission", "permissions", "access", "credentials", "reset",
    }),
    "hardware": frozenset({
        "laptop", "monitor", "keyboard", "mouse", "printer", "battery", "dock", "docking",
        "screen", "charger", "headset", "webcam", "overheating",
    }),
    "software": frozenset({
        "install", "installation", "update", "upgrade", "license", "crash", "crashes",
        "application", "app", "excel", "word", "teams", "zoom", "freezes",
    }),
    "email": frozenset({
        "email", "e-mail", "outlook", "mailbox", "inbox", "calendar", "smtp", "exchange",
        "attachment", "spam", "phishing",
    }),
}

PEAK_WEIGHT = 1.0
BASE_WEIGHT = 0.1


@runtime_checkable
class Embedder(Protocol):
    """Maps text to a vector in the same space as the stored chunk embeddings."""

    @property
    def dimension(self) -> int: ...

    def embed(self, text: str) -> tuple[float, ...]: ...


class KeywordEmbedder:
    """Deterministic category-peaked embedder.

    Each category owns one axis. Keyword hits add `PEAK_WEIGHT` to their
    category axis on top of a `BASE_WEIGHT` floor, and the vector is normalized.
    Text without any keyword maps to the uniform vector, which stays well below
    typical relevance thresholds against every peaked vector.
    """

    def __init__(self, keywords: Mapping[str, frozenset[str]] | None = None) -> None:
        source = DEFAULT_CATEGORY_KEYWORDS if keywords is None else keywords
        if not source:
            raise ValueError("KeywordEmbedder needs at least one category")
        self._categories = tuple(source)
        self._keywords = {category: frozenset(word.casefold() for word in words) for category, words in source.items()}

    @property
    def dimension(self) -> int:
        return len(self._categories)

    @property
    def categories(self) -> tuple[str, ...]:
        return self._categories

    def category_hits(self, text: str) -> dict[str, int]:
        words = WORD_PATTERN.findall(text.casefold())
        hits: dict[str, int] = {}
        for category in self._categories:
            count = sum(1 for word in words if word in self._keywords[category])
            if count:
                hits[category] = count
        return hits

    def embed(self, text: str) -> tuple[float, ...]:
        hits = self.category_hits(text)
        if not hits:
            return _normalize([1.0] * self.dimension)
        return _normalize([BASE_WEIGHT + PEAK_WEIGHT * hits.get(category, 0) for category in self._categories])

    def peaked(self, category: str) -> tuple[float, ...]:
        """Embedding of a text that hits exactly one keyword of `category`."""
        if category not in self._keywords:
            raise KeyError(category)
        return _normalize([
            BASE_WEIGHT + (PEAK_WEIGHT if name == category else 0.0) for name in self._categories
        ])


def _normalize(values: list[float]) -> tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in values))
    if norm == 0:
        return tuple(values)
    return tuple(value / norm for value in values)
