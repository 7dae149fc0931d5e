from __future__ import annotations

import pytest

from triage.retrieval import KeywordEmbedder, RetrievalIndex
from triage.types import RunbookChunk


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def peaked_chunks(embedder: KeywordEmbedder) -> list[RunbookChunk]:
    specs = [
        ("net-vpn", "network", "Reconnect the VPN client to the nearest gateway."),
        ("net-wifi", "network", "Renew the DHCP lease on the office wifi."),
        ("acc-lockout", "access", "Unlock the directory account and reset the password."),
        ("hw-battery", "hardware", "Run the battery diagnostic and swap the charger."),
        ("sw-install", "software", "Clear the installer cache and retry."),
        ("mail-sync", "email", "Rebuild the Outlook profile."),
    ]
    return [
        RunbookChunk(id=chunk_id, category=category, text=text, embedding=embedder.peaked(category))
        for chunk_id, category, text in specs
    ]


@pytest.fixture
def index(peaked_chunks: list[RunbookChunk], embedder: KeywordEmbedder) -> RetrievalIndex:
    return RetrievalIndex(peaked_chunks, embedder)
