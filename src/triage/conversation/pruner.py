"""Boundary-aware history pruning."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from triage.conversation.transcript import validate_pairing
from triage.types import Turn


def _units(turns: Sequence[Turn]) -> list[list[Turn]]:
    """Group turns so that a tool_use turn and its result turn form one unit."""

    units: list[list[Turn]] = []
    index = 0
    while index < len(turns):
        turn = turns[index]
        if turn.tool_uses and index + 1 < len(turns):
            units.append([turn, turns[index + 1]])
            index += 2
            continue
        units.append([turn])
        index += 1
    return units


def prune(turns: Sequence[Turn], target_size: int) -> list[Turn]:
    """Drop the oldest turns until the transcript is at most `target_size` long where possible.

    The leading system turn is always kept and a tool use is never separated
    from its results. When the target falls inside such a pair the pair is kept,
    so the output may be slightly longer than `target_size`.
    """

    if target_size < 1:
        raise ValueError(f"target_size must be >= 1, got {target_size}")
    validate_pairing(turns, allow_open=True)
    if len(turns) <= target_size:
        return list(turns)

    head: list[Turn] = []
    body = list(turns)
    if body and body[0].role == "system":
        head = [body.pop(0)]

    units = _units(body)
    remaining = len(head) + len(body)
    dropped = 0
    while units and remaining - len(units[0]) >= target_size:
        remaining -= len(units[0])
        dropped += len(units.pop(0))

    pruned = head + [turn for unit in units for turn in unit]
    validate_pairing(pruned, allow_open=True)
    logger.debug("history.prune input={} target={} output={} dropped={}", len(turns), target_size, len(pruned), dropped)
    return pruned


class HistoryPruner:
    """Keeps a transcript near a configured size."""

    def __init__(self, target_size: int) -> None:
        if target_size < 1:
            raise ValueError(f"target_size must be >= 1, got {target_size}")
        self.target_size = target_size

    def prune(self, turns: Sequence[Turn], target_size: int | None = None) -> list[Turn]:
        return prune(turns, self.target_size if target_size is None else target_size)
