"""Per-ticket transcript that enforces tool use/result pairing."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from triage.errors import MalformedTranscriptError
from triage.types import Turn


def _advance(pending: tuple[str, ...], turn: Turn, index: int) -> tuple[str, ...]:
    """Check `turn` against the tool uses still awaiting results and return the new pending ids."""

    results = turn.tool_results
    uses = turn.tool_uses

    if uses and turn.role != "assistant":
        raise MalformedTranscriptError(f"turn {index}: tool_use blocks are only allowed in assistant turns")
    if results and turn.role != "user":
        raise MalformedTranscriptError(f"turn {index}: tool_result blocks are only allowed in user turns")

    if pending:
        if turn.role != "user" or not results:
            raise MalformedTranscriptError(
                f"turn {index}: expected tool results for {list(pending)} before a new {turn.role} turn"
            )
        result_ids = [result.tool_use_id for result in results]
        if len(result_ids) != len(set(result_ids)):
            raise MalformedTranscriptError(f"turn {index}: duplicate tool_use_id in results {result_ids}")
        if set(result_ids) != set(pending):
            missing = sorted(set(pending) - set(result_ids))
            extra = sorted(set(result_ids) - set(pending))
            raise MalformedTranscriptError(f"turn {index}: tool results mismatch missing={missing} extra={extra}")
    elif results:
        orphaned = [result.tool_use_id for result in results]
        raise MalformedTranscriptError(f"turn {index}: tool results {orphaned} have no preceding tool_use")

    if not uses:
        return ()
    use_ids = tuple(use.id for use in uses)
    if len(use_ids) != len(set(use_ids)):
        raise MalformedTranscriptError(f"turn {index}: duplicate tool_use id in {list(use_ids)}")
    return use_ids


def validate_pairing(turns: Sequence[Turn], *, allow_open: bool = False) -> None:
    """Raise MalformedTranscriptError unless every tool use is answered by the next turn.

    With ``allow_open`` a trailing assistant turn may still be waiting for its results.
    """

    pending: tuple[str, ...] = ()
    for index, turn in enumerate(turns):
        pending = _advance(pending, turn, index)
    if pending and not allow_open:
        raise MalformedTranscriptError(f"transcript ends with unanswered tool uses {list(pending)}")


class Transcript:
    """Ordered turns of one ticket; rejects any append that would break pairing."""

    def __init__(self, turns: Iterable[Turn] = ()) -> None:
        self._turns: list[Turn] = []
        self._pending: tuple[str, ...] = ()
        for turn in turns:
            self.append(turn)

    def append(self, turn: Turn) -> None:
        self._pending = _advance(self._pending, turn, len(self._turns))
        self._turns.append(turn)

    def replace(self, turns: Sequence[Turn]) -> None:
        """Swap in a new turn list (e.g. pruned history) after validating it."""
        pending: tuple[str, ...] = ()
        for index, turn in enumerate(turns):
            pending = _advance(pending, turn, index)
        self._turns = list(turns)
        self._pending = pending

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def pending_tool_uses(self) -> tuple[str, ...]:
        return self._pending

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]
