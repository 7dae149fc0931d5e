from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from triage.conversation.transcript import Transcript
from triage.types import Turn


@dataclass
class ScriptedModel:
    """Language model fake that replays assistant turns and records what it saw."""

    turns: list[Turn | Callable[[Transcript], Turn]]
    seen: list[tuple[Turn, ...]] = field(default_factory=list)

    async def request(self, transcript: Transcript) -> Turn:
        self.seen.append(transcript.turns)
        if not self.turns:
            raise AssertionError("model called more times than scripted")
        step = self.turns.pop(0)
        if callable(step):
            return step(transcript)
        return step
