"""Conversation and knowledge-base value types."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["system", "assistant", "user"]


@dataclass(frozen=True)
class Ticket:
    """One helpdesk ticket handed to the engine."""

    id: str
    text: str


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolUse:
    """Tool invocation requested by the assistant."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """Tool outcome referencing the ToolUse it answers."""

    tool_use_id: str
    output: str
    is_error: bool = False


Block = TextBlock | ToolUse | ToolResult


@dataclass(frozen=True)
class Turn:
    """One role-tagged message holding an ordered sequence of blocks."""

    role: Role
    blocks: tuple[Block, ...] = ()

    @classmethod
    def system(cls, text: str) -> Turn:
        return cls(role="system", blocks=(TextBlock(text),))

    @classmethod
    def user(cls, text: str) -> Turn:
        return cls(role="user", blocks=(TextBlock(text),))

    @classmethod
    def assistant(cls, *blocks: Block) -> Turn:
        return cls(role="assistant", blocks=tuple(blocks))

    @classmethod
    def results(cls, results: Iterable[ToolResult]) -> Turn:
        return cls(role="user", blocks=tuple(results))

    @property
    def tool_uses(self) -> list[ToolUse]:
        return [block for block in self.blocks if isinstance(block, ToolUse)]

    @property
    def tool_results(self) -> list[ToolResult]:
        return [block for block in self.blocks if isinstance(block, ToolResult)]

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.blocks if isinstance(block, TextBlock)).strip()


@dataclass(frozen=True)
class RunbookChunk:
    """A unit of runbook text with its precomputed embedding."""

    id: str
    category: str
    text: str
    embedding: tuple[float, ...]


@dataclass(frozen=True)
class ScoredChunk:
    chunk: RunbookChunk
    score: float


class Disposition(BaseModel):
    """Structured triage outcome the assistant may attach to its final answer."""

    category: str | None = Field(default=None, description="Runbook category the ticket belongs to")
    priority: str | None = Field(default=None, description="Suggested priority, e.g. P1-P4")
    escalate: bool = Field(default=False, description="Whether a human engineer must take over")
    summary: str | None = Field(default=None, description="One-line summary of the issue")


@dataclass(frozen=True)
class FinalAnswer:
    """Terminal result of one ticket."""

    ticket_id: str
    text: str
    disposition: Disposition | None = None
    turns: int = 0
