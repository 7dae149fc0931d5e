"""Batch driver: one fresh engine per ticket."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from triage.conversation.engine import ConversationEngine
from triage.errors import ConfigurationError, TicketCancelledError, TransientLLMError, TurnLimitExceeded
from triage.types import FinalAnswer, Ticket

OutcomeStatus = Literal["ok", "failed", "retryable", "cancelled"]
EngineFactory = Callable[[asyncio.Event | None], ConversationEngine]


class TicketRecord(BaseModel):
    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


@dataclass(frozen=True)
class TicketOutcome:
    """Result of one ticket: a final answer or the error that ended it."""

    ticket_id: str
    status: OutcomeStatus
    answer: FinalAnswer | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ticket_id": self.ticket_id, "status": self.status}
        if self.answer is not None:
            payload["answer"] = self.answer.text
            payload["turns"] = self.answer.turns
            payload["disposition"] = (
                self.answer.disposition.model_dump() if self.answer.disposition is not None else None
            )
        if self.error is not None:
            payload["error"] = self.error
        return payload


def load_tickets(path: Path | str) -> list[Ticket]:
    """Load `{id, text}` tickets from a JSONL file."""

    resolved = Path(path)
    try:
        lines = resolved.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ConfigurationError(f"cannot read tickets file {resolved}: {exc}") from exc

    tickets: list[Ticket] = []
    for line_no, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = TicketRecord.model_validate(json.loads(line))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(f"{resolved}:{line_no}: invalid ticket: {exc}") from exc
        tickets.append(Ticket(id=record.id, text=record.text))
    return tickets


async def process_one(
    ticket: Ticket,
    engine_factory: EngineFactory,
    cancel_event: asyncio.Event | None = None,
) -> TicketOutcome:
    engine = engine_factory(cancel_event)
    try:
        answer = await engine.process_ticket(ticket)
    except TurnLimitExceeded as exc:
        return TicketOutcome(ticket_id=ticket.id, status="failed", error=str(exc))
    except TransientLLMError as exc:
        return TicketOutcome(ticket_id=ticket.id, status="retryable", error=str(exc))
    except TicketCancelledError as exc:
        return TicketOutcome(ticket_id=ticket.id, status="cancelled", error=str(exc))
    return TicketOutcome(ticket_id=ticket.id, status="ok", answer=answer)


async def run_batch(
    tickets: Sequence[Ticket],
    engine_factory: EngineFactory,
    *,
    max_concurrency: int = 4,
    cancel_event: asyncio.Event | None = None,
) -> list[TicketOutcome]:
    """Process tickets in parallel, at most `max_concurrency` at a time; outcomes keep input order.

    Setting `cancel_event` stops every unfinished ticket at its next turn boundary.
    """

    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
    semaphore = asyncio.Semaphore(max_concurrency)

    async def _guarded(ticket: Ticket) -> TicketOutcome:
        async with semaphore:
            return await process_one(ticket, engine_factory, cancel_event)

    outcomes = await asyncio.gather(*(_guarded(ticket) for ticket in tickets))
    logger.info(
        "batch.finish tickets={} ok={} failed={}",
        len(outcomes),
        sum(1 for outcome in outcomes if outcome.status == "ok"),
        sum(1 for outcome in outcomes if outcome.status != "ok"),
    )
    return list(outcomes)
