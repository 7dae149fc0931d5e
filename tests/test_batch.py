import asyncio
import json
from pathlib import Path

import pytest

from triage.batch import TicketOutcome, load_tickets, run_batch
from triage.conversation import ConversationEngine, HistoryPruner, Transcript
from triage.errors import ConfigurationError
from triage.retrieval import RetrievalIndex
from triage.tools import ToolDispatcher, ToolRegistry, register_runbook_tools
from triage.types import FinalAnswer, TextBlock, Ticket, ToolUse, Turn


class TicketAwareModel:
    """Answers based on the ticket text; tracks how many calls overlap."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def request(self, transcript: Transcript) -> Turn:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
        finally:
            self.active -= 1
        ticket = transcript[1].text
        if "loop" in ticket:
            return Turn.assistant(ToolUse(id=f"call-{len(transcript)}", name="list_runbook_categories"))
        if "garbled" in ticket:
            return Turn.assistant(ToolUse(id="dup", name="get_runbook"), ToolUse(id="dup", name="get_runbook"))
        if "flaky" in ticket:
            raise ConnectionError("provider unavailable")
        return Turn.assistant(TextBlock(f'Handled {ticket}.\n{{"category": "network", "priority": "P3"}}'))


def _factory(model: TicketAwareModel, index: RetrievalIndex):
    registry = ToolRegistry()
    register_runbook_tools(registry, index, default_top_k=3, default_threshold=0.85)

    def _new_engine(cancel_event: asyncio.Event | None = None) -> ConversationEngine:
        return ConversationEngine(
            model=model,
            dispatcher=ToolDispatcher(registry),
            system_prompt="sys",
            max_turns=3,
            history_max_turns=20,
            pruner=HistoryPruner(10),
            cancel_event=cancel_event,
        )

    return _new_engine


@pytest.mark.asyncio
async def test_run_batch_keeps_input_order_and_maps_failures(index: RetrievalIndex) -> None:
    model = TicketAwareModel()
    tickets = [
        Ticket(id="1", text="vpn down"),
        Ticket(id="2", text="loop forever"),
        Ticket(id="3", text="flaky provider"),
        Ticket(id="4", text="wifi slow"),
    ]

    outcomes = await run_batch(tickets, _factory(model, index), max_concurrency=2)

    assert [outcome.ticket_id for outcome in outcomes] == ["1", "2", "3", "4"]
    assert [outcome.status for outcome in outcomes] == ["ok", "failed", "retryable", "ok"]
    assert outcomes[0].answer is not None
    assert outcomes[0].answer.text.startswith("Handled vpn down")
    assert "max_turns=3" in (outcomes[1].error or "")
    assert "provider unavailable" in (outcomes[2].error or "")
    assert model.peak <= 2


@pytest.mark.asyncio
async def test_run_batch_reports_cancelled_tickets(index: RetrievalIndex) -> None:
    cancel = asyncio.Event()
    cancel.set()

    outcomes = await run_batch(
        [Ticket(id="1", text="vpn down"), Ticket(id="2", text="wifi slow")],
        _factory(TicketAwareModel(), index),
        cancel_event=cancel,
    )

    assert [outcome.status for outcome in outcomes] == ["cancelled", "cancelled"]


@pytest.mark.asyncio
async def test_run_batch_rejects_invalid_concurrency(index: RetrievalIndex) -> None:
    with pytest.raises(ValueError, match="max_concurrency"):
        await run_batch([], _factory(TicketAwareModel(), index), max_concurrency=0)


def test_outcome_to_dict() -> None:
    ok = TicketOutcome(ticket_id="1", status="ok", answer=FinalAnswer(ticket_id="1", text="done", turns=2))
    failed = TicketOutcome(ticket_id="2", status="failed", error="boom")

    assert ok.to_dict() == {"ticket_id": "1", "status": "ok", "answer": "done", "turns": 2, "disposition": None}
    assert failed.to_dict() == {"ticket_id": "2", "status": "failed", "error": "boom"}


def test_load_tickets(tmp_path: Path) -> None:
    path = tmp_path / "tickets.jsonl"
    path.write_text(
        json.dumps({"id": "T-1", "text": "VPN drops"}) + "\n\n" + json.dumps({"id": "T-2", "text": "Locked out"}) + "\n",
        encoding="utf-8",
    )

    assert load_tickets(path) == [Ticket(id="T-1", text="VPN drops"), Ticket(id="T-2", text="Locked out")]


def test_load_tickets_rejects_bad_lines(tmp_path: Path) -> None:
    path = tmp_path / "tickets.jsonl"
    path.write_text('{"id": "T-1"}\n', encoding="utf-8")

    with pytest.raises(ConfigurationError, match="tickets.jsonl:1"):
        load_tickets(path)

    with pytest.raises(ConfigurationError, match="cannot read"):
        load_tickets(tmp_path / "missing.jsonl")


@pytest.mark.asyncio
async def test_invalid_model_output_only_fails_its_own_ticket(index: RetrievalIndex) -> None:
    tickets = [Ticket(id="ok", text="vpn down"), Ticket(id="bad", text="garbled reply")]

    outcomes = await run_batch(tickets, _factory(TicketAwareModel(), index))

    assert [outcome.status for outcome in outcomes] == ["ok", "retryable"]
    assert "invalid model response" in (outcomes[1].error or "")
