"""Per-ticket conversation loop."""

from __future__ import annotations

import asyncio
from typing import Protocol

from loguru import logger

from triage.conversation.disposition import parse_disposition
from triage.conversation.pruner import HistoryPruner
from triage.conversation.transcript import Transcript, validate_pairing
from triage.errors import TicketCancelledError, TransientLLMError, TurnLimitExceeded
from triage.logging_utils import bind_ticket
from triage.tools.dispatcher import ToolDispatcher
from triage.types import FinalAnswer, Ticket, Turn


class LanguageModel(Protocol):
    """Language capability: returns the next assistant turn for a transcript."""

    async def request(self, transcript: Transcript) -> Turn: ...


class ConversationEngine:
    """Drives one ticket from the first model call to a final answer.

    An engine owns its transcript for exactly one `process_ticket` call and
    shares no mutable state with other engines, so a batch driver can run
    many of them side by side.
    """

    def __init__(
        self,
        *,
        model: LanguageModel,
        dispatcher: ToolDispatcher,
        system_prompt: str,
        max_turns: int,
        history_max_turns: int,
        pruner: HistoryPruner,
        llm_timeout_seconds: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        if max_turns < 1:
            raise ValueError(f"max_turns must be >= 1, got {max_turns}")
        self._model = model
        self._dispatcher = dispatcher
        self._system_prompt = system_prompt.strip()
        self._max_turns = max_turns
        self._history_max_turns = history_max_turns
        self._pruner = pruner
        self._llm_timeout_seconds = llm_timeout_seconds
        self._cancel_event = cancel_event
        self._transcript: Transcript | None = None

    @property
    def transcript(self) -> Transcript | None:
        """Transcript of the ticket in progress, or of the last completed one."""
        return self._transcript

    async def process_ticket(self, ticket: Ticket) -> FinalAnswer:
        with bind_ticket(ticket.id):
            transcript = Transcript([Turn.system(self._system_prompt), Turn.user(ticket.text)])
            self._transcript = transcript
            logger.info("engine.ticket.start ticket={} max_turns={}", ticket.id, self._max_turns)
            try:
                return await self._run(ticket, transcript)
            except TicketCancelledError:
                self._transcript = None
                raise

    async def _run(self, ticket: Ticket, transcript: Transcript) -> FinalAnswer:
        for turn_no in range(1, self._max_turns + 1):
            self._check_cancelled(ticket)
            self._maybe_prune(transcript)

            logger.info("engine.turn.start ticket={} turn={} transcript={}", ticket.id, turn_no, len(transcript))
            assistant_turn = await self._request(ticket, transcript)
            transcript.append(assistant_turn)

            tool_uses = assistant_turn.tool_uses
            if not tool_uses:
                text = assistant_turn.text
                logger.info("engine.ticket.finish ticket={} turns={}", ticket.id, turn_no)
                return FinalAnswer(
                    ticket_id=ticket.id,
                    text=text,
                    disposition=parse_disposition(text),
                    turns=turn_no,
                )

            logger.info(
                "engine.turn.tools ticket={} turn={} tools={}",
                ticket.id,
                turn_no,
                [tool_use.name for tool_use in tool_uses],
            )
            results = await self._dispatcher.dispatch_all(tool_uses)
            transcript.append(Turn.results(results))

        logger.warning("engine.ticket.turn_limit ticket={} max_turns={}", ticket.id, self._max_turns)
        raise TurnLimitExceeded(ticket.id, self._max_turns)

    async def _request(self, ticket: Ticket, transcript: Transcript) -> Turn:
        try:
            async with asyncio.timeout(self._llm_timeout_seconds):
                turn = await self._model.request(transcript)
        except TimeoutError as exc:
            raise TransientLLMError(
                f"model_timeout: no response within {self._llm_timeout_seconds}s for ticket {ticket.id}"
            ) from exc
        except TransientLLMError:
            raise
        except Exception as exc:
            logger.exception("engine.model.error ticket={}", ticket.id)
            raise TransientLLMError(f"model_call_error: {exc!s}") from exc

        if turn.role != "assistant":
            raise TransientLLMError(f"model returned a {turn.role} turn instead of an assistant turn")
        _check_model_turn(turn)
        return turn

    def _maybe_prune(self, transcript: Transcript) -> None:
        if len(transcript) <= self._history_max_turns:
            return
        before = len(transcript)
        pruned = self._pruner.prune(transcript.turns)
        validate_pairing(pruned)
        transcript.replace(pruned)
        logger.info("engine.history.pruned before={} after={}", before, len(transcript))

    def _check_cancelled(self, ticket: Ticket) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            logger.info("engine.ticket.cancelled ticket={}", ticket.id)
            raise TicketCancelledError(f"ticket {ticket.id} cancelled")


def _check_model_turn(turn: Turn) -> None:
    """Reject provider output that could never be paired with results."""
    if turn.tool_results:
        raise TransientLLMError("invalid model response: assistant turn carries tool results")
    ids = [use.id for use in turn.tool_uses]
    duplicates = sorted({tool_use_id for tool_use_id in ids if ids.count(tool_use_id) > 1})
    if duplicates:
        raise TransientLLMError(f"invalid model response: duplicate tool_use ids {duplicates}")