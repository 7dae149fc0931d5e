"""Application-level exception types for triage."""

from __future__ import annotations


class TriageError(Exception):
    """Base exception for triage."""


class ConfigurationError(TriageError):
    """Base exception for configuration and startup validation errors."""


class ChunkStoreError(ConfigurationError):
    """Raised when the runbook chunk store cannot be loaded."""


class ToolExecutionError(TriageError):
    """Raised by tool handlers for expected, reportable failures."""


class UnknownToolError(ToolExecutionError):
    """Raised when a tool name is not registered."""


class TurnLimitExceeded(TriageError):
    """Raised when a ticket does not reach a final answer within the turn budget."""

    def __init__(self, ticket_id: str, max_turns: int) -> None:
        super().__init__(f"ticket {ticket_id} reached max_turns={max_turns} without a final answer")
        self.ticket_id = ticket_id
        self.max_turns = max_turns


class TransientLLMError(TriageError):
    """Raised when the language model call times out or fails; the ticket may be retried."""

    retryable = True


class TicketCancelledError(TriageError):
    """Raised when processing stops on an external cancellation signal."""


class MalformedTranscriptError(TriageError, AssertionError):
    """Raised when a transcript would break tool use/result pairing."""
