"""Triage - IT helpdesk tickets, answered from runbooks."""

from triage.conversation import ConversationEngine, HistoryPruner, Transcript
from triage.retrieval import KeywordEmbedder, RetrievalIndex
from triage.tools import ToolDispatcher, ToolRegistry
from triage.types import FinalAnswer, Ticket

__version__ = "0.1.0"

__all__ = [
    "ConversationEngine",
    "FinalAnswer",
    "HistoryPruner",
    "KeywordEmbedder",
    "RetrievalIndex",
    "Ticket",
    "ToolDispatcher",
    "ToolRegistry",
    "Transcript",
]
