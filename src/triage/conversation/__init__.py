"""Conversation state, pruning and the per-ticket engine."""

from triage.conversation.engine import ConversationEngine, LanguageModel
from triage.conversation.pruner import HistoryPruner, prune
from triage.conversation.transcript import Transcript, validate_pairing

__all__ = ["ConversationEngine", "HistoryPruner", "LanguageModel", "Transcript", "prune", "validate_pairing"]
