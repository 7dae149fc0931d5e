"""Application runtime: shared read-only resources plus per-ticket engines."""

from __future__ import annotations

import asyncio

from triage.config import Settings
from triage.conversation import ConversationEngine, HistoryPruner, LanguageModel
from triage.errors import ConfigurationError
from triage.retrieval import Embedder, KeywordEmbedder, RetrievalIndex, load_chunks
from triage.tools import ToolDispatcher, ToolRegistry, register_runbook_tools


class AppRuntime:
    """Holds what tickets may share (settings, runbook index, tool registry).

    Conversation state never lives here: `new_engine` hands out a fresh
    engine for every ticket.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        model: LanguageModel | None = None,
        index: RetrievalIndex | None = None,
        embedder: Embedder | None = None,
    ) -> None:
        self.settings = settings
        self.embedder = embedder or KeywordEmbedder()
        self.index = index or self._load_index()
        self.registry = ToolRegistry()
        register_runbook_tools(
            self.registry,
            self.index,
            default_top_k=settings.retrieval_top_k,
            default_threshold=settings.retrieval_threshold,
        )
        self._model = model

    def _load_index(self) -> RetrievalIndex:
        if self.settings.runbooks_path is None:
            raise ConfigurationError("Runbooks not configured. Set TRIAGE_RUNBOOKS_PATH or pass --runbooks.")
        return RetrievalIndex(load_chunks(self.settings.runbooks_path, self.embedder), self.embedder)

    @property
    def model(self) -> LanguageModel:
        if self._model is None:
            from triage.integrations.republic_client import RepublicLanguageModel, build_llm

            self._model = RepublicLanguageModel(
                build_llm(self.settings),
                tools=self.registry.model_tools(),
                max_tokens=self.settings.max_tokens,
            )
        return self._model

    def new_engine(self, cancel_event: asyncio.Event | None = None) -> ConversationEngine:
        settings = self.settings
        return ConversationEngine(
            model=self.model,
            dispatcher=ToolDispatcher(self.registry, timeout_seconds=settings.tool_timeout_seconds),
            system_prompt=settings.system_prompt,
            max_turns=settings.max_turns,
            history_max_turns=settings.history_max_turns,
            pruner=HistoryPruner(settings.history_target_turns),
            llm_timeout_seconds=settings.llm_timeout_seconds,
            cancel_event=cancel_event,
        )
