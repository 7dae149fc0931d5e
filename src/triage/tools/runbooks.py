"""Runbook-backed tools."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from triage.errors import ToolExecutionError
from triage.retrieval.index import RetrievalIndex
from triage.tools.registry import ToolRegistry

NO_MATCH_NOTE = "No sufficiently relevant runbook found. Answer from general knowledge or escalate."
SNIPPET_CHARS = 600


class SearchRunbooksInput(BaseModel):
    """Search the runbook knowledge base."""

    query: str = Field(..., description="Symptom or question to look up")
    top_k: int | None = Field(default=None, ge=1, le=20, description="Maximum number of chunks to return")


class GetRunbookInput(BaseModel):
    chunk_id: str = Field(..., description="Id of a chunk returned by search_runbooks")


class EmptyInput(BaseModel):
    pass


def register_runbook_tools(
    registry: ToolRegistry,
    index: RetrievalIndex,
    *,
    default_top_k: int,
    default_threshold: float,
) -> None:
    """Register search_runbooks, get_runbook and list_runbook_categories."""

    @registry.register(
        name="search_runbooks",
        description="Search IT runbooks by similarity; returns matching chunks or a no-match note.",
        input_model=SearchRunbooksInput,
    )
    def search_runbooks(params: SearchRunbooksInput) -> dict[str, Any]:
        query = params.query.strip()
        if not query:
            raise ToolExecutionError("query must not be empty")
        top_k = params.top_k if params.top_k is not None else default_top_k
        matches = index.retrieve_chunks(query, top_k=top_k, threshold=default_threshold)
        if not matches:
            # no match is a normal result
            return {"query": query, "matches": [], "note": NO_MATCH_NOTE}
        return {
            "query": query,
            "matches": [
                {
                    "id": match.chunk.id,
                    "category": match.chunk.category,
                    "score": round(match.score, 4),
                    "text": match.chunk.text[:SNIPPET_CHARS],
                }
                for match in matches
            ],
        }

    @registry.register(
        name="get_runbook",
        description="Read the full text of one runbook chunk by id.",
        input_model=GetRunbookInput,
    )
    def get_runbook(params: GetRunbookInput) -> dict[str, Any]:
        chunk = index.get(params.chunk_id)
        if chunk is None:
            raise ToolExecutionError(f"no runbook chunk with id {params.chunk_id!r}")
        return {"id": chunk.id, "category": chunk.category, "text": chunk.text}

    @registry.register(
        name="list_runbook_categories",
        description="List the runbook categories available in the knowledge base.",
        input_model=EmptyInput,
    )
    def list_runbook_categories(_params: EmptyInput) -> dict[str, Any]:
        return {"categories": index.categories}
