"""Runbook retrieval."""

from triage.retrieval.embedder import Embedder, KeywordEmbedder
from triage.retrieval.index import RetrievalIndex
from triage.retrieval.store import build_chunks, load_chunks

__all__ = ["Embedder", "KeywordEmbedder", "RetrievalIndex", "build_chunks", "load_chunks"]
