"""Runbook retrieval by cosine similarity."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from loguru import logger

from triage.retrieval.embedder import Embedder
from triage.types import RunbookChunk, ScoredChunk


class RetrievalIndex:
    """Read-only cosine index over runbook chunks.

    The chunk matrix is built once here and never mutated afterwards, so one
    index can serve any number of concurrent engines without locking.
    """

    def __init__(self, chunks: Sequence[RunbookChunk], embedder: Embedder) -> None:
        self._chunks: tuple[RunbookChunk, ...] = tuple(chunks)
        self._embedder = embedder
        self._dimension = embedder.dimension

        if self._chunks:
            matrix = np.asarray([chunk.embedding for chunk in self._chunks], dtype=np.float64)
            if matrix.ndim != 2 or matrix.shape[1] != self._dimension:
                raise ValueError(
                    f"chunk embeddings must have dimension {self._dimension}, got shape {matrix.shape}"
                )
        else:
            matrix = np.zeros((0, self._dimension), dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1)
        matrix.setflags(write=False)
        norms.setflags(write=False)
        self._matrix = matrix
        self._norms = norms

    @property
    def chunks(self) -> tuple[RunbookChunk, ...]:
        return self._chunks

    @property
    def categories(self) -> list[str]:
        return sorted({chunk.category for chunk in self._chunks})

    def get(self, chunk_id: str) -> RunbookChunk | None:
        for chunk in self._chunks:
            if chunk.id == chunk_id:
                return chunk
        return None

    def embed(self, query_text: str) -> np.ndarray:
        vector = np.asarray(self._embedder.embed(query_text), dtype=np.float64).flatten()
        if vector.shape[0] != self._dimension:
            raise ValueError(f"query embedding must have dimension {self._dimension}, got {vector.shape[0]}")
        return vector

    def score(self, query_text: str) -> np.ndarray:
        """Cosine similarity of the query against every chunk, in load order."""
        query = self.embed(query_text)
        similarities = np.zeros(len(self._chunks), dtype=np.float64)
        query_norm = np.linalg.norm(query)
        if query_norm == 0 or not self._chunks:
            return similarities
        valid = self._norms > 0
        similarities[valid] = (self._matrix[valid] @ query) / (self._norms[valid] * query_norm)
        return similarities

    def retrieve_chunks(self, query_text: str, top_k: int, threshold: float) -> list[ScoredChunk]:
        """Return at most `top_k` chunks scoring at least `threshold`, best first.

        An empty list means no runbook is relevant enough; it is not an error.
        """

        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")
        similarities = self.score(query_text)
        # stable sort keeps load order among equal scores
        order = np.argsort(-similarities, kind="stable")[:top_k]
        results = [
            ScoredChunk(chunk=self._chunks[idx], score=float(similarities[idx]))
            for idx in order
            if similarities[idx] >= threshold
        ]
        logger.info(
            "retrieval.query top_k={} threshold={} candidates={} matches={}",
            top_k,
            threshold,
            len(self._chunks),
            len(results),
        )
        return results
