"""Runbook chunk store loading."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from triage.errors import ChunkStoreError
from triage.retrieval.embedder import Embedder
from triage.types import RunbookChunk


class ChunkRecord(BaseModel):
    """One runbook chunk as stored on disk."""

    id: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    text: str
    embedding: list[float] | None = Field(default=None, description="Precomputed embedding; computed at load if absent")


def _read_records(path: Path) -> list[Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ChunkStoreError(f"cannot read chunk store {path}: {exc}") from exc

    if path.suffix == ".jsonl":
        records: list[Any] = []
        for line_no, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise ChunkStoreError(f"{path}:{line_no}: invalid JSON: {exc.msg}") from exc
        return records

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ChunkStoreError(f"{path}: invalid JSON: {exc.msg}") from exc
    if isinstance(parsed, dict):
        parsed = parsed.get("chunks")
    if not isinstance(parsed, list):
        raise ChunkStoreError(f"{path}: expected a list of chunks")
    return parsed


def build_chunks(records: list[Any], embedder: Embedder) -> list[RunbookChunk]:
    """Validate raw records and fill in missing embeddings."""

    chunks: list[RunbookChunk] = []
    seen: set[str] = set()
    for position, raw in enumerate(records):
        try:
            record = ChunkRecord.model_validate(raw)
        except ValidationError as exc:
            raise ChunkStoreError(f"chunk #{position} is invalid: {exc}") from exc
        if record.id in seen:
            raise ChunkStoreError(f"duplicate chunk id {record.id!r}")
        seen.add(record.id)

        embedding = tuple(record.embedding) if record.embedding is not None else embedder.embed(record.text)
        if len(embedding) != embedder.dimension:
            raise ChunkStoreError(
                f"chunk {record.id!r} has embedding dimension {len(embedding)}, expected {embedder.dimension}"
            )
        chunks.append(RunbookChunk(id=record.id, category=record.category, text=record.text, embedding=embedding))
    return chunks


def load_chunks(path: Path | str, embedder: Embedder) -> list[RunbookChunk]:
    """Load runbook chunks from a JSON list or JSONL file."""

    resolved = Path(path)
    chunks = build_chunks(_read_records(resolved), embedder)
    logger.info("runbooks.loaded path={} chunks={}", resolved, len(chunks))
    return chunks
