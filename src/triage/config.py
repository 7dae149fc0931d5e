"""Configuration management for triage."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from triage.errors import ConfigurationError

DEFAULT_SYSTEM_PROMPT = (
    "You are an IT helpdesk triage assistant. Read the ticket, look up relevant runbooks with the "
    "search_runbooks tool, and call several tools in one turn when they are independent. "
    "When a search returns no matches, say so and rely on general knowledge or escalate. "
    "Finish with a short resolution plan for the requester, followed by a JSON object with the keys "
    '"category", "priority", "escalate" and "summary".'
)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRIAGE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model
    model: str | None = Field(default=None, description="Model in provider:model form, e.g. 'openai:gpt-4o-mini'")
    api_key: str | None = Field(default=None, description="API key for the LLM provider")
    api_base: str | None = Field(default=None, description="Optional API base URL")
    max_tokens: int = Field(default=1024, ge=1, description="Maximum tokens per model response")

    # Conversation
    max_turns: int = Field(default=8, ge=1, description="Maximum model calls per ticket")
    llm_timeout_seconds: float = Field(default=60.0, gt=0, description="Timeout for one model call")
    tool_timeout_seconds: float = Field(default=15.0, gt=0, description="Timeout for one tool handler")
    history_max_turns: int = Field(default=24, ge=2, description="Transcript length that triggers pruning")
    history_target_turns: int = Field(default=16, ge=2, description="Transcript length pruning aims for")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="System prompt for every ticket")

    # Retrieval
    runbooks_path: Path | None = Field(default=None, description="JSON or JSONL runbook chunk store")
    retrieval_top_k: int = Field(default=3, ge=1, description="Default number of runbook chunks per search")
    retrieval_threshold: float = Field(default=0.85, ge=-1.0, le=1.0, description="Minimum cosine similarity")

    # Batch
    max_concurrent_tickets: int = Field(default=4, ge=1, description="Tickets processed in parallel")

    log_level: str = Field(default="INFO", description="Log level")

    @model_validator(mode="after")
    def _check_history_bounds(self) -> Settings:
        if self.history_target_turns > self.history_max_turns:
            raise ValueError(
                f"history_target_turns ({self.history_target_turns}) must not exceed "
                f"history_max_turns ({self.history_max_turns})"
            )
        return self


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment plus explicit overrides.

    Raises:
        ConfigurationError: when the resulting settings are invalid.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
