"""Republic integration helpers."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from typing import Any

from republic import LLM, Tool

from triage.config import Settings
from triage.conversation.transcript import Transcript
from triage.errors import ConfigurationError
from triage.types import TextBlock, ToolUse, Turn

MODEL_NOT_CONFIGURED_ERROR = "Model not configured. Set TRIAGE_MODEL (e.g., 'openai:gpt-4o-mini')."


def build_llm(settings: Settings) -> LLM:
    """Build Republic LLM client from settings."""

    if not settings.model:
        raise ConfigurationError(MODEL_NOT_CONFIGURED_ERROR)
    return LLM(
        model=settings.model,
        api_key=settings.api_key,
        api_base=settings.api_base,
    )


def to_messages(turns: Iterable[Turn]) -> list[dict[str, Any]]:
    """Render turns as OpenAI-style chat messages."""

    messages: list[dict[str, Any]] = []
    for turn in turns:
        text = turn.text
        if turn.role == "assistant":
            message: dict[str, Any] = {"role": "assistant", "content": text or None}
            calls = [_tool_call_payload(use) for use in turn.tool_uses]
            if calls:
                message["tool_calls"] = calls
            messages.append(message)
            continue

        for result in turn.tool_results:
            messages.append({"role": "tool", "tool_call_id": result.tool_use_id, "content": result.output})
        if text or not turn.tool_results:
            messages.append({"role": turn.role, "content": text})
    return messages


def _tool_call_payload(use: ToolUse) -> dict[str, Any]:
    return {
        "id": use.id,
        "type": "function",
        "function": {"name": use.name, "arguments": json.dumps(use.input, ensure_ascii=False)},
    }


def turn_from_response(response: Any) -> Turn:
    """Convert a raw chat completion into an assistant turn."""

    if isinstance(response, str):
        return Turn.assistant(TextBlock(response))
    choices = getattr(response, "choices", None)
    if not choices:
        return Turn.assistant()
    message = getattr(choices[0], "message", None)
    if message is None:
        return Turn.assistant()

    blocks: list[TextBlock | ToolUse] = []
    content = getattr(message, "content", None)
    if isinstance(content, str) and content.strip():
        blocks.append(TextBlock(content))
    for idx, tool_call in enumerate(getattr(message, "tool_calls", None) or []):
        function = getattr(tool_call, "function", None)
        if function is None:
            continue
        name = getattr(function, "name", "") or ""
        call_id = getattr(tool_call, "id", None) or f"call_{idx}"
        blocks.append(ToolUse(id=call_id, name=name, input=_parse_arguments(getattr(function, "arguments", None))))
    return Turn.assistant(*blocks)


def _parse_arguments(arguments: object) -> dict[str, Any]:
    if isinstance(arguments, dict):
        return dict(arguments)
    if not isinstance(arguments, str) or not arguments.strip():
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        return {"_raw": arguments}
    if not isinstance(parsed, dict):
        return {"_raw": arguments}
    return parsed


class RepublicLanguageModel:
    """Language capability backed by a Republic LLM client."""

    def __init__(self, llm: LLM, *, tools: list[Tool], max_tokens: int) -> None:
        self._llm = llm
        self._tools = tools
        self._max_tokens = max_tokens

    async def request(self, transcript: Transcript) -> Turn:
        response = await asyncio.to_thread(
            self._llm.chat.raw,
            messages=to_messages(transcript),
            tools=self._tools,
            max_tokens=self._max_tokens,
        )
        return turn_from_response(response)
