"""Unified tool registry."""

from __future__ import annotations

import asyncio
import builtins
import inspect
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel
from republic import Tool, tool_from_model

from triage.errors import UnknownToolError

HandlerT = TypeVar("HandlerT", bound=Callable[..., Any])


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed.

    Unlike textwrap.shorten, this function can cut in the middle of a word,
    ensuring long strings without spaces are still truncated properly.
    """
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


@dataclass(frozen=True)
class ToolDescriptor:
    """Tool metadata and runtime handle."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[Any], Any]


class ToolRegistry:
    """Registry of tool handlers keyed by name."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def add(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = descriptor

    def register(
        self,
        *,
        name: str,
        description: str,
        input_model: type[BaseModel],
    ) -> Callable[[HandlerT], HandlerT]:
        def decorator(handler: HandlerT) -> HandlerT:
            self.add(
                ToolDescriptor(
                    name=name,
                    description=description,
                    input_model=input_model,
                    handler=handler,
                )
            )
            return handler

        return decorator

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def get(self, name: str) -> ToolDescriptor | None:
        descriptor = self._tools.get(name)
        if descriptor is not None:
            return descriptor
        for candidate in self._tools.values():
            if self.to_model_name(candidate.name) == name:
                return candidate
        return None

    def descriptors(self) -> builtins.list[ToolDescriptor]:
        return sorted(self._tools.values(), key=lambda item: item.name)

    @staticmethod
    def to_model_name(name: str) -> str:
        return name.replace(".", "_")

    def model_tools(self) -> builtins.list[Tool]:
        """Tool schemas handed to the language model."""
        tools: builtins.list[Tool] = []
        seen_names: set[str] = set()
        for descriptor in self.descriptors():
            model_name = self.to_model_name(descriptor.name)
            if model_name in seen_names:
                raise ValueError(f"Duplicate model tool name after conversion: {model_name}")
            seen_names.add(model_name)
            tools.append(
                tool_from_model(
                    descriptor.input_model,
                    descriptor.handler,
                    name=model_name,
                    description=descriptor.description,
                )
            )
        return tools

    def _log_tool_call(self, name: str, kwargs: dict[str, Any]) -> None:
        params: list[str] = []
        for key, value in kwargs.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            value = _shorten_text(rendered, width=30, placeholder="...")
            if value.startswith('"') and not value.endswith('"'):
                value = value + '"'
            params.append(f"{key}={value}")
        logger.info("tool.call.start name={} {{ {} }}", name, ", ".join(params))

    async def execute(self, name: str, *, kwargs: dict[str, Any]) -> Any:
        """Validate `kwargs` against the tool's input model and run its handler.

        Synchronous handlers run in a worker thread so several tools of one
        turn can make progress at the same time.
        """

        descriptor = self.get(name)
        if descriptor is None:
            raise UnknownToolError(name)

        self._log_tool_call(descriptor.name, kwargs)
        start = time.monotonic()
        try:
            params = descriptor.input_model.model_validate(kwargs)
            if inspect.iscoroutinefunction(descriptor.handler):
                result = await descriptor.handler(params)
            else:
                result = await asyncio.to_thread(descriptor.handler, params)
                if inspect.isawaitable(result):
                    result = await result
            return result
        except Exception:
            logger.exception("tool.call.error name={}", descriptor.name)
            raise
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", descriptor.name, duration * 1000)
