"""Turns ToolUse blocks into ToolResult blocks."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence

from loguru import logger
from pydantic import ValidationError

from triage.errors import UnknownToolError
from triage.tools.registry import ToolRegistry
from triage.types import ToolResult, ToolUse

UNKNOWN_TOOL_OUTPUT = "unknown tool"


def render_output(value: object) -> str:
    if isinstance(value, str):
        return value
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return str(value)


class ToolDispatcher:
    """Resolves tool uses against a registry; every call yields exactly one result."""

    def __init__(self, registry: ToolRegistry, *, timeout_seconds: float | None = None) -> None:
        self._registry = registry
        self._timeout_seconds = timeout_seconds

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def dispatch(self, tool_use: ToolUse) -> ToolResult:
        if not self._registry.has(tool_use.name):
            logger.warning("tool.dispatch.unknown name={} id={}", tool_use.name, tool_use.id)
            return ToolResult(tool_use_id=tool_use.id, output=UNKNOWN_TOOL_OUTPUT, is_error=True)

        try:
            async with asyncio.timeout(self._timeout_seconds):
                output = await self._registry.execute(tool_use.name, kwargs=dict(tool_use.input))
        except TimeoutError:
            return ToolResult(
                tool_use_id=tool_use.id,
                output=f"tool_timeout: {tool_use.name} did not finish within {self._timeout_seconds}s",
                is_error=True,
            )
        except UnknownToolError:
            return ToolResult(tool_use_id=tool_use.id, output=UNKNOWN_TOOL_OUTPUT, is_error=True)
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            )
            return ToolResult(tool_use_id=tool_use.id, output=f"invalid_input: {errors}", is_error=True)
        except Exception as exc:
            # handler failures go back to the model as error results
            return ToolResult(tool_use_id=tool_use.id, output=f"error: {exc!s}", is_error=True)
        return ToolResult(tool_use_id=tool_use.id, output=render_output(output), is_error=False)

    async def dispatch_all(self, tool_uses: Sequence[ToolUse]) -> list[ToolResult]:
        """Run every tool use concurrently and return results in request order."""
        if not tool_uses:
            return []
        results = await asyncio.gather(*(self.dispatch(tool_use) for tool_use in tool_uses))
        logger.info(
            "tool.dispatch.batch count={} errors={}",
            len(results),
            sum(1 for result in results if result.is_error),
        )
        return list(results)
