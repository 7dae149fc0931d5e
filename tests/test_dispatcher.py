import asyncio
import json

import pytest
from pydantic import BaseModel

from triage.errors import ToolExecutionError
from triage.retrieval import RetrievalIndex
from triage.tools import ToolDispatcher, ToolRegistry, register_runbook_tools
from triage.tools.runbooks import SearchRunbooksInput
from triage.types import ToolUse


class DelayInput(BaseModel):
    label: str
    delay: float = 0.0


def _registry_with_delays(order: list[str]) -> ToolRegistry:
    registry = ToolRegistry()

    @registry.register(name="sleepy", description="sleeps then echoes", input_model=DelayInput)
    async def sleepy(params: DelayInput) -> str:
        await asyncio.sleep(params.delay)
        order.append(params.label)
        return params.label

    @registry.register(name="broken", description="always fails", input_model=DelayInput)
    def broken(params: DelayInput) -> str:
        raise ToolExecutionError(f"cannot handle {params.label}")

    return registry


@pytest.mark.asyncio
async def test_dispatch_all_keeps_request_order_not_completion_order() -> None:
    completed: list[str] = []
    dispatcher = ToolDispatcher(_registry_with_delays(completed))
    uses = [
        ToolUse(id="slow", name="sleepy", input={"label": "slow", "delay": 0.05}),
        ToolUse(id="fast", name="sleepy", input={"label": "fast", "delay": 0.0}),
    ]

    results = await dispatcher.dispatch_all(uses)

    assert completed == ["fast", "slow"]
    assert [result.tool_use_id for result in results] == ["slow", "fast"]
    assert [result.output for result in results] == ["slow", "fast"]
    assert not any(result.is_error for result in results)


@pytest.mark.asyncio
async def test_dispatch_all_runs_tools_concurrently() -> None:
    dispatcher = ToolDispatcher(_registry_with_delays([]))
    uses = [ToolUse(id=f"c{idx}", name="sleepy", input={"label": str(idx), "delay": 0.2}) for idx in range(5)]

    start = asyncio.get_running_loop().time()
    results = await dispatcher.dispatch_all(uses)
    elapsed = asyncio.get_running_loop().time() - start

    assert len(results) == 5
    assert elapsed < 0.8


@pytest.mark.asyncio
async def test_unknown_tool_yields_error_result() -> None:
    dispatcher = ToolDispatcher(ToolRegistry())

    result = await dispatcher.dispatch(ToolUse(id="x", name="reboot_server", input={}))

    assert result.tool_use_id == "x"
    assert result.is_error is True
    assert result.output == "unknown tool"


@pytest.mark.asyncio
async def test_failures_and_timeouts_become_error_results() -> None:
    dispatcher = ToolDispatcher(_registry_with_delays([]), timeout_seconds=0.05)
    uses = [
        ToolUse(id="boom", name="broken", input={"label": "x"}),
        ToolUse(id="late", name="sleepy", input={"label": "late", "delay": 1.0}),
        ToolUse(id="bad", name="sleepy", input={"delay": "soon"}),
        ToolUse(id="ok", name="sleepy", input={"label": "ok"}),
    ]

    results = await dispatcher.dispatch_all(uses)

    assert [result.tool_use_id for result in results] == ["boom", "late", "bad", "ok"]
    assert [result.is_error for result in results] == [True, True, True, False]
    assert results[0].output == "error: cannot handle x"
    assert results[1].output.startswith("tool_timeout:")
    assert results[2].output.startswith("invalid_input:")
    assert "label" in results[2].output


@pytest.mark.asyncio
async def test_search_runbooks_surfaces_no_match_as_normal_result(index: RetrievalIndex) -> None:
    registry = ToolRegistry()
    register_runbook_tools(registry, index, default_top_k=3, default_threshold=0.85)
    dispatcher = ToolDispatcher(registry)

    hit, miss = await dispatcher.dispatch_all([
        ToolUse(id="hit", name="search_runbooks", input={"query": "VPN keeps disconnecting every 10 minutes"}),
        ToolUse(id="miss", name="search_runbooks", input={"query": "strange noise from the coffee machine"}),
    ])

    assert hit.is_error is False
    hit_payload = json.loads(hit.output)
    assert {match["category"] for match in hit_payload["matches"]} == {"network"}
    assert all(match["score"] >= 0.85 for match in hit_payload["matches"])

    assert miss.is_error is False
    miss_payload = json.loads(miss.output)
    assert miss_payload["matches"] == []
    assert "No sufficiently relevant runbook" in miss_payload["note"]


@pytest.mark.asyncio
async def test_runbook_lookup_tools(index: RetrievalIndex) -> None:
    registry = ToolRegistry()
    register_runbook_tools(registry, index, default_top_k=3, default_threshold=0.85)
    dispatcher = ToolDispatcher(registry)

    categories, chunk, missing, empty = await dispatcher.dispatch_all([
        ToolUse(id="1", name="list_runbook_categories", input={}),
        ToolUse(id="2", name="get_runbook", input={"chunk_id": "acc-lockout"}),
        ToolUse(id="3", name="get_runbook", input={"chunk_id": "nope"}),
        ToolUse(id="4", name="search_runbooks", input={"query": "   "}),
    ])

    assert json.loads(categories.output)["categories"] == ["access", "email", "hardware", "network", "software"]
    assert json.loads(chunk.output)["category"] == "access"
    assert missing.is_error is True
    assert "nope" in missing.output
    assert empty.is_error is True


@pytest.mark.asyncio
async def test_search_runbooks_threshold_cannot_be_lowered_by_caller(index: RetrievalIndex) -> None:
    registry = ToolRegistry()
    register_runbook_tools(registry, index, default_top_k=3, default_threshold=0.85)
    dispatcher = ToolDispatcher(registry)

    result = await dispatcher.dispatch(
        ToolUse(
            id="low",
            name="search_runbooks",
            input={"query": "the coffee machine is making noises", "threshold": -1.0, "top_k": 10},
        )
    )

    assert result.is_error is False
    payload = json.loads(result.output)
    assert payload["matches"] == []
    assert "No sufficiently relevant runbook" in payload["note"]
    assert "threshold" not in SearchRunbooksInput.model_json_schema()["properties"]
