"""Flow Pipeline — tests for gate/observe semantics and hook registration.

Tests cover:
    - No hook → allow; sync and async hooks both supported
    - Non-FlowDecision results fail closed
    - gate() propagates exceptions, observe() isolates them
    - detach() tracks tasks until drain()
    - set_flows validates every name before changing anything
"""

import asyncio
import logging

import pytest

from lightrpc.core.flows import (
    FlowDecision, FlowPipeline, FlowPoint, describe_flows, is_gate,
)


@pytest.fixture
def pipeline():
    return FlowPipeline()


@pytest.mark.asyncio
async def test_gate_without_hook_allows(pipeline, context):
    decision = await pipeline.gate(FlowPoint.PRE_API_CALL, {}, context)
    assert decision.allowed is True


@pytest.mark.asyncio
async def test_sync_hook_rejection(pipeline, context):
    pipeline.set_flow("pre_api_call", lambda payload, ctx: FlowDecision.reject("no"))
    decision = await pipeline.gate(FlowPoint.PRE_API_CALL, {}, context)
    assert decision == FlowDecision(allowed=False, reason="no")


@pytest.mark.asyncio
async def test_async_hook_sees_payload(pipeline, context):
    seen = {}

    async def hook(payload, ctx):
        seen.update(payload)
        seen["ctx"] = ctx
        return FlowDecision.allow()

    pipeline.set_flow(FlowPoint.PRE_MSG_RECEIVE, hook)
    decision = await pipeline.gate("pre_msg_receive", {"msg_name": "m"}, context)
    assert decision.allowed
    assert seen["msg_name"] == "m"
    assert seen["ctx"] is context


@pytest.mark.asyncio
async def test_missing_decision_fails_closed(pipeline, context):
    pipeline.set_flow(FlowPoint.PRE_API_CALL, lambda payload, ctx: None)
    decision = await pipeline.gate(FlowPoint.PRE_API_CALL, {}, context)
    assert decision.allowed is False


@pytest.mark.asyncio
async def test_gate_propagates_hook_errors(pipeline, context):
    def hook(payload, ctx):
        raise RuntimeError("hook failed")

    pipeline.set_flow(FlowPoint.PRE_API_CALL, hook)
    with pytest.raises(RuntimeError, match="hook failed"):
        await pipeline.gate(FlowPoint.PRE_API_CALL, {}, context)


@pytest.mark.asyncio
async def test_observe_isolates_hook_errors(pipeline, context, caplog):
    def hook(payload, ctx):
        raise RuntimeError("observer failed")

    pipeline.set_flow(FlowPoint.ON_CONNECT, hook)
    with caplog.at_level(logging.ERROR):
        await pipeline.observe(FlowPoint.ON_CONNECT, {}, context)
    assert "observer failed" in caplog.text


@pytest.mark.asyncio
async def test_detach_tracks_until_drained(pipeline, context):
    done = asyncio.Event()

    async def hook(payload, ctx):
        await asyncio.sleep(0)
        done.set()
        return FlowDecision.allow()

    pipeline.set_flow(FlowPoint.POST_API_CALL, hook)
    task = pipeline.detach(FlowPoint.POST_API_CALL, {}, context)
    assert task is not None
    assert pipeline.pending == 1
    await pipeline.drain()
    assert done.is_set()
    assert pipeline.pending == 0


@pytest.mark.asyncio
async def test_detach_without_hook_schedules_nothing(pipeline, context):
    assert pipeline.detach(FlowPoint.POST_API_CALL, {}, context) is None
    assert pipeline.pending == 0


def test_set_flow_replaces_and_clears(pipeline):
    first = lambda p, c: FlowDecision.allow()  # noqa: E731
    second = lambda p, c: FlowDecision.allow()  # noqa: E731
    pipeline.set_flow(FlowPoint.ON_CONNECT, first)
    pipeline.set_flow(FlowPoint.ON_CONNECT, second)
    assert pipeline.get_flow(FlowPoint.ON_CONNECT) is second
    pipeline.set_flow(FlowPoint.ON_CONNECT, None)
    assert pipeline.has_flow(FlowPoint.ON_CONNECT) is False


def test_set_flow_rejects_non_callable(pipeline):
    with pytest.raises(TypeError):
        pipeline.set_flow(FlowPoint.ON_CONNECT, "not a hook")


def test_set_flows_unknown_name_changes_nothing(pipeline):
    hook = lambda p, c: FlowDecision.allow()  # noqa: E731
    with pytest.raises(ValueError):
        pipeline.set_flows(pre_api_call=hook, pre_bogus=hook)
    assert pipeline.has_flow(FlowPoint.PRE_API_CALL) is False


def test_clear_flow(pipeline):
    pipeline.set_flows(post_api_call=lambda p, c: FlowDecision.allow())
    pipeline.clear_flow("post_api_call")
    assert pipeline.get_flow(FlowPoint.POST_API_CALL) is None


def test_gate_points():
    assert is_gate(FlowPoint.PRE_API_RETURN) is True
    assert is_gate(FlowPoint.PRE_MSG_SEND) is True
    assert is_gate(FlowPoint.POST_API_CALL) is False
    assert is_gate(FlowPoint.PRE_SEND_DATA) is False


def test_describe_flows(pipeline):
    pipeline.set_flow(FlowPoint.ON_CONNECT, lambda p, c: FlowDecision.allow())
    described = describe_flows(pipeline)
    assert set(described) == {p.value for p in FlowPoint}
    assert described["on_connect"] == {"bound": True, "mode": "observe"}
    assert described["pre_api_call"] == {"bound": False, "mode": "gate"}
