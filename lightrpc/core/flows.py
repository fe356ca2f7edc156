"""Flow Pipeline — named lifecycle hooks with explicit allow/reject decisions.

Hook points, payload keys, and how a rejection is treated:

    point              payload keys                        mode
    -----------------  ----------------------------------  ----------------------------
    on_connect         conn_id, client_ip                  observe (awaited, isolated)
    on_disconnect      conn_id, reason                     observe (awaited, isolated)
    pre_receive_data   data, conn_id                       gate    (binding)
    pre_send_data      data, conn_id                       observe (detached, advisory)
    pre_api_call       api_name, req, conn_id              gate    (binding)
    pre_api_return     api_name, res, conn_id              gate    (binding)
    post_api_call      api_name, req, res, conn_id         observe (detached, advisory)
    pre_msg_receive    msg_name, msg, conn_id              gate    (binding)
    pre_msg_send       msg_name, msg, conn_id              gate    (aborts the send)

Invariants:
    - At most one hook per point; set_flow/set_flows replace (last write wins)
    - A hook returns FlowDecision; anything else counts as a rejection (fail closed)
    - gate() lets hook exceptions propagate; the dispatcher turns them into envelopes
    - observe()/detach() never raise: exceptions and rejections are logged only
    - Detached observers are tracked until done; drain() awaits every pending one

Design Decisions:
    - Return value over continuation callback: rejection is an explicit decision,
      a forgotten next() can no longer be mistaken for either outcome
    - Pre-hooks gate, post-hooks observe: the response is already computed when
      post_api_call / pre_send_data run, so they cannot change it
    - Hooks may be sync or async: inspect.isawaitable on the result
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from lightrpc.core.context import CallContext

logger = logging.getLogger(__name__)


class FlowPoint(str, Enum):
    ON_CONNECT = "on_connect"
    ON_DISCONNECT = "on_disconnect"
    PRE_RECEIVE_DATA = "pre_receive_data"
    PRE_SEND_DATA = "pre_send_data"
    PRE_API_CALL = "pre_api_call"
    PRE_API_RETURN = "pre_api_return"
    POST_API_CALL = "post_api_call"
    PRE_MSG_RECEIVE = "pre_msg_receive"
    PRE_MSG_SEND = "pre_msg_send"


GATE_POINTS = frozenset({
    FlowPoint.PRE_RECEIVE_DATA,
    FlowPoint.PRE_API_CALL,
    FlowPoint.PRE_API_RETURN,
    FlowPoint.PRE_MSG_RECEIVE,
    FlowPoint.PRE_MSG_SEND,
})


@dataclass(frozen=True)
class FlowDecision:
    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> "FlowDecision":
        return _ALLOW

    @classmethod
    def reject(cls, reason: str | None = None) -> "FlowDecision":
        return cls(allowed=False, reason=reason)


_ALLOW = FlowDecision(allowed=True)

FlowHook = Callable[
    [dict, CallContext], Union["FlowDecision", Awaitable["FlowDecision"]],
]


class FlowPipeline:
    """Holds one hook per FlowPoint and runs it in gate or observe mode."""

    def __init__(self) -> None:
        self._hooks: dict[FlowPoint, FlowHook] = {}
        self._pending: set[asyncio.Task] = set()

    # -- registration ------------------------------------------------------

    def set_flow(self, point: FlowPoint | str, hook: FlowHook | None) -> None:
        point = FlowPoint(point)
        if hook is None:
            self._hooks.pop(point, None)
            return
        if not callable(hook):
            raise TypeError(f"Flow hook for {point.value} must be callable")
        self._hooks[point] = hook

    def set_flows(self, **hooks: FlowHook | None) -> None:
        """Shallow merge: set_flows(pre_api_call=fn, post_api_call=fn2)."""
        resolved = {FlowPoint(name): hook for name, hook in hooks.items()}
        for point, hook in resolved.items():
            self.set_flow(point, hook)

    def clear_flow(self, point: FlowPoint | str) -> None:
        self._hooks.pop(FlowPoint(point), None)

    def get_flow(self, point: FlowPoint | str) -> FlowHook | None:
        return self._hooks.get(FlowPoint(point))

    def has_flow(self, point: FlowPoint | str) -> bool:
        return FlowPoint(point) in self._hooks

    # -- execution ---------------------------------------------------------

    async def _invoke(self, point: FlowPoint, payload: dict, context: CallContext) -> FlowDecision:
        hook = self._hooks[point]
        result = hook(payload, context)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, FlowDecision):
            return result
        context.logger.warning(
            f"{point.value} flow returned {type(result).__name__}, not FlowDecision, rejecting",
        )
        return FlowDecision.reject(f"{point.value} flow returned no decision")

    async def gate(self, point: FlowPoint | str, payload: dict, context: CallContext) -> FlowDecision:
        """Run a gating hook. No hook bound → allow. Exceptions propagate."""
        point = FlowPoint(point)
        if point not in self._hooks:
            return _ALLOW
        decision = await self._invoke(point, payload, context)
        if not decision.allowed:
            context.logger.debug(
                f"{point.value} flow rejected: {decision.reason or 'no reason given'}",
            )
        return decision

    async def observe(self, point: FlowPoint | str, payload: dict, context: CallContext) -> None:
        """Run an observing hook; its outcome is advisory and never raises."""
        point = FlowPoint(point)
        if point not in self._hooks:
            return
        try:
            decision = await self._invoke(point, payload, context)
        except Exception as e:
            context.logger.error(f"{point.value} flow error: {e}", exc_info=True)
            return
        if not decision.allowed:
            context.logger.debug(
                f"{point.value} flow rejected after the fact (advisory): "
                f"{decision.reason or 'no reason given'}",
            )

    def detach(self, point: FlowPoint | str, payload: dict, context: CallContext) -> asyncio.Task | None:
        """Schedule observe() without awaiting it. Returns the tracked task, if any."""
        point = FlowPoint(point)
        if point not in self._hooks:
            return None
        task = asyncio.create_task(self.observe(point, payload, context))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every detached observer scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def is_gate(point: FlowPoint | str) -> bool:
    return FlowPoint(point) in GATE_POINTS


def describe_flows(pipeline: FlowPipeline) -> dict[str, Any]:
    """Bound/unbound state per point, for the server info route."""
    return {
        point.value: {
            "bound": pipeline.has_flow(point),
            "mode": "gate" if is_gate(point) else "observe",
        }
        for point in FlowPoint
    }
