"""Invocation Dispatcher — runs registry, flows and handlers around every call.

API call:      Validating → PreFlow → Invoking → ValidatingResponse → PreReturn
               → PostFlow (detached) → Done
Message call:  Validating → PreFlow → Invoke (all handlers concurrently) → Done

Invariants:
    - handle_api_call returns exactly one envelope and never raises
    - A failed request validation or a pre_api_call rejection means the handler
      is never invoked
    - Handler errors carrying a str code and type pass through verbatim; anything
      else becomes INTERNAL_ERROR / ServerError
    - post_api_call runs detached: its outcome never changes the envelope
    - Message handlers are isolated: one failure is logged, the rest still run,
      and handle_msg_call returns only after every handler has settled
    - Unknown API names produce HANDLER_NOT_FOUND without touching the registry

Design Decisions:
    - Explicit dict per namespace: api → one handler, msg → list of handlers
    - Handlers may be sync or async: inspect.isawaitable on the result
    - dispatch() is the single transport-facing entry point: it owns the
      pre_receive_data gate and the pre_send_data observer so every binding
      gets identical hook semantics
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Callable

from lightrpc.core.codec import Codec
from lightrpc.core.context import CallContext
from lightrpc.core.domain_types import ServiceKind
from lightrpc.core.envelope import ApiFailure, ApiReturn, ApiSuccess, ErrorInfo
from lightrpc.core.errors import (
    ErrorCode, ErrorType, FlowCanceledError, HandlerNotFoundError,
    InvalidRequestError, InvalidResponseError, RpcError,
)
from lightrpc.core.flows import FlowPipeline, FlowPoint
from lightrpc.core.registry import ServiceRegistry
from lightrpc.core.validators import ApiValidators
from lightrpc.schemas.call import CallFrame, ParsedInput

logger = logging.getLogger(__name__)

ApiHandler = Callable[[Any, CallContext], Any]
MsgHandler = Callable[[Any, CallContext], Any]

INTERNAL_ERROR_MESSAGE = "Internal server error"


async def _call(handler: Callable, payload: Any, context: CallContext) -> Any:
    result = handler(payload, context)
    if inspect.isawaitable(result):
        result = await result
    return result


class Dispatcher:
    """Routes parsed calls to registered handlers and builds result envelopes."""

    def __init__(
        self,
        registry: ServiceRegistry,
        flows: FlowPipeline | None = None,
        codec: Codec | None = None,
    ):
        self.registry = registry
        self.options = registry.options
        self.flows = flows or FlowPipeline()
        self.codec = codec or Codec(self.options.serialization_mode)
        self._api_handlers: dict[str, ApiHandler] = {}
        self._msg_handlers: dict[str, list[MsgHandler]] = {}

    # -- registration ------------------------------------------------------

    def implement_api(
        self, api_name: str, handler: ApiHandler, *, req: Any = None, res: Any = None,
    ) -> int:
        """Register the API (idempotent) and bind its handler, replacing any previous one."""
        validators = None
        if req is not None or res is not None:
            validators = ApiValidators.build(req, res)
        service_id = self.registry.register_api(api_name, validators)
        if api_name in self._api_handlers:
            logger.warning(f"Replacing API handler: {api_name}")
        self._api_handlers[api_name] = handler
        self._debug(f"API handler registered: {api_name}")
        return service_id

    def listen_msg(self, msg_name: str, handler: MsgHandler, *, validator: Any = None) -> int:
        """Register the message (idempotent) and append a handler to its fan-out list."""
        service_id = self.registry.register_msg(msg_name, validator)
        self._msg_handlers.setdefault(msg_name, []).append(handler)
        self._debug(f"Message handler registered: {msg_name}")
        return service_id

    def api(self, api_name: str, *, req: Any = None, res: Any = None):
        """Decorator form of implement_api."""
        def decorator(handler: ApiHandler) -> ApiHandler:
            self.implement_api(api_name, handler, req=req, res=res)
            return handler
        return decorator

    def msg(self, msg_name: str, *, validator: Any = None):
        """Decorator form of listen_msg."""
        def decorator(handler: MsgHandler) -> MsgHandler:
            self.listen_msg(msg_name, handler, validator=validator)
            return handler
        return decorator

    def set_flows(self, **hooks) -> None:
        self.flows.set_flows(**hooks)

    def get_api_handler(self, api_name: str) -> ApiHandler | None:
        return self._api_handlers.get(api_name)

    def get_msg_handlers(self, msg_name: str) -> list[MsgHandler]:
        return list(self._msg_handlers.get(msg_name, ()))

    # -- transport entry point ---------------------------------------------

    async def dispatch(self, call: ParsedInput, context: CallContext) -> ApiReturn | None:
        """Run one parsed call. APIs return an envelope, messages return None."""
        try:
            decision = await self.flows.gate(
                FlowPoint.PRE_RECEIVE_DATA,
                {"data": call.data, "conn_id": context.conn_id},
                context,
            )
        except Exception as e:
            context.logger.error(f"pre_receive_data flow error: {e}", exc_info=True)
            if call.kind is ServiceKind.API:
                return ApiFailure(self._error_info(e), call.sn)
            return None

        if not decision.allowed:
            if call.kind is ServiceKind.API:
                err = FlowCanceledError("Receive", FlowPoint.PRE_RECEIVE_DATA.value, decision.reason)
                return ApiFailure(err.to_error_info(), call.sn)
            context.logger.debug("Message canceled by pre_receive_data flow")
            return None

        if call.kind is ServiceKind.MSG:
            await self.handle_msg_call(call.service_name, call.data, context)
            return None

        envelope = await self.handle_api_call(call.service_name, call.data, context, sn=call.sn)
        self.flows.detach(
            FlowPoint.PRE_SEND_DATA,
            {"data": envelope.to_dict(), "conn_id": context.conn_id},
            context,
        )
        return envelope

    def parse_server_input(self, raw: str | bytes) -> ParsedInput | None:
        """Decode a wire frame; None when malformed or the service is unknown."""
        try:
            frame = CallFrame.model_validate(self.codec.deserialize(raw))
        except (ValueError, TypeError) as e:
            self._debug(f"Parse server input error: {e}")
            return None

        service_id = self.registry.get_service_id(frame.service_name, frame.type)
        if service_id is None:
            self._debug(f"Parse server input error: unknown service {frame.service_name}")
            return None

        return ParsedInput(
            kind=frame.type,
            service_name=frame.service_name,
            data=frame.data,
            sn=frame.sn,
            service_id=service_id,
        )

    # -- API ---------------------------------------------------------------

    async def handle_api_call(
        self, api_name: str, req: Any, context: CallContext, sn: int | None = None,
    ) -> ApiReturn:
        try:
            envelope = await self._run_api(api_name, req, context)
        except Exception as e:
            context.logger.error(
                f"API {api_name} error: {e}",
                exc_info=not isinstance(e, RpcError),
                extra={"service_name": api_name, "service_kind": ServiceKind.API.value},
            )
            envelope = ApiFailure(self._error_info(e))
        return envelope.with_sn(sn)

    async def _run_api(self, api_name: str, req: Any, context: CallContext) -> ApiReturn:
        if not self.registry.validate_request(api_name, req):
            return _failure(InvalidRequestError(api_name))

        decision = await self.flows.gate(
            FlowPoint.PRE_API_CALL,
            {"api_name": api_name, "req": req, "conn_id": context.conn_id},
            context,
        )
        if not decision.allowed:
            return _failure(FlowCanceledError(
                "API call", FlowPoint.PRE_API_CALL.value, decision.reason,
            ))

        handler = self._api_handlers.get(api_name)
        if handler is None:
            return _failure(HandlerNotFoundError(api_name))

        extra = {"service_name": api_name, "service_kind": ServiceKind.API.value}
        if self.options.debug:
            context.logger.info(f"[API] {api_name} {req!r}", extra=extra)
        else:
            context.logger.info(f"[API] {api_name}", extra=extra)

        started = time.perf_counter()
        result = await _call(handler, req, context)
        duration_ms = round((time.perf_counter() - started) * 1000, 3)

        if not self.registry.validate_response(api_name, result):
            return _failure(InvalidResponseError(api_name))

        decision = await self.flows.gate(
            FlowPoint.PRE_API_RETURN,
            {"api_name": api_name, "res": result, "conn_id": context.conn_id},
            context,
        )
        if not decision.allowed:
            return _failure(FlowCanceledError(
                "API return", FlowPoint.PRE_API_RETURN.value, decision.reason,
            ))

        context.logger.info(
            f"[API] {api_name} completed in {duration_ms}ms",
            extra={**extra, "duration_ms": duration_ms},
        )

        self.flows.detach(
            FlowPoint.POST_API_CALL,
            {"api_name": api_name, "req": req, "res": result, "conn_id": context.conn_id},
            context,
        )
        return ApiSuccess(res=result)

    def _error_info(self, error: Exception) -> ErrorInfo:
        if isinstance(error, RpcError):
            return error.to_error_info()

        code = getattr(error, "code", None)
        err_type = getattr(error, "type", None)
        if isinstance(code, str) and isinstance(err_type, str):
            message = getattr(error, "message", None) or str(error)
            return ErrorInfo(message=str(message), code=code, type=err_type)

        message = str(error) or INTERNAL_ERROR_MESSAGE
        if not self.options.expose_internal_errors:
            message = INTERNAL_ERROR_MESSAGE
        return ErrorInfo(
            message=message,
            code=ErrorCode.INTERNAL_ERROR.value,
            type=ErrorType.SERVER.value,
        )

    # -- messages ----------------------------------------------------------

    async def handle_msg_call(self, msg_name: str, msg: Any, context: CallContext) -> None:
        extra = {"service_name": msg_name, "service_kind": ServiceKind.MSG.value}
        try:
            if not self.registry.validate_message(msg_name, msg):
                context.logger.error(f"Invalid message data for: {msg_name}", extra=extra)
                return

            decision = await self.flows.gate(
                FlowPoint.PRE_MSG_RECEIVE,
                {"msg_name": msg_name, "msg": msg, "conn_id": context.conn_id},
                context,
            )
            if not decision.allowed:
                context.logger.debug("Message call canceled by pre_msg_receive flow")
                return

            handlers = self.get_msg_handlers(msg_name)
            if not handlers:
                context.logger.warning(f"No handler found for message: {msg_name}", extra=extra)
                return

            if self.options.debug:
                context.logger.info(f"[MSG] {msg_name} {msg!r}", extra=extra)
            else:
                context.logger.info(f"[MSG] {msg_name}", extra=extra)

            await asyncio.gather(*(
                self._run_msg_handler(handler, msg_name, msg, context)
                for handler in handlers
            ))
        except Exception as e:
            context.logger.error(f"Message {msg_name} error: {e}", exc_info=True, extra=extra)

    async def _run_msg_handler(
        self, handler: MsgHandler, msg_name: str, msg: Any, context: CallContext,
    ) -> None:
        try:
            await _call(handler, msg, context)
        except Exception as e:
            context.logger.error(
                f"Message handler error for {msg_name}: {e}",
                exc_info=True,
                extra={"service_name": msg_name, "service_kind": ServiceKind.MSG.value},
            )

    # -- introspection -----------------------------------------------------

    def get_protocol(self) -> dict:
        return self.registry.get_protocol()

    def get_compatible_protocol(self) -> dict:
        return self.registry.generate_compatible_protocol()

    def get_protocol_stats(self) -> dict:
        return self.registry.get_stats()

    async def drain(self) -> None:
        """Await detached post_api_call / pre_send_data observers."""
        await self.flows.drain()

    def _debug(self, message: str) -> None:
        if self.options.debug:
            logger.debug(message)


def _failure(error: RpcError) -> ApiFailure:
    return ApiFailure(error.to_error_info())
