"""Error Handlers — global exception handlers mapping failures to the envelope shape.

Invariants:
    - RpcError → {"isSucc": false, "err": {message, code, type}} with its http_status
    - HTTPException (404, 405, 413, ...) → same shape, code = str(status)
    - RequestValidationError → 400, same shape
    - Exception (catch-all) → 500, never leaks internal details

Design Decisions:
    - Four-layer handler: domain (RpcError), transport (HTTPException),
      validation (Pydantic), catch-all (Exception)
    - Extracted from app.py (ADR: import fan-out < 10)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lightrpc.core.errors import RpcError, transport_error_response

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_rpc_error_handler(app)
    _register_http_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_rpc_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RpcError)
    async def rpc_error_handler(request: Request, exc: RpcError):
        """Handle lightrpc errors raised outside the dispatcher."""
        logger.error(
            f"RpcError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_http_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """Transport-level failures (unknown route, wrong method, oversized body)."""
        logger.warning(
            f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}",
            extra={"error_code": str(exc.status_code), "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=transport_error_response(exc.status_code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        """Handle Pydantic validation errors."""
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=transport_error_response(
                status.HTTP_400_BAD_REQUEST, "Invalid request data",
            ),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=transport_error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error",
            ),
        )
