"""lightrpc Server — FastAPI application factory.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map every failure to the envelope shape
    - CORS configured from settings (not hardcoded)
    - Runtime status driven by lifespan: OPENING → OPENED → CLOSING → CLOSED
    - On shutdown every tracked connection is closed and detached flows drained

Design Decisions:
    - Factory over a module-level app: each app owns its runtime, so tests and
      embedders never share an id space
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from lightrpc import __version__
from lightrpc.api.error_handlers import register_error_handlers
from lightrpc.api.routes import health, introspection, rpc_http, rpc_ws
from lightrpc.config import Settings, get_settings
from lightrpc.core.domain_types import ServerStatus
from lightrpc.infrastructure.observability import setup_logging
from lightrpc.services.runtime import RpcRuntime, create_runtime

logger = logging.getLogger(__name__)

POWERED_BY = "lightrpc"


def create_app(runtime: RpcRuntime | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    runtime = runtime or create_runtime(settings.protocol_options())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle."""
        runtime.status = ServerStatus.OPENING
        setup_logging(settings.log_level, settings.log_format)
        runtime.status = ServerStatus.OPENED
        logger.info(
            f"lightrpc server started at {settings.json_host_path}",
            extra={"path": settings.json_host_path},
        )
        yield
        runtime.status = ServerStatus.CLOSING
        logger.info("lightrpc server shutting down")
        for conn in runtime.directory.list_connections():
            await runtime.directory.close_connection(conn["id"], "server shutdown")
        await runtime.dispatcher.drain()
        runtime.status = ServerStatus.CLOSED

    app = FastAPI(title="lightrpc", version=__version__, lifespan=lifespan)
    app.state.runtime = runtime
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=settings.cors_max_age,
    )

    @app.middleware("http")
    async def powered_by(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Powered-By"] = POWERED_BY
        return response

    register_error_handlers(app)

    # Explicit registration; rpc_http last so its catch-all path never shadows
    app.include_router(health.router)
    app.include_router(introspection.router)
    app.include_router(rpc_ws.router)
    app.include_router(rpc_http.build_router(settings.json_host_path))
    return app
