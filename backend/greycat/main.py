# backend/greycat/main.py
"""
GreyCat channel backend application.

Wires routers, exception handlers and the real-time layer (broadcast hub
plus optional cross-worker relay) into a FastAPI app.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.broadcast import BroadcastRelay, create_relay
from .core.config import is_running_tests, settings
from .core.exceptions import DomainException
from .database import init_db
from .routes import channels, health, messages, realtime
from .services.messaging.hub import BroadcastHub

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = first.get("msg", "Invalid value")
    return f"{location}: {detail}" if location else detail


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
                exc_info=exc,
            )
            return JSONResponse(
                status_code=exc.status_code, content={"success": False, "message": "Server error"}
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Malformed input is an expected outcome: 200 with success false
        return JSONResponse(
            status_code=200,
            content={
                "success": False,
                "message": _validation_message(exc),
                "code": "VALIDATION_ERROR",
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc
        )
        return JSONResponse(status_code=500, content={"success": False, "message": "Server error"})


def create_app(
    hub: Optional[BroadcastHub] = None,
    relay: Optional[BroadcastRelay] = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        hub: Broadcast hub to use (default: a new hub per app)
        relay: Cross-worker relay (default: from settings, None when disabled)
        create_tables: Run init_db() on startup
    """

    @asynccontextmanager
    async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup/shutdown."""
        logger.info("GreyCat API starting up...")
        logger.info(f"Environment: {settings.environment}")
        if is_running_tests():
            logger.info("Running under pytest (test mode active)")

        if create_tables:
            init_db()

        active_relay = relay if relay is not None else create_relay()
        app.state.hub = hub or BroadcastHub()
        if active_relay is not None:
            try:
                await active_relay.connect()
                app.state.hub.relay = active_relay
                active_relay.attach(app.state.hub)
            except Exception as e:
                logger.error(f"[BROADCAST] Failed to initialize relay: {e}")
                active_relay = None

        yield

        logger.info("GreyCat API shutting down...")
        if active_relay is not None:
            try:
                await active_relay.disconnect()
            except Exception as e:
                logger.error(f"[BROADCAST] Error disconnecting relay: {e}")

    app = FastAPI(
        title="GreyCat Channels API",
        description="Channel messaging backend for GreyCat",
        version="1.0.0",
        lifespan=app_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(channels.router)
    app.include_router(messages.router)
    app.include_router(realtime.router)

    return app


app = create_app()
