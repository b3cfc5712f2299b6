"""
Strata Backend: FastAPI Application Factory
===========================================

What:  Creates the FastAPI application that carries the Strata pipeline over HTTP.
How:   Factory pattern: create_app() returns a configured FastAPI instance. A
       single catch-all route converts each Starlette request into a
       RequestEnvelope, hands it to the Dispatcher and turns the returned
       ResultEnvelope into a JSONResponse.
Who:   Called by uvicorn (uvicorn strata.main:app) and by the tests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │  Middleware: Request ID → Logging → GZip → CORS     │
    │                                                     │
    │  /{full_path:path}  (HTTP bridge)                   │
    │        │                                            │
    │        ▼                                            │
    │  Dispatcher → RouteRegistry → controllers           │
    │        → services → interfaces → bound adapters     │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Build adapters from settings, start them, freeze the bindings
    3. Build services and the route registry, freeze the registry
    Shutdown:
    1. Release every adapter in reverse order (AsyncExitStack)
"""

import json
import logging
import sys
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.responses import Response

from strata import __version__
from strata.bindings import build_bindings
from strata.config import Settings, settings as default_settings
from strata.dispatch import Dispatcher
from strata.exceptions import ValidationError
from strata.middleware.logging import RequestLoggingMiddleware
from strata.middleware.request_id import RequestIDLogFilter, RequestIDMiddleware
from strata.routes import register_routes
from strata.routing import RouteRegistry
from strata.schemas.envelope import HTTP_METHODS, RequestEnvelope, ResultEnvelope
from strata.services import ServiceContainer
from strata.validation import BODY_KEY

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(config: Settings) -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s
    """
    handler = logging.StreamHandler(sys.stdout)  # Docker captures stdout
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings
    setup_logging(config)
    logger.info("=" * 60)
    logger.info("Strata Backend %s starting up...", __version__)

    async with AsyncExitStack() as stack:
        # ── Adapters ──────────────────────────────────────────────────────
        bindings = build_bindings(config)
        await stack.enter_async_context(bindings)
        logger.info(
            "Adapters bound: persistence=%s, file_storage=%s",
            config.persistence_backend,
            config.file_storage_backend,
        )

        # ── Services and routes ───────────────────────────────────────────
        services = ServiceContainer.build(bindings, config)
        registry = register_routes(RouteRegistry())
        registry.freeze()
        app.state.dispatcher = Dispatcher(registry, services, config)
        logger.info("Route registry frozen with %d routes", len(registry))
        logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
        logger.info("=" * 60)

        yield

        logger.info("Strata Backend shutting down...")

    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# HTTP Bridge
# ══════════════════════════════════════════════════════════════════════════

def _to_response(result: ResultEnvelope, method: str = "GET") -> Response:
    # HEAD answers with the GET headers and status, never a body
    if result.status_code == 204 or method == "HEAD":
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)


async def handle_request(request: Request, full_path: str) -> Response:
    """Convert the Starlette request to an envelope and dispatch it."""
    dispatcher: Dispatcher = request.app.state.dispatcher

    raw = await request.body()
    envelope = RequestEnvelope(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        query=dict(request.query_params),
    )

    if raw.strip():
        try:
            body = json.loads(raw)
        except ValueError as e:
            return _to_response(
                dispatcher.error_result(
                    ValidationError(details={BODY_KEY: f"malformed JSON: {e}"}),
                    envelope,
                ),
                envelope.method,
            )
        envelope = envelope.model_copy(update={"body": body})

    return _to_response(await dispatcher.dispatch(envelope), envelope.method)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Explicit configuration (tests); defaults to the environment.
    """
    config = settings or default_settings

    app = FastAPI(
        title="Strata API",
        description="Layered REST backend with pluggable persistence and file storage adapters.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = config

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Location"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── HTTP Bridge ───────────────────────────────────────────────────────
    app.add_api_route(
        "/{full_path:path}",
        handle_request,
        methods=sorted(HTTP_METHODS),
        include_in_schema=False,
    )

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `strata.main:app` to be importable
app = create_app()


def run() -> None:
    """Console entry point: serve `app` with uvicorn."""
    uvicorn.run(
        "strata.main:app",
        host=default_settings.backend_host,
        port=default_settings.backend_port,
        log_level=default_settings.log_level.lower(),
    )
