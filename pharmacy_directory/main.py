"""
Pharmacy Directory Backend — FastAPI Application Factory
=========================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes configuration, persistence wiring, middleware, routes,
       exception handlers, and lifecycle management in one place.
How:   create_app() builds the engine, session factory, and PharmacyService
       once and stores them on app.state; handlers receive them through
       FastAPI dependencies.
Who:   uvicorn, in factory mode:
           uvicorn pharmacy_directory.main:create_app --factory
       or the `pharmacy-directory` console script (run()).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │  Req ID      │→│ Logging  │→│  Rate Limit     │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌───────────────────────────┐ ┌─────────────────┐  │
    │  │ /api/pharmacies (CRUD)    │ │ GET /health     │  │
    │  └───────────────────────────┘ └─────────────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation/Duplicate→400 │ NotFound→404 │ 500 │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from pharmacy_directory import __version__
from pharmacy_directory.config import Settings, settings as default_settings
from pharmacy_directory.database import build_engine, build_session_factory
from pharmacy_directory.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    NotFoundError,
    PharmacyDirectoryError,
    ValidationError,
)
from pharmacy_directory.middleware.logging import RequestLoggingMiddleware
from pharmacy_directory.middleware.rate_limit import RateLimitMiddleware
from pharmacy_directory.middleware.request_id import RequestIDMiddleware, request_id_var
from pharmacy_directory.routes import health, pharmacies
from pharmacy_directory.schemas.pharmacy import collect_field_errors
from pharmacy_directory.services.pharmacy_service import PharmacyService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # These log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: configure logging, validate settings, log readiness.
    Shutdown: dispose the engine (close all pooled connections).
    """
    app_settings: Settings = app.state.settings

    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("Pharmacy Directory backend starting up...")

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info("Email uniqueness enforced: %s", app_settings.unique_email)
    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", app_settings.backend_host, app_settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Pharmacy Directory backend shutting down...")
    engine: AsyncEngine = app.state.engine
    await engine.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(
    error: str,
    message: str,
    details: Optional[dict] = None,
    request_id: Optional[str] = None,
) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details,
        "request_id": request_id if request_id is not None else request_id_var.get(""),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and the shared error envelope.

    Handler hierarchy:
        RequestValidationError  → 400 (same shape as ValidationError)
        ValidationError         → 400 validation_error, per-field details
        DuplicateKeyError       → 400 duplicate_key
        NotFoundError           → 404 not_found
        DatabaseError           → 500 generic message
        PharmacyDirectoryError  → 500 generic message
        Exception (fallback)    → 500 generic message, stack trace logged

    Security: 5xx bodies never include internal details.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = collect_field_errors(exc.errors(), strip_prefix="body")
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), sorted(errors))
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", "Validation Error", {"errors": errors}),
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), sorted(exc.errors))
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, {"errors": exc.errors}),
        )

    @app.exception_handler(DuplicateKeyError)
    async def handle_duplicate_key(request: Request, exc: DuplicateKeyError):
        logger.warning("[%s] Duplicate key: %s", request_id_var.get(""), exc.context)
        return JSONResponse(
            status_code=400,
            content=_error_body("duplicate_key", exc.message, {"field": exc.field}),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "Server Error"),
        )

    @app.exception_handler(PharmacyDirectoryError)
    async def handle_app_error(request: Request, exc: PharmacyDirectoryError):
        logger.error(
            "[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "Server Error"),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        # Runs outside the middleware stack; the ContextVar is already reset
        rid = getattr(request.state, "request_id", "")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "Server Error", request_id=rid),
            headers={"X-Request-ID": rid} if rid else None,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    app_settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use; defaults to the environment-loaded instance.
        engine: A ready AsyncEngine; built from app_settings when omitted.
                Tests pass an in-memory SQLite engine here.

    Returns:
        Fully configured FastAPI instance.
    """
    app_settings = app_settings or default_settings
    engine = engine or build_engine(app_settings)

    app = FastAPI(
        title="Pharmacy Directory API",
        description=(
            "CRUD backend for a pharmacy directory: identity, address, opening hours, "
            "and services offered. Deleting a pharmacy marks it inactive."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Persistence & Services (built once, injected per request) ─────────
    app.state.settings = app_settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.pharmacy_service = PharmacyService(unique_email=app_settings.unique_email)

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → RateLimit → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            "Retry-After",
        ],
    )

    # Unpaginated lists can get large
    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(
        RateLimitMiddleware,
        max_requests=app_settings.rate_limit_requests,
        window_seconds=app_settings.rate_limit_window,
    )
    app.add_middleware(RequestLoggingMiddleware)
    # Outermost, so 429s and unhandled errors still carry the request ID
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(pharmacies.router)
    app.include_router(health.router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn using the default settings."""
    import uvicorn

    uvicorn.run(
        "pharmacy_directory.main:create_app",
        factory=True,
        host=default_settings.backend_host,
        port=default_settings.backend_port,
        log_level=default_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
