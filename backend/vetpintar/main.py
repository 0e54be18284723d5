"""
VetPintar Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers.
Who:   uvicorn (`uvicorn vetpintar.main:app`) and the test client.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐ ┌────────────┐  │
    │  │ Rate Limit │→│ Req ID   │→│ Logging │→│ GZip/CORS  │  │
    │  └────────────┘ └──────────┘ └─────────┘ └────────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │   /api/auth  /api/users  /api/clinics  /api/patients     │
    │   /api/appointments  /api/medical-records  /api/invoices │
    │   /api/products  /api/dashboard  /api/ai  /api/health    │
    │   WS /ws                                                 │
    │                                                          │
    │  Exception Handlers:                                     │
    │   VetPintarError → its status │ request validation → 400 │
    │   IntegrityError → 409        │ anything else → 500      │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, validate security settings
    Shutdown: close the AI proxy client, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from vetpintar import __version__
from vetpintar.config import settings
from vetpintar.database import dispose_engine
from vetpintar.exceptions import (
    AIServiceError,
    CircuitBreakerOpenError,
    RateLimitExceededError,
    VetPintarError,
)
from vetpintar.middleware.logging import RequestLoggingMiddleware
from vetpintar.middleware.rate_limit import RateLimitMiddleware
from vetpintar.middleware.request_id import RequestIDMiddleware, request_id_var
from vetpintar.routes import (
    ai,
    appointments,
    auth,
    clinics,
    dashboard,
    health,
    invoices,
    medical_records,
    patients,
    products,
    realtime,
    users,
)
from vetpintar.services.ai_proxy_service import ai_proxy_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configures the root logger once for the whole process.

    Format: 2025-01-15T12:00:00 [INFO] vetpintar.services.invoice_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Per-operation chatter from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("VetPintar Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so health checks and error responses still work
        logger.warning("Configuration error: %s", str(e))

    logger.info("AI service: %s", settings.ai_service_url)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("VetPintar Backend shutting down...")
    await ai_proxy_service.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    return {
        "success": False,
        "error": error,
        "message": message,
        "details": details,
        "request_id": request_id_var.get("") or None,
    }


def _retry_after(exc: VetPintarError):
    if isinstance(exc, RateLimitExceededError):
        return exc.retry_after
    if isinstance(exc, CircuitBreakerOpenError):
        return exc.recovery_time
    if isinstance(exc, AIServiceError):
        return exc.retry_after
    return None


def register_exception_handlers(app: FastAPI) -> None:
    """
    Handler hierarchy:
        VetPintarError          → exc.status_code / exc.error_code
                                  (context returned as details for 4xx/503,
                                  logged only for 500)
        RequestValidationError  → 400 validation_error, details.errors
        IntegrityError          → 409 conflict
        Exception (fallback)    → 500 internal_server_error

    Stack traces, SQL and constraint names never reach the response body.
    """

    @app.exception_handler(VetPintarError)
    async def handle_vetpintar_error(request: Request, exc: VetPintarError):
        rid = request_id_var.get("")
        if exc.status_code >= 500 and exc.status_code != 503:
            logger.error(
                "[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context
            )
            details = None
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
            details = exc.context or None

        headers = {}
        retry_after = _retry_after(exc)
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                # ("body", "email") → "email"; ("query", "page") → "page"
                "field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body",
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", "Validation failed", {"errors": errors}),
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning("[%s] Integrity error: %s", request_id_var.get(""), exc.orig)
        return JSONResponse(
            status_code=409,
            content=_error_body("conflict", "Resource already exists"),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="VetPintar API",
        description=(
            "Multi-tenant veterinary clinic management: patients, appointments, "
            "medical records, billing, inventory and a proxy to the AI assistant."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            "Retry-After",
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(clinics.router)
    app.include_router(patients.router)
    app.include_router(appointments.router)
    app.include_router(medical_records.router)
    app.include_router(invoices.router)
    app.include_router(products.router)
    app.include_router(dashboard.router)
    app.include_router(ai.router)
    app.include_router(realtime.router)

    return app


app = create_app()
