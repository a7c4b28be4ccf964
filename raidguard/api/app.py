"""
RaidGuard - FastAPI Application
===============================

FastAPI application factory and configuration.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from raidguard import __version__
from raidguard.core.logger import logger
from raidguard.api.config import get_api_config
from raidguard.api.dependencies import set_engine
from raidguard.api.errors import APIError, ErrorCode, error_response
from raidguard.api.routers import (
    detections_router,
    health_router,
    settings_router,
    suspicion_router,
)


API_PREFIX = "/api/raidguard"


# =============================================================================
# OpenAPI Documentation
# =============================================================================

API_DESCRIPTION = """
## RaidGuard Detection API

Read access to the detection log and statistics, live settings
updates, and per-user suspicion lookups.

### Error Responses

All errors follow a consistent format:
```json
{
    "success": false,
    "error_code": "VALIDATION_FAILED",
    "message": "Request validation failed",
    "details": null
}
```
"""

OPENAPI_TAGS = [
    {
        "name": "Health",
        "description": "Engine health and counters",
    },
    {
        "name": "Detections",
        "description": "Detection log and statistics",
    },
    {
        "name": "Settings",
        "description": "Live detection settings",
    },
    {
        "name": "Suspicion",
        "description": "Per-user suspicion scores",
    },
]


# =============================================================================
# Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Handles startup and shutdown events.
    """
    logger.tree("API Starting", [
        ("Version", __version__),
        ("Prefix", API_PREFIX),
    ], emoji="🚀")

    yield

    logger.tree("API Stopping", [], emoji="🛑")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(engine: Optional[Any] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        engine: Optional DetectionEngine for dependency injection

    Returns:
        Configured FastAPI application
    """
    config = get_api_config()

    app = FastAPI(
        title="RaidGuard API",
        description=API_DESCRIPTION,
        version=__version__,
        docs_url=f"{API_PREFIX}/docs" if config.debug else None,
        redoc_url=f"{API_PREFIX}/redoc" if config.debug else None,
        openapi_url=f"{API_PREFIX}/openapi.json" if config.debug else None,
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )

    if engine is not None:
        set_engine(engine)

    # ==========================================================================
    # Middleware
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=False,
        allow_methods=["GET", "PATCH"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        """Return coded errors without the default {"detail": ...} wrapper."""
        return error_response(
            exc.error_code,
            status_code=exc.status_code,
            message=exc.error_message,
            details=exc.error_details,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Report malformed query parameters and bodies as VALIDATION_FAILED."""
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg", ""))}
            for err in exc.errors()
        ]
        logger.debug("API Validation Failed", [
            ("Path", str(request.url.path)[:50]),
            ("Errors", str(len(errors))),
        ])
        return error_response(ErrorCode.VALIDATION_FAILED, details={"errors": errors})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions with consistent error format."""
        logger.error("Unhandled API Error", [
            ("Path", str(request.url.path)[:50]),
            ("Method", request.method),
            ("Error Type", type(exc).__name__),
            ("Error", str(exc)[:100]),
        ])

        return error_response(
            ErrorCode.SERVER_ERROR,
            details={"path": str(request.url.path)} if config.debug else None,
        )

    # ==========================================================================
    # Routers
    # ==========================================================================

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(detections_router, prefix=API_PREFIX)
    app.include_router(settings_router, prefix=API_PREFIX)
    app.include_router(suspicion_router, prefix=API_PREFIX)

    # Root health check (for load balancers)
    @app.get("/health")
    async def root_health():
        return {"status": "healthy"}

    return app


__all__ = ["create_app", "API_PREFIX"]
