# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Hunter Key Manager API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.exceptions import (
    CORS_HEADERS,
    KeyManagerException,
    http_exception_handler,
    key_manager_exception_handler,
    validation_exception_handler,
)
from app.routers import health, keys

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs startup configuration and shutdown. Key lifecycle configuration is
    validated lazily per request so a partially configured deployment can
    still serve health checks.
    """
    logger.info(f"Starting Hunter Key Manager API in {settings.ENVIRONMENT} mode")

    yield

    logger.info("Shutting down Hunter Key Manager API")


# Create FastAPI application
app = FastAPI(
    title="Hunter Key Manager API",
    description="""
## Managed Gemini API Keys for Hunters

Issues, encrypts, meters and rotates the Google Cloud API key each hunter
uses for AI features.

### Endpoints

| Endpoint | Caller | Purpose |
|----------|--------|---------|
| `POST /api/v1/keys/provision` | Signup flow | Issue a hunter's key (idempotent) |
| `POST /api/v1/keys/rotate` | Daily cron | Rotate keys of inactive free-tier hunters |
| `GET /api/v1/keys/status` | Hunter app | Key and budget status |
| `POST /api/v1/keys/budget/check` | Hunter app | Pre-flight budget check |
| `POST /api/v1/keys/usage` | Hunter app | Record usage after an AI call |

### Quick Start

```bash
# Provision a key at signup
curl -X POST http://localhost:8000/api/v1/keys/provision \\
  -H "Content-Type: application/json" \\
  -d '{"hunterId": "...", "hunterClass": "Mage", "hunterName": "Jinwoo"}'

# Trigger rotation manually
curl -X POST http://localhost:8000/api/v1/keys/rotate \\
  -H "Authorization: Bearer $CRON_SECRET_TOKEN"
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Keys",
            "description": "Managed key provisioning, rotation and budget metering",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS is permissive. Preflights are answered by the routers themselves
# (empty 200); this only adds the origin header where a response lacks it.
@app.middleware("http")
async def allow_any_origin(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault(
        "Access-Control-Allow-Origin", CORS_HEADERS["Access-Control-Allow-Origin"]
    )
    return response


# =============================================================================
# Exception Handlers
# =============================================================================

app.add_exception_handler(KeyManagerException, key_manager_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        },
        headers=CORS_HEADERS,
    )


# =============================================================================
# Routers
# =============================================================================

# Key lifecycle endpoints
app.include_router(
    keys.router,
    prefix="/api/v1/keys",
    tags=["Keys"]
)

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Hunter Key Manager API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
