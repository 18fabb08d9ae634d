"""
FastAPI application for lifehub account integrations.

This module wires dependencies and configures the application.
Business logic is in lifehub/myanimelist and lifehub/integrations,
infrastructure in lifehub/infrastructure.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime

# Configure logging FIRST, before other local imports
from lifehub.logging_config import setup_global_logging

setup_global_logging()

# Now import other modules (they will use the configured logging)
from fastapi import FastAPI, Request, status  # noqa: E402
from fastapi.encoders import jsonable_encoder  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from lifehub.core.exceptions import IntegrationError  # noqa: E402
from lifehub.infrastructure.firestore import close_firestore_client  # noqa: E402
from lifehub.integrations import router as integrations_router  # noqa: E402
from lifehub.integrations.config import get_integrations_config  # noqa: E402
from lifehub.integrations.dependencies import (  # noqa: E402
    get_state_store,
    get_token_store,
)
from lifehub.myanimelist import router as mal_router  # noqa: E402
from lifehub.myanimelist.dependencies import get_mal_handoff_store  # noqa: E402

logger = logging.getLogger(__name__)


# ============================================================================
# Application Lifecycle
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Starts one expiry sweeper per handoff store and stops them on shutdown.
    """
    logger.info("Application starting up...")
    interval = get_integrations_config().sweep_interval
    sweepers = [
        asyncio.create_task(store.run_sweeper(interval))
        for store in (get_mal_handoff_store(), get_state_store(), get_token_store())
    ]

    yield

    logger.info("Shutting down application...")
    for task in sweepers:
        task.cancel()
    await asyncio.gather(*sweepers, return_exceptions=True)
    try:
        close_firestore_client()
    except Exception as e:
        logger.warning(f"Error closing Firestore client during shutdown: {e}")


app = FastAPI(
    title="lifehub integrations",
    description="OAuth account linking and MyAnimeList sync",
    version="1.0.0",
    lifespan=lifespan,
)


# ============================================================================
# Centralized Exception Handlers
# ============================================================================


@app.exception_handler(IntegrationError)
async def integration_error_handler(request: Request, exc: IntegrationError):
    """
    Render domain errors as ``{"error": code}`` with their mapped status.

    The exception message stays in the server log.
    """
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{request.url.path} failed: {exc.code}",
        extra={"error": exc.code, "status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=exc.headers(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle Pydantic validation errors (invalid JSON or missing fields).

    The request body is not logged; refresh requests carry tokens.
    """
    logger.warning(f"Validation error on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "invalid_request",
            "details": jsonable_encoder(exc.errors()),
        },
    )


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "lifehub",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/health")
async def health():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(mal_router.router)
app.include_router(integrations_router.router)


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
