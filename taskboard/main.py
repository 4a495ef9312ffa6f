"""taskboard - collaborative to-do lists with shared categories."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from taskboard.core.config import settings
from taskboard.core.db_client import close_connection, init_db
from taskboard.core.logging import configure_logfire, instrument_fastapi
from taskboard.interface.api_router import router as api_router
from taskboard.interface.error_handlers import register_error_handlers
from taskboard.interface.live_router import router as live_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so startup logs are captured
    configure_logfire()

    if settings.is_production:
        settings.require_credential("logfire_token", "Logfire token")

    await init_db()
    logger.info("Database initialized", extra={"db_path": settings.sqlite_db_path})
    yield
    await close_connection()


app = FastAPI(
    title="taskboard",
    description="Collaborative to-do lists with shared categories",
    version="0.1.0",
    lifespan=lifespan,
)

instrument_fastapi(app)
register_error_handlers(app)

app.include_router(api_router)
app.include_router(live_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
