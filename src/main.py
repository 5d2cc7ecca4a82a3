"""taskquest - gamified productivity ledger with tasks, points and rewards."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.config import settings
from src.core.errors import LedgerError
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.api_router import ledger_error_handler, request_validation_handler, router as api_router
from src.services.session_service import SessionManager


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so startup logs are captured
    configure_logfire()

    settings.warn_if_placeholder_backend()
    logger.info("startup_complete", extra={"storage_backend": settings.storage_backend})
    yield


def create_app(sessions: SessionManager | None = None) -> FastAPI:
    """Build the application around a session manager."""
    app = FastAPI(
        title="taskquest",
        description="Gamified productivity ledger",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.sessions = sessions or SessionManager()

    # Instrument FastAPI with Logfire
    instrument_fastapi(app)

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(api_router)

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse(content={"status": "healthy"}, status_code=200)

    return app


app = create_app()
