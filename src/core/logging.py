"""Logfire setup for taskquest.

Modules log through ``logging.getLogger(__name__)``; once ``configure_logfire``
has run, Logfire picks those records up along with the spans opened here.
Ledger events carry the owner id so one user's history can be filtered out.
"""

import logging

import logfire
from fastapi import FastAPI

from src.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Configure Logfire; records stay local unless a token is set."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="taskquest",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a span named ``<service>.<operation>``, e.g. ``ledger_service.claim_reward``."""
    return logfire.span(name)


def log_with_owner_context(
    log: logging.Logger,
    level: str,
    message: str,
    owner_id: str | None = None,
    **fields: object,
) -> None:
    """Emit ``message`` at ``level`` with the owner id and any extra fields attached."""
    extra = {"owner_id": owner_id, **fields} if owner_id else fields
    getattr(log, level.lower())(message, extra=extra)
