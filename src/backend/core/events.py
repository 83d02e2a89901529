"""
Application lifecycle event handlers.

Manages startup and shutdown tasks for logging and the document store.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from core.logging_config import configure_logging
from db.session import close_db, init_db

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        configure_logging()
        logger.info("Starting StageVote ledger API...", env=settings.APP_ENV, store=settings.STORE_BACKEND)

        # Initialize document store connections
        await init_db()
        logger.info("Document store initialized")

        if getattr(app.state, "payment_gateway", None) is None:
            logger.warning("No payment gateway configured; vote purchases are disabled")

        logger.info("StageVote ledger API started successfully")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("Shutting down StageVote ledger API...")

        # Close document store connections
        await close_db()

        logger.info("StageVote ledger API shutdown complete")

    return stop_app
