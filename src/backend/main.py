"""
StageVote Ledger Application

Vote ledger and aggregation engine for the StageVote talent-competition
platform.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import LedgerError, RateLimitExceeded
from core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from db.store import DocumentExistsError
from services.purchase_service import PaymentGateway

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def create_application(payment_gateway: Optional[PaymentGateway] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        payment_gateway: Payment collaborator used by vote purchases. Without
            one, purchase requests are answered with 503.
    """
    application = FastAPI(
        title=settings.APP_NAME,
        description="Vote ledger and aggregation engine for talent competitions",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    application.state.payment_gateway = payment_gateway

    # Add middleware (order matters - processed in reverse)
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    application.add_middleware(RequestContextMiddleware)

    # Include routers
    application.include_router(api_v1_router, prefix="/api/v1")

    @application.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Map ledger errors to their HTTP status."""
        logger.info(
            "ledger_error",
            error_type=type(exc).__name__,
            status_code=exc.status_code,
            detail=exc.message,
        )
        headers = {"Retry-After": "86400"} if isinstance(exc, RateLimitExceeded) else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error_type": type(exc).__name__},
            headers=headers,
        )

    @application.exception_handler(DocumentExistsError)
    async def conflict_exception_handler(request: Request, exc: DocumentExistsError) -> JSONResponse:
        logger.warning("document_conflict", error=str(exc), path=request.url.path)
        return JSONResponse(status_code=409, content={"detail": "Resource already exists"})

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler to catch unhandled exceptions.

        Returns a structured JSON response so the CORS middleware can still
        add its headers to 500 responses.
        """
        logger.exception(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "An internal server error occurred. Please try again later.",
                "error_type": type(exc).__name__ if settings.DEBUG else "InternalServerError",
            },
        )

    @application.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for load balancers and monitoring."""
        return {"status": "healthy", "service": "stagevote-ledger"}

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
        }

    return application


app = create_application()
