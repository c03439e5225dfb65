"""FastAPI application setup."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learnledger.api.dependencies import close_services, init_services
from learnledger.api.models import APIResponse
from learnledger.api.routes import assignments, courses, enrollments, payments, quizzes
from learnledger.config import Settings
from learnledger.logging import get_logger
from learnledger.store import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InternalError,
    LedgerError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    settings = app.state.settings if hasattr(app.state, "settings") else Settings()
    init_services(settings)
    logger.info("API started (db=%s)", settings.db_path)

    yield
    # Shutdown
    close_services()


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse[None](data=None, error=message).model_dump(),
    )


def create_app(settings: Settings | None = None, db_path: str | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Runtime settings. Defaults to ``Settings()``.
        db_path: Overrides ``settings.db_path`` when given.
    """
    settings = settings if settings is not None else Settings()
    if db_path is not None:
        settings.db_path = db_path

    app = FastAPI(
        title="LearnLedger API",
        description="REST API for LearnLedger - enrollments, payments and course access",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(ConflictError)
    async def conflict_handler(_request: Request, exc: ConflictError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(_request: Request, exc: ForbiddenError) -> JSONResponse:
        return _error_response(status.HTTP_403_FORBIDDEN, str(exc))

    @app.exception_handler(ValidationError)
    async def validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(_request: Request, exc: AuthenticationError) -> JSONResponse:
        return _error_response(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(InternalError)
    async def internal_error_handler(_request: Request, _exc: InternalError) -> JSONResponse:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        logger.error("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc)
        return _error_response(exc.status_code, "Internal server error")

    # Include routers
    app.include_router(courses.router, prefix="/api/v1")
    app.include_router(enrollments.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(quizzes.router, prefix="/api/v1")
    app.include_router(assignments.router, prefix="/api/v1")

    return app
