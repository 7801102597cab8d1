"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware, exception handlers, and lifespan events.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryCredentialRepository, InMemoryOtpRepository
from src.adapters.repository.postgres import (
    PostgresCredentialRepository,
    PostgresOtpRepository,
    run_migrations,
)
from src.adapters.smtp.console import ConsoleEmailSender
from src.adapters.smtp.relay import SmtpEmailSender
from src.api.auth import router as auth_router
from src.api.errors import install_error_handlers
from src.config.settings import Settings, get_settings
from src.domain.otp import OtpService
from src.domain.ports import EmailSender, utc_now

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "auth",
        "description": "Account security - OTP signup, login with lockout, password reset",
    },
]


def build_email_sender(settings: Settings) -> EmailSender:
    """Select the email sender for the configured backend."""
    if settings.email_backend == "smtp":
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.email_user,
            password=settings.email_app_password,
            from_name=settings.email_from_name,
            ttl_minutes=max(1, settings.otp_ttl_seconds // 60),
        )
    return ConsoleEmailSender()


async def _sweep_expired_codes(app: FastAPI, interval: float) -> None:
    """Periodically purge expired OTPs; verify() enforces expiry regardless."""
    settings: Settings = app.state.settings
    while True:
        await asyncio.sleep(interval)
        otp = OtpService(
            repository=app.state.otp_repository,
            ttl=timedelta(seconds=settings.otp_ttl_seconds),
            max_attempts=settings.otp_max_attempts,
            clock=getattr(app.state, "clock", utc_now),
        )
        try:
            await asyncio.to_thread(otp.cleanup)
        except Exception:
            logger.exception("OTP cleanup sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the storage backend (in-memory, or a Postgres pool + migrations)
    - Selects the email sender
    - Starts the OTP cleanup sweep
    - Closes the connection pool on shutdown
    """
    settings = get_settings()
    app.state.settings = settings

    logger.info("Starting application...")

    pool: ConnectionPool | None = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)

        app.state.credential_repository = PostgresCredentialRepository(pool)
        app.state.otp_repository = PostgresOtpRepository(pool)
    else:
        logger.info("Using in-memory storage")
        app.state.credential_repository = InMemoryCredentialRepository()
        app.state.otp_repository = InMemoryOtpRepository()

    app.state.pool = pool
    app.state.email_sender = build_email_sender(settings)

    sweeper: asyncio.Task[None] | None = None
    if settings.otp_cleanup_interval_seconds > 0:
        sweeper = asyncio.create_task(
            _sweep_expired_codes(app, settings.otp_cleanup_interval_seconds)
        )

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    """Build the application with routes, middleware and error handlers."""
    settings = get_settings()

    application = FastAPI(
        title="grade-vision-auth",
        description="Grade Vision account security API - OTP signup, login lockout and password reset",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(application)
    application.include_router(auth_router, prefix="/auth")

    @application.get("/health")
    def health_check(request: Request) -> dict[str, str]:
        """
        Health check endpoint with database validation.

        Returns 200 OK if the application (and database, when configured) is healthy.
        Raises exception if database connection fails.
        """
        pool = getattr(request.app.state, "pool", None)
        if pool is not None:
            with pool.connection() as conn:
                conn.execute("SELECT 1")

        return {"status": "healthy"}

    return application


app = create_app()
