"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.config.settings import Settings, get_settings
from src.domain.accounts import AccountDirectory
from src.domain.auth import AuthService
from src.domain.exceptions import AuthenticationError
from src.domain.otp import OtpService
from src.domain.ports import (
    Clock,
    CredentialRepository,
    EmailSender,
    Identity,
    OtpRepository,
    utc_now,
)
from src.domain.session import SessionIssuer


def get_credential_repository(request: Request) -> CredentialRepository:
    """
    Get credential repository from app state.

    The repository is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.credential_repository


def get_otp_repository(request: Request) -> OtpRepository:
    """Get OTP repository from app state."""
    return request.app.state.otp_repository


def get_email_sender(request: Request) -> EmailSender:
    """Get the configured email sender (console or SMTP) from app state."""
    return request.app.state.email_sender


def get_clock(request: Request) -> Clock:
    """Get the clock used for expiry and lockout decisions."""
    return getattr(request.app.state, "clock", utc_now)


def get_auth_service(request: Request) -> AuthService:
    """
    Create auth service with injected dependencies.

    Wires together the repositories, email sender and session issuer
    for the domain service.
    """
    settings: Settings = getattr(request.app.state, "settings", None) or get_settings()
    clock = get_clock(request)

    otp = OtpService(
        repository=get_otp_repository(request),
        ttl=timedelta(seconds=settings.otp_ttl_seconds),
        max_attempts=settings.otp_max_attempts,
        clock=clock,
    )
    sessions = SessionIssuer(
        secret=settings.jwt_secret,
        expires_in=timedelta(days=settings.jwt_expire_days),
        algorithm=settings.jwt_algorithm,
        clock=clock,
    )
    return AuthService(
        credentials=get_credential_repository(request),
        otp=otp,
        email_sender=get_email_sender(request),
        sessions=sessions,
        accounts=AccountDirectory(settings.demo_accounts),
        max_login_attempts=settings.max_login_attempts,
        lock_duration=timedelta(minutes=settings.lock_duration_minutes),
        bcrypt_cost=settings.bcrypt_cost,
        clock=clock,
    )


# Bearer token security scheme for OpenAPI documentation
http_bearer = HTTPBearer(auto_error=False)


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    service: AuthService = Depends(get_auth_service),
) -> Identity:
    """
    Resolve the caller from the Authorization: Bearer header.

    Raises:
        AuthenticationError: Missing, invalid or expired token, or the
            identity behind it no longer exists (rendered as 401)
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized to access this route")
    return service.identity_from_token(credentials.credentials)
