"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock for expiry and lockout tests
- In-memory repositories and wired domain services
- A recording email sender that captures issued codes
- Test client setup against a fresh application
"""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.repository.memory import InMemoryCredentialRepository, InMemoryOtpRepository
from src.api.main import create_app
from src.config.settings import Settings
from src.domain.accounts import AccountDirectory
from src.domain.auth import AuthService
from src.domain.otp import OtpService
from src.domain.ports import OtpPurpose
from src.domain.session import SessionIssuer

# Low bcrypt cost keeps the suite fast; production default is asserted separately
TEST_BCRYPT_COST = 4
TEST_JWT_SECRET = "test-secret"
DEMO_ACCOUNTS = {
    "demo@gradevision.edu": "student",
    "admin@gradevision.edu": "admin",
}


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailSender:
    """EmailSender that keeps every delivered code in memory."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, OtpPurpose]] = []

    def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> None:
        self.sent.append((email, code, purpose))

    def last_code(self, email: str, purpose: OtpPurpose = OtpPurpose.SIGNUP) -> str:
        for sent_email, code, sent_purpose in reversed(self.sent):
            if sent_email == email and sent_purpose == purpose:
                return code
        raise AssertionError(f"No {purpose.value} code sent to {email}")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def credential_repository() -> InMemoryCredentialRepository:
    return InMemoryCredentialRepository()


@pytest.fixture
def otp_repository() -> InMemoryOtpRepository:
    return InMemoryOtpRepository()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def otp_service(otp_repository: InMemoryOtpRepository, clock: FrozenClock) -> OtpService:
    return OtpService(repository=otp_repository, clock=clock)


@pytest.fixture
def sessions(clock: FrozenClock) -> SessionIssuer:
    return SessionIssuer(secret=TEST_JWT_SECRET, clock=clock)


@pytest.fixture
def auth_service(
    credential_repository: InMemoryCredentialRepository,
    otp_service: OtpService,
    email_sender: RecordingEmailSender,
    sessions: SessionIssuer,
    clock: FrozenClock,
) -> AuthService:
    """AuthService wired to in-memory stores, a frozen clock and cheap bcrypt."""
    return AuthService(
        credentials=credential_repository,
        otp=otp_service,
        email_sender=email_sender,
        sessions=sessions,
        accounts=AccountDirectory(DEMO_ACCOUNTS),
        bcrypt_cost=TEST_BCRYPT_COST,
        clock=clock,
    )


@pytest.fixture
def app() -> FastAPI:
    """Create a fresh application instance."""
    return create_app()


@pytest.fixture
def client(
    app: FastAPI, clock: FrozenClock, email_sender: RecordingEmailSender
) -> Generator[TestClient, None, None]:
    """
    Test client on the in-memory backend.

    Entering the client runs the lifespan (fresh stores); the clock, sender
    and settings are then swapped for test doubles.
    """
    with TestClient(app) as test_client:
        app.state.settings = Settings(
            bcrypt_cost=TEST_BCRYPT_COST,
            jwt_secret=TEST_JWT_SECRET,
            otp_cleanup_interval_seconds=0,
            demo_accounts=DEMO_ACCOUNTS,
        )
        app.state.clock = clock
        app.state.email_sender = email_sender
        yield test_client


def bearer(token: str) -> dict[str, str]:
    """Create an Authorization: Bearer header for testing."""
    return {"Authorization": f"Bearer {token}"}
