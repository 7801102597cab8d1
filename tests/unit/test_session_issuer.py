"""
Unit tests for SessionIssuer.

Tests verify token claims, expiry, and rejection of tampered tokens.
"""

from datetime import timedelta

import jwt
import pytest

from src.domain.exceptions import AuthenticationError
from src.domain.ports import Identity, Role
from src.domain.session import SessionIssuer
from tests.conftest import FrozenClock

IDENTITY = Identity(
    id="user-1",
    email="student@example.com",
    first_name="Ada",
    last_name="Lovelace",
    role=Role.STUDENT,
)


class TestIssue:
    """Tests for issue()."""

    def test_token_embeds_identity(self, sessions: SessionIssuer) -> None:
        claims = sessions.decode(sessions.issue(IDENTITY))
        assert claims["id"] == "user-1"
        assert claims["email"] == "student@example.com"

    def test_default_expiry_is_7_days(self, sessions: SessionIssuer, clock: FrozenClock) -> None:
        claims = sessions.decode(sessions.issue(IDENTITY))
        assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())
        assert claims["iat"] == int(clock.now.timestamp())

    def test_configurable_expiry(self, clock: FrozenClock) -> None:
        issuer = SessionIssuer(secret="s", expires_in=timedelta(hours=1), clock=clock)
        claims = issuer.decode(issuer.issue(IDENTITY))
        assert claims["exp"] - claims["iat"] == 3600

    def test_token_is_hs256(self, sessions: SessionIssuer) -> None:
        header = jwt.get_unverified_header(sessions.issue(IDENTITY))
        assert header["alg"] == "HS256"


class TestDecode:
    """Tests for decode()."""

    def test_expired_token_rejected(self, sessions: SessionIssuer, clock: FrozenClock) -> None:
        token = sessions.issue(IDENTITY)
        clock.advance(days=7, seconds=1)

        with pytest.raises(AuthenticationError) as exc_info:
            sessions.decode(token)
        assert exc_info.value.message == "Session expired. Please log in again."

    def test_token_valid_just_before_expiry(
        self, sessions: SessionIssuer, clock: FrozenClock
    ) -> None:
        token = sessions.issue(IDENTITY)
        clock.advance(days=7, seconds=-1)
        assert sessions.decode(token)["id"] == "user-1"

    def test_wrong_secret_rejected(self, sessions: SessionIssuer) -> None:
        forged = SessionIssuer(secret="attacker-secret").issue(IDENTITY)
        with pytest.raises(AuthenticationError):
            sessions.decode(forged)

    def test_garbage_rejected(self, sessions: SessionIssuer) -> None:
        with pytest.raises(AuthenticationError):
            sessions.decode("not.a.token")

    def test_missing_id_claim_rejected(self, sessions: SessionIssuer) -> None:
        token = jwt.encode({"email": "x@example.com", "exp": 4102444800}, "test-secret")
        with pytest.raises(AuthenticationError):
            sessions.decode(token)
