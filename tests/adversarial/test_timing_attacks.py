"""
Adversarial tests for timing oracle attack prevention.

Verifies that login for an unknown email costs the same bcrypt work as a
wrong password for a known one, and that passcodes are compared in
constant time.

Security rationale:
- Timing oracle attacks measure response time differences to infer secrets
- "Email not found" must not return faster than "password invalid",
  otherwise response time enumerates registered accounts
- Our defense: unknown emails are checked against a dummy bcrypt hash, and
  codes are compared with secrets.compare_digest
"""

import secrets
import statistics
import time
from unittest.mock import patch

import bcrypt
import pytest

from src.adapters.repository.memory import InMemoryCredentialRepository, InMemoryOtpRepository
from src.domain.accounts import AccountDirectory
from src.domain.auth import AuthService
from src.domain.exceptions import AuthenticationError
from src.domain.otp import OtpService
from src.domain.ports import OtpPurpose
from src.domain.session import SessionIssuer
from tests.conftest import DEMO_ACCOUNTS, FrozenClock, RecordingEmailSender


@pytest.mark.adversarial
class TestConstantTimeOperations:
    """
    Verify that constant-time cryptographic operations are used.

    These tests verify the implementation uses the correct functions
    (secrets.compare_digest, bcrypt.checkpw) rather than regular comparison.
    """

    def test_dummy_hash_checked_for_unknown_email(self, auth_service: AuthService) -> None:
        with patch("src.domain.auth.bcrypt.checkpw", wraps=bcrypt.checkpw) as checkpw:
            with pytest.raises(AuthenticationError):
                auth_service.login("nobody@example.com", "anypassword")

        checkpw.assert_called_once()

    @pytest.mark.parametrize("cost", [4, 6])
    def test_dummy_hash_uses_configured_cost(self, clock: FrozenClock, cost: int) -> None:
        """Unknown and known emails run bcrypt at the same work factor."""
        service = AuthService(
            credentials=InMemoryCredentialRepository(),
            otp=OtpService(repository=InMemoryOtpRepository(), clock=clock),
            email_sender=RecordingEmailSender(),
            sessions=SessionIssuer(secret="timing", clock=clock),
            accounts=AccountDirectory(DEMO_ACCOUNTS),
            bcrypt_cost=cost,
            clock=clock,
        )
        service.register("known@example.com", "secret1", "Kn", "Own")

        with patch("src.domain.auth.bcrypt.checkpw", wraps=bcrypt.checkpw) as checkpw:
            with pytest.raises(AuthenticationError):
                service.login("nobody@example.com", "wrong")
            with pytest.raises(AuthenticationError):
                service.login("known@example.com", "wrong")

        unknown_hash, known_hash = (call.args[1] for call in checkpw.call_args_list)
        expected = f"{cost:02d}".encode()
        assert unknown_hash.split(b"$")[2] == expected
        assert known_hash.split(b"$")[2] == expected

    def test_unknown_email_gets_generic_message(
        self, auth_service: AuthService
    ) -> None:
        auth_service.register("known@example.com", "secret1", "Kn", "Own")

        with pytest.raises(AuthenticationError) as unknown:
            auth_service.login("nobody@example.com", "secret1")

        assert unknown.value.message == "Invalid email or password"

    def test_otp_compared_in_constant_time(self, otp_service: OtpService) -> None:
        code = otp_service.generate("user@example.com", OtpPurpose.SIGNUP)

        with patch(
            "src.domain.otp.secrets.compare_digest", wraps=secrets.compare_digest
        ) as compare:
            otp_service.verify("user@example.com", code, OtpPurpose.SIGNUP)

        compare.assert_called_once()


@pytest.mark.adversarial
class TestTimingAttacks:
    """
    Measure login response times at the production bcrypt cost.

    Each measurement on the known account uses a fresh email so lockout
    does not short-circuit later attempts.
    """

    ITERATIONS = 10

    # Maximum allowed difference in mean times
    MAX_VARIANCE_RATIO = 0.35

    @pytest.fixture
    def production_cost_service(self, clock: FrozenClock) -> AuthService:
        return AuthService(
            credentials=InMemoryCredentialRepository(),
            otp=OtpService(repository=InMemoryOtpRepository(), clock=clock),
            email_sender=RecordingEmailSender(),
            sessions=SessionIssuer(secret="timing", clock=clock),
            accounts=AccountDirectory(DEMO_ACCOUNTS),
            bcrypt_cost=10,
            clock=clock,
        )

    def measure_login(self, service: AuthService, email: str, password: str) -> float:
        start = time.perf_counter()
        with pytest.raises(AuthenticationError):
            service.login(email, password)
        return time.perf_counter() - start

    def test_unknown_email_timing_similar_to_wrong_password(
        self, production_cost_service: AuthService
    ) -> None:
        service = production_cost_service
        known = [f"known{i}@example.com" for i in range(self.ITERATIONS)]
        for email in known:
            service.register(email, "correct-password", "Kn", "Own")

        wrong_password = [self.measure_login(service, email, "wrong") for email in known]
        unknown_email = [
            self.measure_login(service, f"ghost{i}@example.com", "wrong")
            for i in range(self.ITERATIONS)
        ]

        mean_known = statistics.mean(wrong_password)
        mean_unknown = statistics.mean(unknown_email)
        ratio = abs(mean_known - mean_unknown) / max(mean_known, mean_unknown)

        assert ratio < self.MAX_VARIANCE_RATIO, (
            f"Timing difference too large: {ratio:.1%} "
            f"(threshold: {self.MAX_VARIANCE_RATIO:.0%})\n"
            f"  wrong password: mean={mean_known:.4f}s\n"
            f"  unknown email:  mean={mean_unknown:.4f}s"
        )
