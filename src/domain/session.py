"""
Session issuer - signed, time-limited bearer tokens.

Tokens are stateless HS256 JWTs. There is no revocation list; logout is
the client discarding its token.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import jwt

from .exceptions import AuthenticationError
from .ports import Clock, Identity, utc_now

ALGORITHM = "HS256"


@dataclass
class SessionIssuer:
    """Mints and validates session tokens for an identity."""

    secret: str
    expires_in: timedelta = timedelta(days=7)
    algorithm: str = ALGORITHM
    clock: Clock = field(default=utc_now)

    def issue(self, identity: Identity) -> str:
        """Create a token embedding the identity's id and email."""
        now = self.clock()
        payload: dict[str, Any] = {
            "id": identity.id,
            "email": identity.email,
            "iat": int(now.timestamp()),
            "exp": int((now + self.expires_in).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Validate a token and return its claims.

        Expiry is judged against the issuer's clock rather than wall time.

        Raises:
            AuthenticationError: If the token is malformed, tampered with,
                expired, or missing the id claim
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "id"], "verify_exp": False},
            )
        except jwt.InvalidTokenError:
            raise AuthenticationError("Not authorized to access this route") from None

        expires_at = claims["exp"]
        if not isinstance(expires_at, int):
            raise AuthenticationError("Not authorized to access this route")
        if expires_at <= int(self.clock().timestamp()):
            raise AuthenticationError("Session expired. Please log in again.")
        return claims
