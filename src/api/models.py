"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field names are camelCase on the wire to match the dashboard frontend.
"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email

from src.domain.ports import Identity, OtpPurpose, Role


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_email(value: str) -> str:
    """
    Validate an address without normalizing it.

    Accounts are keyed by the exact string the client sent, so the value is
    passed through untouched. Display-name forms such as "Ada <ada@x.io>"
    are rejected.
    """
    _, normalized = validate_email(value)
    if normalized.lower() != value.lower():
        raise ValueError("value is not a valid email address")
    return value


Email = Annotated[str, AfterValidator(_check_email), Field(json_schema_extra={"format": "email"})]


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------


class SendOtpRequest(CamelModel):
    """Request model for issuing a one-time passcode."""

    email: Email
    purpose: OtpPurpose = OtpPurpose.SIGNUP


class VerifyOtpRequest(CamelModel):
    """Request model for verifying a one-time passcode."""

    email: Email
    code: str = Field(
        ...,
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="6-digit one-time passcode",
    )
    purpose: OtpPurpose = OtpPurpose.SIGNUP


class RegisterRequest(CamelModel):
    """Request model for account registration."""

    email: Email
    password: str = Field(..., min_length=6, description="Password (min 6 characters)")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    role: Role | None = None


class LoginRequest(CamelModel):
    """Request model for login."""

    email: Email
    password: str = Field(..., min_length=1)


class ResetPasswordRequest(CamelModel):
    """Request model for completing a password reset."""

    email: Email
    new_password: str = Field(..., min_length=6, description="New password (min 6 characters)")


class ChangePasswordRequest(CamelModel):
    """Request model for changing the password of the signed-in user."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, description="New password (min 6 characters)")


class UpdateProfileRequest(CamelModel):
    """Request model for profile updates; omitted fields are left unchanged."""

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    avatar: str | None = None


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------


class UserResponse(CamelModel):
    """Public user object. Never carries password or lockout state."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    avatar: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(
            id=identity.id,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            role=identity.role,
            avatar=identity.avatar,
            created_at=identity.created_at,
            updated_at=identity.updated_at,
        )


class MessageResponse(CamelModel):
    """Response model for operations that only report a message."""

    success: bool = True
    message: str


class AuthResponse(CamelModel):
    """Response model for register and login."""

    success: bool = True
    token: str
    user: UserResponse


class UserEnvelope(CamelModel):
    """Response model wrapping the current user."""

    success: bool = True
    user: UserResponse


class ErrorResponse(CamelModel):
    """Standard error response model."""

    success: bool = False
    message: str
