"""
Auth API routes.

Defines REST endpoints for the account-security flows. Handlers are plain
functions so FastAPI runs them in its worker threadpool; bcrypt and the
repositories' per-key locks block, and must not stall the event loop.
"""

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_auth_service, get_current_identity
from src.api.models import (
    AuthResponse,
    ChangePasswordRequest,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SendOtpRequest,
    UpdateProfileRequest,
    UserEnvelope,
    UserResponse,
    VerifyOtpRequest,
)
from src.domain.auth import AuthService
from src.domain.ports import Identity

router = APIRouter(tags=["auth"])

_ERROR_400 = {400: {"model": ErrorResponse, "description": "Invalid input or request not allowed"}}
_ERROR_401 = {401: {"model": ErrorResponse, "description": "Not authenticated"}}
_ERROR_404 = {404: {"model": ErrorResponse, "description": "Account not found"}}


@router.post(
    "/send-otp",
    response_model=MessageResponse,
    responses={
        **_ERROR_400,
        **_ERROR_404,
        502: {"model": ErrorResponse, "description": "Email delivery failed"},
    },
    summary="Send a one-time passcode",
    description="Issue a 6-digit code for signup or password reset and email it. "
    "Any previous code for the same email and purpose stops working.",
)
def send_otp(
    request_data: SendOtpRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.send_otp(request_data.email, request_data.purpose)
    return MessageResponse(message=f"OTP sent to {request_data.email}")


@router.post(
    "/verify-otp",
    response_model=MessageResponse,
    responses={**_ERROR_400},
    summary="Verify a one-time passcode",
    description="Check a code issued by /send-otp. A verified code is consumed.",
)
def verify_otp(
    request_data: VerifyOtpRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.verify_otp(request_data.email, request_data.code, request_data.purpose)
    return MessageResponse(message="OTP verified successfully")


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_ERROR_400},
    summary="Register a new user",
    description="Create an account and return a session token. "
    "Expected to follow a successful signup /verify-otp.",
)
def register(
    request_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    identity, token = service.register(
        request_data.email,
        request_data.password,
        request_data.first_name,
        request_data.last_name,
        request_data.role,
    )
    return AuthResponse(token=token, user=UserResponse.from_identity(identity))


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        **_ERROR_401,
        423: {"model": ErrorResponse, "description": "Account locked"},
    },
    summary="Log in",
    description="Authenticate with email and password. Five consecutive failures "
    "lock the account for 15 minutes.",
)
def login(
    request_data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    identity, token = service.login(request_data.email, request_data.password)
    return AuthResponse(token=token, user=UserResponse.from_identity(identity))


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={**_ERROR_400, **_ERROR_404},
    summary="Reset a forgotten password",
    description="Set a new password and clear any lockout. "
    "Expected to follow a successful forgot-password /verify-otp.",
)
def reset_password(
    request_data: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.reset_password(request_data.email, request_data.new_password)
    return MessageResponse(message="Password reset successfully. Please log in.")


@router.get(
    "/me",
    response_model=UserEnvelope,
    responses={**_ERROR_401},
    summary="Get the current user",
)
def get_me(identity: Identity = Depends(get_current_identity)) -> UserEnvelope:
    return UserEnvelope(user=UserResponse.from_identity(identity))


@router.put(
    "/password",
    response_model=MessageResponse,
    responses={**_ERROR_400, **_ERROR_401, **_ERROR_404},
    summary="Change password",
)
def change_password(
    request_data: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    service.change_password(identity, request_data.current_password, request_data.new_password)
    return MessageResponse(message="Password updated successfully")


@router.put(
    "/profile",
    response_model=UserEnvelope,
    responses={**_ERROR_400, **_ERROR_401, **_ERROR_404},
    summary="Update profile",
)
def update_profile(
    request_data: UpdateProfileRequest,
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> UserEnvelope:
    updated = service.update_profile(
        identity,
        first_name=request_data.first_name,
        last_name=request_data.last_name,
        avatar=request_data.avatar,
    )
    return UserEnvelope(user=UserResponse.from_identity(updated))


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={**_ERROR_401},
    summary="Log out",
    description="Tokens are stateless; the client discards its token.",
)
def logout(identity: Identity = Depends(get_current_identity)) -> MessageResponse:
    return MessageResponse(message="Logged out successfully")
