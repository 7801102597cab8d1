"""
Auth API package.

Contains the /auth routes: OTP issuance and verification, registration,
login, password reset and the signed-in user's account endpoints.
"""

from src.api.auth.routes import router

__all__ = ["router"]
