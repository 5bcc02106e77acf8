"""Authentication-related Pydantic request/response schema definitions.

Covers registration, login, token issuance/refresh, profile and password change.
"""

from datetime import datetime

from pydantic import EmailStr, Field

from app.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    """Self-registration request. New accounts get the USER role.

    Attributes:
        email: Login email, unique (case-insensitive)
        password: Plain text, at least 8 characters (bcrypt-hashed on server)
        first_name / last_name: Display name
        phone: Optional contact phone
    """

    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=50)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class RefreshRequest(CamelModel):
    """Exchanges a stored refresh token for a new token pair."""

    refresh_token: str


class TokenResponse(CamelModel):
    """JWT token pair.

    Attributes:
        access_token: Short-lived access token (default TTL 30 min)
        refresh_token: Long-lived refresh token (default TTL 7 days)
        token_type: Always "bearer"
        expires_in: Access token TTL in seconds
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class UserProfileResponse(CamelModel):
    """Authenticated user's profile with role and granted permission codes."""

    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: str | None
    role: str
    role_level: int
    is_active: bool
    email_verified: bool
    last_login_at: datetime | None
    created_at: datetime
    permissions: list[str] = []


class AuthResponse(CamelModel):
    """Login/registration payload: the user plus a token pair."""

    user: UserProfileResponse
    tokens: TokenResponse


class ProfileUpdateRequest(CamelModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, max_length=50)


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)
