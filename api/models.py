"""
API request and response models for SessionGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request validation happens here, before any auth flow runs: email syntax,
the password policy, and password confirmation. The flows assume well-formed
input and only decide domain questions (does the account exist, does the code
match).

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from auth.models import AccessTokenClaims
from auth.passwords import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# 8-32 characters with upper and lower case letters (Latin or Cyrillic), a
# digit, and one of @$!%*?&. Pydantic's pattern= uses a regex engine without
# lookahead support, so the policy is checked with `re` in a validator.
_PASSWORD_POLICY = re.compile(r"^(?=.*[A-ZА-Я])(?=.*[a-zа-я])(?=.*\d)(?=.*[@$!%*?&]).{8,32}$")

PASSWORD_POLICY_MESSAGE = (
    "Password must be 8-32 characters long, include both upper and lower case letters "
    "(Latin or Cyrillic), a digit, and a special character from @$!%*?&"
)


def _check_password_policy(value: str) -> str:
    if not _PASSWORD_POLICY.match(value):
        raise ValueError(PASSWORD_POLICY_MESSAGE)
    # The regex counts characters; bcrypt counts UTF-8 bytes.
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users/register."""

    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str
    password_confirmation: str

    @field_validator("password")
    @classmethod
    def password_policy(cls, value: str) -> str:
        return _check_password_policy(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.password_confirmation:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    min_length=8 mirrors the registration policy floor so obviously invalid
    passwords are turned away before a bcrypt round is spent on them.
    """

    email: EmailStr
    password: str = Field(min_length=8, max_length=255)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/v1/users/forgotpassword."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/users/resetpassword/{user_id}/{code}."""

    password: str
    password_confirmation: str

    @field_validator("password")
    @classmethod
    def password_policy(cls, value: str) -> str:
        return _check_password_policy(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.password_confirmation:
            raise ValueError("Passwords do not match")
        return self


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    """Generic success body for operations with no payload."""

    model_config = ConfigDict(frozen=True)

    message: str


class TokenPairResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AccessTokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    """Response for GET /api/v1/users/me -- the access-token snapshot, not a fresh DB read."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    session_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_claims(cls, claims: AccessTokenClaims) -> "MeResponse":
        return cls(
            id=claims.user_id,
            email=claims.email,
            first_name=claims.first_name,
            last_name=claims.last_name,
            session_id=claims.session_id,
            created_at=claims.created_at,
            updated_at=claims.updated_at,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
