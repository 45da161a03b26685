"""Request/response schemas for registration, login and token refresh."""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a digit"),
)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        missing = [label for pattern, label in _PASSWORD_RULES if not pattern.search(v)]
        if missing:
            raise ValueError(f"Password must contain {', '.join(missing)}")
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class Principal(BaseModel):
    """The authenticated user; `user_id` is also the wallet account key."""

    user_id: str
    username: str
    email: str


class RegisterResponse(Principal):
    balance_cents: int = 0
    created_at: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: Principal


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int


class MeResponse(Principal):
    balance_cents: int
    balance_display: str
