"""Pydantic schemas for registration, admin login and browser sessions."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from catering.schemas.common import CamelModel

MIN_PASSWORD_LENGTH = 6


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if not v:
        raise ValueError("Email is required")
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


class RegisterRequest(CamelModel):
    email: str
    password: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class CredentialsRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class UserRead(CamelModel):
    id: str
    email: str
    name: str | None
    role: str
    created_at: datetime | None


class RegisterResponse(CamelModel):
    message: str
    user: UserRead


class AdminUser(CamelModel):
    id: str
    email: str
    name: str | None
    role: str
    user_role: str = Field(default="admin", alias="user_role")
    is_admin: bool = True


class AdminLoginData(CamelModel):
    token: str
    user: AdminUser


class AdminLoginResponse(CamelModel):
    success: bool = True
    message: str
    data: AdminLoginData


class SessionRead(CamelModel):
    user: UserRead
    expires: datetime
