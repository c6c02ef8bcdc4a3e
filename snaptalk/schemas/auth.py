"""Pydantic schemas for authentication endpoints."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .common import Envelope


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(..., min_length=6, max_length=128)
    email: EmailStr | None = None
    display_name: str | None = Field(default=None, max_length=150)


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str | None = None
    display_name: str | None = None
    bio: str | None = None
    location: str | None = None
    avatar_url: str | None = None
    is_online: bool = False
    last_seen_at: datetime | None = None
    created_at: datetime


class AuthResponse(Envelope):
    token: str
    token_type: str = "bearer"
    user: UserResponse


class MeResponse(Envelope):
    user: UserResponse


__all__ = ["RegisterRequest", "LoginRequest", "UserResponse", "AuthResponse", "MeResponse"]
