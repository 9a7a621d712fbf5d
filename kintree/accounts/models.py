"""Pydantic models for accounts."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class SignupIn(BaseModel):
    name: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("invalid email address")
        return v


class LoginIn(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return v.strip().lower()


class UpdateProfileIn(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    avatar: str | None = None
    bio: str | None = None
    reminder_notes: str | None = None


class UserOut(BaseModel):
    id: UUID
    name: str
    email: str
    avatar: str | None = None
    bio: str | None = None
    reminder_notes: str | None = None
    created_at: datetime


class AuthOut(BaseModel):
    user: UserOut
    token: str
