"""Pydantic models for the authentication endpoints and server-side sessions."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserIdentity(_CamelModel):
    email: str | None = None
    display_name: str | None = None
    subject_id: str | None = None


class Session(BaseModel):
    session_id: str
    authenticated: bool = False
    user: UserIdentity | None = None
    created_at: datetime
    last_seen: datetime


class TokenRequest(BaseModel):
    token: str | None = None


class TokenResponse(BaseModel):
    success: bool
    message: str
    user: UserIdentity


class AuthStatus(_CamelModel):
    authenticated: bool
    has_warehouse_config: bool
    has_identity_config: bool


class LogoutResponse(BaseModel):
    success: bool
