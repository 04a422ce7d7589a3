"""Request-scoped accessors for the auth and data collaborators.

The collaborators live on ``app.state`` (set up by ``create_app``) so each
handler receives them explicitly and tests can swap them out.
"""

from __future__ import annotations

from fastapi import Depends, Request

from sankey_proxy.config import Settings
from sankey_proxy.models.auth_models import Session
from sankey_proxy.services.session_store import SessionStore
from sankey_proxy.services.token_verifier import TokenVerifier
from sankey_proxy.services.warehouse import WarehouseGateway


class UnauthorizedError(Exception):
    """Raised when a protected route is called without an authenticated session."""


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_gateway(request: Request) -> WarehouseGateway:
    return request.app.state.gateway


def current_session(request: Request) -> Session | None:
    """Session resolved by SessionMiddleware, if any."""
    return getattr(request.state, "session", None)


def require_session(session: Session | None = Depends(current_session)) -> Session:
    """Dependency for protected routes: the caller must hold an authenticated session."""
    if session is None or not session.authenticated or session.user is None:
        raise UnauthorizedError()
    return session
