"""Session middleware.

Resolves the opaque session cookie against the app's SessionStore and
exposes the result as ``request.state.session`` (None when absent, unknown
or expired). Route-level authorization is done by dependencies.
"""

from __future__ import annotations

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Paths that never need a session lookup
_PUBLIC_PATHS = {"/api/health"}


class SessionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.session = None

        if request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        settings = request.app.state.settings
        session_id = request.cookies.get(settings.session.cookie_name)
        if session_id:
            request.state.session = request.app.state.session_store.get(session_id)

        return await call_next(request)
