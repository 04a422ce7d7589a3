"""In-process session store keyed by an opaque cookie identifier.

Sessions are lost on restart. Concurrent mutation of the same session is not
guarded.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from sankey_proxy.models.auth_models import Session, UserIdentity

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    def __init__(self, idle_timeout_seconds: int = 0):
        self._sessions: dict[str, Session] = {}
        # 0 disables idle expiry
        self.idle_timeout = timedelta(seconds=idle_timeout_seconds) if idle_timeout_seconds > 0 else None

    def _expired(self, session: Session, now: datetime) -> bool:
        return self.idle_timeout is not None and now - session.last_seen > self.idle_timeout

    def sweep(self) -> int:
        """Drop every idle session; returns how many were removed."""
        now = _now()
        expired = [sid for sid, session in self._sessions.items() if self._expired(session, now)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Dropped %d idle sessions", len(expired))
        return len(expired)

    def create(self, user: UserIdentity) -> Session:
        """Create an authenticated session for a verified user, dropping idle ones first."""
        self.sweep()
        now = _now()
        session = Session(
            session_id=secrets.token_urlsafe(32),
            authenticated=True,
            user=user,
            created_at=now,
            last_seen=now,
        )
        self._sessions[session.session_id] = session
        logger.info("Session created for %s", user.email or user.subject_id or "unknown user")
        return session

    def get(self, session_id: str | None) -> Session | None:
        """Look up a live session, dropping it if it has been idle too long."""
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        now = _now()
        if self._expired(session, now):
            logger.info("Session expired after idle timeout")
            self._sessions.pop(session_id, None)
            return None
        session.last_seen = now
        return session

    def destroy(self, session_id: str | None) -> None:
        if session_id:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
