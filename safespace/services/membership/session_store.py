"""Bearer-token lookup for issued sessions.

Sessions remain plain capabilities. The store only lets a transport
adapter turn a token back into its Session, with optional expiry on
``established_at`` and explicit revocation.
"""
import logging
import threading
from datetime import timedelta
from typing import Callable, Dict, Optional

from safespace.shared.errors import AuthError
from safespace.shared.models import Session, utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    """Thread-safe token -> Session map."""

    def __init__(
        self,
        ttl_seconds: int = 0,
        clock: Callable = utcnow,
    ):
        """Initialize store.

        Args:
            ttl_seconds: Session lifetime; 0 means sessions never expire
            clock: Returns the current aware datetime
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def add(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def resolve(self, token: Optional[str]) -> Session:
        """Return the session for a bearer token.

        Raises:
            AuthError: Unknown, revoked or expired token
        """
        session = self._sessions.get(token) if token else None
        if session is None:
            raise AuthError("Session not recognized")

        if self.ttl_seconds and self._clock() - session.established_at > timedelta(seconds=self.ttl_seconds):
            self.revoke(token)
            logger.info(
                "SESSION_EXPIRED",
                extra={"school_id": session.school_id, "role": session.role.value}
            )
            raise AuthError("Session expired")

        return session

    def revoke(self, token: str) -> bool:
        """Forget a token. Returns False if it was not known."""
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logger.info(
                "SESSION_REVOKED",
                extra={"school_id": session.school_id, "role": session.role.value}
            )
        return session is not None

    def __len__(self) -> int:
        return len(self._sessions)
