import secrets
from datetime import timedelta
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from uidkeeper.core.core import Service
from uidkeeper.core.modules.session.models import AuthToken, Session
from uidkeeper.core.modules.user.models import User
from uidkeeper.utils import now

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Session registry mapping bearer tokens to (username, role).

    The token map is only touched from the event loop thread and no method
    awaits between reading and writing it.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._sessions: dict[AuthToken, Session] = {}

    def create_session(self, user: User) -> Session:
        """Mint a fresh token for an already verified user."""
        auth_token = AuthToken(secrets.token_urlsafe(32))
        ttl_hours = self.core.config.session_ttl_hours
        created_at = now()
        session = Session(
            auth_token=auth_token,
            username=user.username,
            role=user.role,
            created_at=created_at,
            expires_at=created_at + timedelta(hours=ttl_hours) if ttl_hours > 0 else None,
        )
        self._sessions[auth_token] = session
        logger.info("session_created", username=user.username, role=user.role)
        return session

    def resolve(self, auth_token: AuthToken) -> Session | None:
        """Look up a session. Expired sessions are dropped and reported as absent."""
        session = self._sessions.get(auth_token)
        if session is None:
            return None
        if session.is_expired(now()):
            self._sessions.pop(auth_token, None)
            logger.debug("session_expired", username=session.username)
            return None
        return session

    def invalidate_session(self, auth_token: AuthToken) -> bool:
        """Revoke a session, returning whether it existed."""
        return self._sessions.pop(auth_token, None) is not None
