from uidkeeper.core.core import Service
from uidkeeper.core.modules.session.models import AuthToken, Session
from uidkeeper.core.modules.user.models import Role
from uidkeeper.errors import AccessDeniedError, AuthenticationError


class AccessService(Service):
    """Authorization gate. Raises on failure, never mutates state."""

    def ensure_authenticated(self, auth_token: AuthToken | None) -> Session:
        """Ensure the token belongs to a live session."""
        session = self.core.services.session.resolve(auth_token) if auth_token else None
        if session is None:
            raise AuthenticationError("Invalid or expired session")
        return session

    def ensure_admin(self, auth_token: AuthToken | None) -> Session:
        """Ensure the session has the admin role, raise AccessDeniedError if not."""
        session = self.ensure_authenticated(auth_token)
        if session.role != Role.ADMIN:
            raise AccessDeniedError("Admin privileges required")
        return session
