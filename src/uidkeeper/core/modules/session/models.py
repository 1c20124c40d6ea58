"""Session management models."""

from datetime import datetime
from typing import NewType

from pydantic import BaseModel, Field

from uidkeeper.core.modules.user.models import Role
from uidkeeper.utils import now

AuthToken = NewType("AuthToken", str)


class Session(BaseModel):
    """Authenticated identity behind a bearer token.

    Held in process memory only, so every session ends with the process.
    """

    auth_token: AuthToken
    username: str
    role: Role
    created_at: datetime = Field(default_factory=now)
    expires_at: datetime | None = None  # None never expires

    def is_expired(self, at: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= at
