from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from pydantic import BaseModel
from pymongo.asynchronous.database import AsyncDatabase

from uidkeeper.config import Config
from uidkeeper.core.core import Core
from uidkeeper.core.modules.bot.models import BotDiagnostics, BotView
from uidkeeper.core.modules.session.models import AuthToken, Session
from uidkeeper.core.modules.uid.models import UidStatistics, UidView
from uidkeeper.core.modules.user.models import Role, UserView
from uidkeeper.errors import InvalidCredentialsError, NotFoundError, ValidationError


class LoginResult(BaseModel):
    token: str
    role: Role
    username: str


class App:
    """Facade for all application operations, validates permissions before delegating to Core."""

    def __init__(self, config: Config, database: AsyncDatabase[dict[str, Any]] | None = None) -> None:
        self._core = Core(config, database)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    def resolve_session(self, auth_token: AuthToken) -> Session | None:
        """Session behind a token, or None when the token is unknown or expired."""
        return self._core.services.session.resolve(auth_token)

    # === Auth and users ===
    async def login(self, username: str, password: str) -> LoginResult:
        """Verify credentials and create a session."""
        user = self._core.services.user.authenticate(username, password)
        if user is None:
            raise InvalidCredentialsError
        session = self._core.services.session.create_session(user)
        return LoginResult(token=session.auth_token, role=session.role, username=session.username)

    async def logout(self, auth_token: AuthToken) -> None:
        """Invalidate user session."""
        self._core.services.access.ensure_authenticated(auth_token)
        self._core.services.session.invalidate_session(auth_token)

    async def get_current_user(self, auth_token: AuthToken) -> UserView:
        """Get current authenticated user."""
        session = self._core.services.access.ensure_authenticated(auth_token)
        return UserView(username=session.username, role=session.role)

    async def get_all_users(self, auth_token: AuthToken) -> list[UserView]:
        """Get all users (admin only)."""
        self._core.services.access.ensure_admin(auth_token)
        return [UserView.from_domain(user) for user in self._core.services.user.get_all_users()]

    async def create_user(self, auth_token: AuthToken, username: str, password: str) -> UserView:
        """Create a new user with the user role (admin only)."""
        self._core.services.access.ensure_admin(auth_token)
        user = await self._core.services.user.create_user(username, password, Role.USER)
        return UserView.from_domain(user)

    # === UID ledger ===
    async def get_all_uids(self, auth_token: AuthToken) -> list[UidView]:
        self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.uid.list_all_uids()

    async def get_active_uids(self, auth_token: AuthToken) -> list[UidView]:
        self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.uid.list_active_uids()

    async def get_expired_uids(self, auth_token: AuthToken) -> list[UidView]:
        self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.uid.list_expired_uids()

    async def get_uid(self, auth_token: AuthToken, uid: str) -> UidView:
        self._core.services.access.ensure_authenticated(auth_token)
        view = await self._core.services.uid.get_uid(uid)
        if view is None:
            raise NotFoundError("UID not found")
        return view

    async def create_uid(self, auth_token: AuthToken, uid: str, hours: float) -> UidView:
        """Add a uid that must not exist yet."""
        self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.uid.create_uid(uid, self._check_max_hours(hours))

    async def update_uid(self, auth_token: AuthToken, uid: str, hours: float) -> UidView:
        """Set a uid's expiry to now + hours, creating it if missing."""
        self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.uid.add_uid(uid, self._check_max_hours(hours))

    async def delete_uid(self, auth_token: AuthToken, uid: str) -> None:
        self._core.services.access.ensure_authenticated(auth_token)
        if not await self._core.services.uid.remove_uid(uid):
            raise NotFoundError("UID not found")

    async def clear_uids(self, auth_token: AuthToken) -> int:
        """Delete every uid (admin only)."""
        self._core.services.access.ensure_admin(auth_token)
        return await self._core.services.uid.clear_all_uids()

    async def cleanup_expired_uids(self, auth_token: AuthToken) -> int:
        self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.uid.cleanup_expired_uids()

    async def get_statistics(self, auth_token: AuthToken) -> UidStatistics:
        self._core.services.access.ensure_authenticated(auth_token)
        return await self._core.services.uid.get_statistics()

    # === Bots ===
    async def get_bots(self, auth_token: AuthToken) -> list[BotView]:
        self._core.services.access.ensure_admin(auth_token)
        return await self._core.services.bot.list_bots()

    async def register_bot(self, auth_token: AuthToken, bot_token: str, name: str) -> BotView:
        """Register a bot and start its connection in the background (admin only)."""
        self._core.services.access.ensure_admin(auth_token)
        bot = await self._core.services.bot.register_bot(bot_token, name)
        return BotView.from_domain(bot, self._core.services.bot.connection_state(bot.token))

    async def delete_bot(self, auth_token: AuthToken, bot_token: str) -> None:
        self._core.services.access.ensure_admin(auth_token)
        if not await self._core.services.bot.delete_bot(bot_token):
            raise NotFoundError("Bot not found")

    async def get_bot_diagnostics(self, auth_token: AuthToken) -> list[BotDiagnostics]:
        self._core.services.access.ensure_admin(auth_token)
        return await self._core.services.bot.get_diagnostics()

    # === Private helpers ===
    def _check_max_hours(self, hours: float) -> float:
        """The ledger enforces the lower bound; the upper bound is a front-end policy."""
        max_hours = self._core.config.max_uid_hours
        if hours > max_hours:
            raise ValidationError(f"Hours must be at most {max_hours}")
        return hours
