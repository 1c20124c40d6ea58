from typing import Any

import bcrypt
import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from uidkeeper.core.core import Service
from uidkeeper.core.modules.user.models import Role, User
from uidkeeper.core.modules.user.validators import validate_password, validate_username
from uidkeeper.errors import ConflictError, NotFoundError

logger = structlog.get_logger(__name__)

ADMIN_USERNAME = "admin"

# Compared against when the username is unknown so both failure paths cost one bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"unused", bcrypt.gensalt()).decode("utf-8")


class UserService(Service):
    """Credential store: users with bcrypt hashes and roles, cached in memory."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")
        self._users: dict[str, User] = {}

    def get_user(self, username: str) -> User:
        """Get user by username from cache."""
        if username not in self._users:
            raise NotFoundError(f"User '{username}' not found")
        return self._users[username]

    def has_user(self, username: str) -> bool:
        return username in self._users

    def get_all_users(self) -> list[User]:
        """Get all users from cache."""
        return list(self._users.values())

    async def create_user(self, username: str, password: str, role: Role = Role.USER) -> User:
        """Create user with hashed password."""
        validate_username(username)
        validate_password(password)
        if self.has_user(username):
            raise ConflictError(f"User '{username}' already exists")

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user = User(username=username, password_hash=password_hash, role=role)
        try:
            await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            raise ConflictError(f"User '{username}' already exists") from e
        self._users[username] = user
        logger.info("user_created", username=username, role=role)
        return user

    def authenticate(self, username: str, password: str) -> User | None:
        """Return the user when the password matches, otherwise None."""
        user = self._users.get(username)
        password_hash = user.password_hash if user is not None else _DUMMY_HASH
        if not bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8")):
            return None
        return user

    async def ensure_admin_user_exists(self) -> None:
        """Create default admin user if not exists."""
        if not self.has_user(ADMIN_USERNAME):
            await self.create_user(ADMIN_USERNAME, self.core.config.admin_password, Role.ADMIN)

    async def update_all_users_cache(self) -> None:
        """Reload all users cache from database."""
        users = await User.list_cursor(self._collection.find())
        self._users = {user.username: user for user in users}

    async def on_start(self) -> None:
        """Initialize indexes, cache, and admin user."""
        await self._collection.create_index([("username", 1)], unique=True)
        await self.update_all_users_cache()
        await self.ensure_admin_user_exists()
        logger.debug("user_service_started", user_count=len(self._users))
