from enum import StrEnum

from pydantic import BaseModel, Field

from uidkeeper.core.db import MongoModel


class Role(StrEnum):
    ADMIN = "admin"
    USER = "user"


class User(MongoModel):
    """User domain model with credentials."""

    username: str
    password_hash: str  # bcrypt hash
    role: Role = Role.USER


class UserView(BaseModel):
    """User account information (API representation)."""

    username: str = Field(..., description="Username")
    role: Role = Field(..., description="Role of the user")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(username=user.username, role=user.role)
