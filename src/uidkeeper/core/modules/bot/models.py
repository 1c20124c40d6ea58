"""Chat-bot records and their live connection status."""

from enum import StrEnum

from pydantic import BaseModel, Field

from uidkeeper.core.db import MongoModel
from uidkeeper.utils import unix_now


class BotStatus(StrEnum):
    """Persisted status, written back by the connection."""

    ONLINE = "online"
    OFFLINE = "offline"


class ConnectionState(StrEnum):
    """In-process state of a bot connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class Bot(MongoModel):
    """Registered chat bot.

    Indexed on token - unique.
    """

    token: str
    name: str
    status: BotStatus = BotStatus.OFFLINE
    last_heartbeat: int = Field(default_factory=unix_now)
    created_at: int = Field(default_factory=unix_now)


def mask_token(token: str) -> str:
    return token[:20] + "..."


class BotView(BaseModel):
    """Bot record enriched with the live connection status (API representation)."""

    token: str = Field(..., description="Bot API token")
    name: str = Field(..., description="Display name")
    status: BotStatus = Field(..., description="Last status written to the database")
    last_heartbeat: int = Field(..., serialization_alias="lastHeartbeat", description="Unix seconds of the last status update")
    created_at: int = Field(..., serialization_alias="createdAt", description="Unix seconds of registration")
    real_status: BotStatus = Field(..., serialization_alias="realStatus", description="Status of the live connection")
    is_connected: bool = Field(..., serialization_alias="isConnected")
    state: ConnectionState = Field(..., description="Connection state machine state")

    @classmethod
    def from_domain(cls, bot: Bot, state: ConnectionState) -> "BotView":
        is_connected = state == ConnectionState.CONNECTED
        return cls(
            token=bot.token,
            name=bot.name,
            status=bot.status,
            last_heartbeat=bot.last_heartbeat,
            created_at=bot.created_at,
            real_status=BotStatus.ONLINE if is_connected else BotStatus.OFFLINE,
            is_connected=is_connected,
            state=state,
        )


class BotDiagnostics(BaseModel):
    """Comparison of stored and actual status for one bot, with the token masked."""

    name: str
    token: str
    db_status: BotStatus = Field(..., serialization_alias="dbStatus")
    actual_status: str = Field(..., serialization_alias="actualStatus")
    state: ConnectionState
    reconnect_attempts: int = Field(..., serialization_alias="reconnectAttempts")
    last_heartbeat: int | None = Field(None, serialization_alias="lastHeartbeat")
    last_error: str | None = Field(None, serialization_alias="lastError")
