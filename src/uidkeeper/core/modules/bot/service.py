import asyncio
import contextlib
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from uidkeeper.core.core import Service
from uidkeeper.core.db import store_errors
from uidkeeper.core.modules.bot.commands import UidCommandHandler, render_reply
from uidkeeper.core.modules.bot.connection import (
    ApplicationFactory,
    BotConnection,
    ConnectionSettings,
    build_application,
)
from uidkeeper.core.modules.bot.models import Bot, BotDiagnostics, BotStatus, BotView, ConnectionState, mask_token
from uidkeeper.errors import ConflictError, UpstreamError, ValidationError
from uidkeeper.utils import unix_now

logger = structlog.get_logger(__name__)


class BotService(Service):
    """Registered bots and their live connections."""

    application_factory: ApplicationFactory = staticmethod(build_application)  # type: ignore[assignment]

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("bots")
        self._connections: dict[str, BotConnection] = {}
        self._restore_task: asyncio.Task[None] | None = None

    async def on_start(self) -> None:
        await self._collection.create_index([("token", 1)], unique=True)
        if self.core.config.bot_autostart:
            self._restore_task = asyncio.create_task(self._restore_connections())
        logger.debug("bot_service_started")

    async def on_stop(self) -> None:
        if self._restore_task is not None:
            self._restore_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._restore_task
            self._restore_task = None
        await asyncio.gather(*(connection.stop() for connection in self._connections.values()))
        self._connections.clear()

    async def get_bot(self, token: str) -> Bot | None:
        async with store_errors("get_bot"):
            doc = await self._collection.find_one({"token": token})
        return Bot.model_validate(doc) if doc is not None else None

    async def get_all_bots(self) -> list[Bot]:
        async with store_errors("list_bots"):
            return await Bot.list_cursor(self._collection.find())

    async def list_bots(self) -> list[BotView]:
        """All bots, enriched with the state of their live connection."""
        return [BotView.from_domain(bot, self.connection_state(bot.token)) for bot in await self.get_all_bots()]

    async def get_diagnostics(self) -> list[BotDiagnostics]:
        diagnostics = []
        for bot in await self.get_all_bots():
            connection = self._connections.get(bot.token)
            state = self.connection_state(bot.token)
            diagnostics.append(
                BotDiagnostics(
                    name=bot.name,
                    token=mask_token(bot.token),
                    db_status=bot.status,
                    actual_status="CONNECTED" if state == ConnectionState.CONNECTED else "DISCONNECTED",
                    state=state,
                    reconnect_attempts=connection.reconnect_attempts if connection else 0,
                    last_heartbeat=connection.last_heartbeat if connection else None,
                    last_error=connection.last_error if connection else None,
                )
            )
        return diagnostics

    async def register_bot(self, token: str, name: str) -> Bot:
        """Persist a bot and start connecting it in the background."""
        token, name = token.strip(), name.strip()
        if not token or not name:
            raise ValidationError("Bot token and name required")

        bot = Bot(token=token, name=name)
        async with store_errors("register_bot"):
            try:
                await self._collection.insert_one(bot.to_mongo())
            except DuplicateKeyError as e:
                raise ConflictError("Bot token already registered") from e
        logger.info("bot_registered", bot=name, token=mask_token(token))
        self.start_connection(bot)
        return bot

    async def delete_bot(self, token: str) -> bool:
        """Stop the bot's connection and delete its record."""
        await self.stop_connection(token)
        async with store_errors("delete_bot"):
            result = await self._collection.delete_one({"token": token})
        deleted = result.deleted_count > 0
        if deleted:
            logger.info("bot_deleted", token=mask_token(token))
        return deleted

    def connection_state(self, token: str) -> ConnectionState:
        connection = self._connections.get(token)
        return connection.state if connection else ConnectionState.DISCONNECTED

    def start_connection(self, bot: Bot) -> BotConnection:
        connection = self._connections.get(bot.token)
        if connection is None:
            handler = UidCommandHandler(self.core.services.uid, self.core.config.max_uid_hours)
            footer = f"UID Whitelist | {bot.name}"

            async def dispatch(command: str, args: list[str]) -> str:
                return render_reply(await handler.dispatch(command, args), footer)

            connection = BotConnection(
                token=bot.token,
                name=bot.name,
                dispatch=dispatch,
                settings=ConnectionSettings.from_config(self.core.config),
                on_change=self._on_connection_change,
                application_factory=self.application_factory,
            )
            self._connections[bot.token] = connection
        connection.start()
        return connection

    async def stop_connection(self, token: str) -> None:
        connection = self._connections.pop(token, None)
        if connection is not None:
            await connection.stop()

    async def update_status(self, token: str, status: BotStatus) -> None:
        async with store_errors("update_bot_status"):
            await self._collection.update_one({"token": token}, {"$set": {"status": status, "last_heartbeat": unix_now()}})

    async def _on_connection_change(self, connection: BotConnection) -> None:
        if connection.state == ConnectionState.CONNECTING:
            return
        status = BotStatus.ONLINE if connection.is_connected else BotStatus.OFFLINE
        try:
            await self.update_status(connection.token, status)
        except UpstreamError as e:
            logger.warning("bot_status_update_failed", bot=connection.name, error=str(e))

    async def _restore_connections(self) -> None:
        """Reconnect every persisted bot, spaced out to avoid a burst of logins."""
        try:
            bots = await self.get_all_bots()
        except UpstreamError as e:
            logger.error("bot_restore_failed", error=str(e))
            return
        logger.info("bot_restore_started", count=len(bots))
        for bot in bots:
            self.start_connection(bot)
            await asyncio.sleep(self.core.config.bot_startup_stagger_seconds)
