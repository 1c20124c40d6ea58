"""Supervised Telegram connection for one registered bot.

The connection is an explicit state machine::

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
                         \\-> DISCONNECTED (connect failed)

A single asyncio task drives it. After a lost or failed connection the task
waits a fixed delay and tries again, giving up after a bounded number of
consecutive failures. A rejected token is never retried. The ledger is only
reached through the command dispatcher, so a stuck connection cannot block
ledger operations.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from telegram import Update
from telegram.error import InvalidToken, TelegramError
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

from uidkeeper.config import Config
from uidkeeper.core.modules.bot.commands import BOT_COMMANDS
from uidkeeper.core.modules.bot.models import ConnectionState, mask_token
from uidkeeper.utils import unix_now

logger = structlog.get_logger(__name__)

Dispatch = Callable[[str, list[str]], Awaitable[str]]
ApplicationFactory = Callable[[str, Dispatch], Application]
ChangeListener = Callable[["BotConnection"], Awaitable[None]]

_TRANSITIONS: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED},
}


@dataclass(frozen=True)
class ConnectionSettings:
    connect_timeout: float = 60
    heartbeat_interval: float = 30
    reconnect_attempts: int = 5
    reconnect_delay: float = 5

    @classmethod
    def from_config(cls, config: Config) -> "ConnectionSettings":
        return cls(
            connect_timeout=config.bot_connect_timeout_seconds,
            heartbeat_interval=config.bot_heartbeat_interval_seconds,
            reconnect_attempts=config.bot_reconnect_attempts,
            reconnect_delay=config.bot_reconnect_delay_seconds,
        )


def build_application(token: str, dispatch: Dispatch) -> Application:
    """Create a polling Telegram application that routes uid commands to ``dispatch``."""
    application = ApplicationBuilder().token(token).build()
    for bot_command in BOT_COMMANDS:
        application.add_handler(CommandHandler(bot_command.command, _command_callback(bot_command.command, dispatch)))
    return application


def _command_callback(command: str, dispatch: Dispatch) -> Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[None]]:
    async def callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.effective_message
        if message is None:
            return
        user = update.effective_user
        # Ledger log events emitted while handling the command carry who issued it
        with structlog.contextvars.bound_contextvars(command=command, chat_user=user.username if user else None):
            logger.info("bot_command_received")
            text = await dispatch(command, list(context.args or []))
        await message.reply_html(text)

    return callback


class BotConnection:
    """Connection state machine for one bot token."""

    def __init__(
        self,
        token: str,
        name: str,
        dispatch: Dispatch,
        settings: ConnectionSettings,
        on_change: ChangeListener,
        application_factory: ApplicationFactory = build_application,
    ) -> None:
        self.token = token
        self.name = name
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self.last_heartbeat: int | None = None
        self.last_error: str | None = None
        self.gave_up = False
        self._dispatch = dispatch
        self._settings = settings
        self._on_change = on_change
        self._application_factory = application_factory
        self._task: asyncio.Task[None] | None = None
        self._log = logger.bind(bot=name, token=mask_token(token))

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the supervising task. Does nothing if it is already running."""
        if self.is_running:
            return
        self.gave_up = False
        self.reconnect_attempts = 0
        self._task = asyncio.create_task(self._supervise(), name=f"bot-connection:{self.name}")

    async def stop(self) -> None:
        """Cancel the supervising task and wait until the connection is torn down."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._log.info("bot_stopped")

    async def wait_closed(self) -> None:
        """Wait for the supervising task to finish on its own."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _supervise(self) -> None:
        while True:
            if await self._run_session():
                self.reconnect_attempts = 0
            if self.gave_up:
                return
            self.reconnect_attempts += 1
            if self.reconnect_attempts > self._settings.reconnect_attempts:
                self.gave_up = True
                self._log.error("bot_reconnect_exhausted", attempts=self._settings.reconnect_attempts)
                return
            self._log.info(
                "bot_reconnect_scheduled",
                attempt=self.reconnect_attempts,
                max_attempts=self._settings.reconnect_attempts,
                delay=self._settings.reconnect_delay,
            )
            await asyncio.sleep(self._settings.reconnect_delay)

    async def _run_session(self) -> bool:
        """Connect, then hold the connection until it fails. Returns whether it ever connected."""
        await self._set_state(ConnectionState.CONNECTING)
        try:
            application = self._application_factory(self.token, self._dispatch)
        except InvalidToken as e:
            self.last_error = str(e)
            self.gave_up = True
            self._log.error("bot_token_rejected", error=str(e))
            await self._set_state(ConnectionState.DISCONNECTED)
            return False

        try:
            try:
                await asyncio.wait_for(self._connect(application), timeout=self._settings.connect_timeout)
            except InvalidToken as e:
                self.last_error = str(e)
                self.gave_up = True
                self._log.error("bot_token_rejected", error=str(e))
                return False
            except (TelegramError, TimeoutError) as e:
                self.last_error = str(e) or type(e).__name__
                self._log.warning("bot_connect_failed", error=self.last_error)
                return False
            except RuntimeError as e:
                # Misbuilt application, retrying cannot help
                self.last_error = str(e)
                self.gave_up = True
                self._log.error("bot_application_unusable", error=str(e))
                return False

            self.last_error = None
            self.last_heartbeat = unix_now()
            await self._set_state(ConnectionState.CONNECTED)
            self._log.info("bot_online")
            await self._watch(application)
            return True
        finally:
            await self._teardown(application)
            await self._set_state(ConnectionState.DISCONNECTED)

    async def _connect(self, application: Application) -> None:
        await application.initialize()
        await application.bot.set_my_commands(BOT_COMMANDS)
        await application.start()
        if application.updater is None:
            raise RuntimeError("Application was built without an updater")
        await application.updater.start_polling(drop_pending_updates=True)

    async def _watch(self, application: Application) -> None:
        """Heartbeat until the bot stops answering or polling stops."""
        while True:
            await asyncio.sleep(self._settings.heartbeat_interval)
            if application.updater is None or not application.updater.running:
                self.last_error = "Polling stopped"
                self._log.warning("bot_polling_stopped")
                return
            try:
                await asyncio.wait_for(application.bot.get_me(), timeout=self._settings.connect_timeout)
            except (TelegramError, TimeoutError) as e:
                self.last_error = str(e) or type(e).__name__
                self._log.warning("bot_heartbeat_failed", error=self.last_error)
                return
            self.last_heartbeat = unix_now()
            self._log.debug("bot_heartbeat")
            await self._on_change(self)

    async def _teardown(self, application: Application) -> None:
        try:
            if application.updater is not None and application.updater.running:
                await application.updater.stop()
            if application.running:
                await application.stop()
            await application.shutdown()
        except (TelegramError, RuntimeError) as e:
            self._log.warning("bot_teardown_failed", error=str(e))

    async def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid bot connection transition {self.state} -> {state}")
        self._log.debug("bot_state_changed", previous=self.state, state=state)
        self.state = state
        await self._on_change(self)
