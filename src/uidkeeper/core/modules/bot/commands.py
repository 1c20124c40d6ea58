"""Chat commands that read and write the uid ledger.

Each command maps to exactly one ledger operation. Status and remaining hours
come from the ledger's views, never from arithmetic done here.
"""

import html
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum

import structlog
from telegram import BotCommand

from uidkeeper.core.modules.uid.models import DEFAULT_UID_HOURS, UidStatus
from uidkeeper.core.modules.uid.service import UidService
from uidkeeper.errors import UpstreamError, UserError, ValidationError

logger = structlog.get_logger(__name__)

VIEW_LIMIT = 10

BOT_COMMANDS = [
    BotCommand("uid_add", "Add a UID to whitelist"),
    BotCommand("uid_delete", "Delete a UID from whitelist"),
    BotCommand("uid_view", "View all UIDs"),
    BotCommand("uid_check", "Check if UID is whitelisted"),
]


class ReplyLevel(StrEnum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class CommandReply:
    level: ReplyLevel
    title: str
    description: str = ""
    lines: list[str] = field(default_factory=list)


def render_reply(reply: CommandReply, footer: str | None = None) -> str:
    """Render a reply as Telegram HTML."""
    parts = [f"<b>{html.escape(reply.title)}</b>"]
    if reply.description:
        parts.append(reply.description)
    parts.extend(reply.lines)
    if footer:
        parts.append(f"<i>{html.escape(footer)}</i>")
    return "\n".join(parts)


def _code(value: str) -> str:
    return f"<code>{html.escape(value)}</code>"


class UidCommandHandler:
    """Translates chat commands into ledger operations."""

    def __init__(self, ledger: UidService, max_hours: int) -> None:
        self._ledger = ledger
        self._max_hours = max_hours

    async def dispatch(self, command: str, args: Sequence[str]) -> CommandReply:
        """Parse arguments and run a command. Every failure becomes an error reply."""
        try:
            if command == "uid_add":
                uid = self._require_uid(args, "/uid_add <uid> [hours]")
                hours = self._parse_hours(args[1]) if len(args) > 1 else DEFAULT_UID_HOURS
                return await self.uid_add(uid, hours)
            if command == "uid_delete":
                return await self.uid_delete(self._require_uid(args, "/uid_delete <uid>"))
            if command == "uid_view":
                return await self.uid_view()
            if command == "uid_check":
                return await self.uid_check(self._require_uid(args, "/uid_check <uid>"))
            raise ValidationError(f"Unknown command: {command}")
        except UserError as e:
            logger.info("bot_command_rejected", command=command, error=str(e))
            return CommandReply(ReplyLevel.ERROR, "❌ Error", html.escape(str(e)))
        except UpstreamError as e:
            logger.exception("bot_command_failed", command=command, error=str(e))
            return CommandReply(ReplyLevel.ERROR, "❌ Error", "Storage is unavailable, try again later")

    async def uid_add(self, uid: str, hours: float = DEFAULT_UID_HOURS) -> CommandReply:
        view = await self._ledger.add_uid(uid, hours)
        return CommandReply(ReplyLevel.SUCCESS, "✅ UID Added", f"{_code(view.uid)} added for <b>{hours:g}h</b>")

    async def uid_delete(self, uid: str) -> CommandReply:
        if await self._ledger.remove_uid(uid):
            return CommandReply(ReplyLevel.SUCCESS, "✅ Deleted", f"{_code(uid)} removed")
        return CommandReply(ReplyLevel.ERROR, "❌ Not Found", f"{_code(uid)} not in system")

    async def uid_view(self) -> CommandReply:
        views = await self._ledger.list_all_uids()
        lines = []
        for view in views[:VIEW_LIMIT]:
            marker = "🟢" if view.status == UidStatus.ACTIVE else "⚫"
            lines.append(f"{marker} {_code(view.uid)} {view.remaining_hours}h left")
        if len(views) > VIEW_LIMIT:
            lines.append(f"… and {len(views) - VIEW_LIMIT} more")
        return CommandReply(ReplyLevel.INFO, f"📋 All UIDs ({len(views)})", lines=lines)

    async def uid_check(self, uid: str) -> CommandReply:
        view = await self._ledger.get_uid(uid)
        if view is None:
            return CommandReply(ReplyLevel.ERROR, "❌ Not Found", f"{_code(uid)} not whitelisted")
        if view.status == UidStatus.ACTIVE:
            return CommandReply(ReplyLevel.SUCCESS, "✅ Whitelisted", f"{_code(view.uid)} ACTIVE • {view.remaining_hours}h")
        return CommandReply(ReplyLevel.WARNING, "⏰ Expired", f"{_code(view.uid)} expired")

    def _require_uid(self, args: Sequence[str], usage: str) -> str:
        if not args or not args[0].strip():
            raise ValidationError(f"Usage: {usage}")
        return args[0]

    def _parse_hours(self, raw: str) -> float:
        try:
            hours = float(raw)
        except ValueError as e:
            raise ValidationError("Hours must be a number") from e
        if hours > self._max_hours:
            raise ValidationError(f"Hours must be at most {self._max_hours}")
        return hours
