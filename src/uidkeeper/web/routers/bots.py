from fastapi import APIRouter
from pydantic import BaseModel, Field

from uidkeeper.core.modules.bot.models import BotDiagnostics, BotView
from uidkeeper.web.deps import AppDep, AuthTokenDep
from uidkeeper.web.openapi import ErrorResponse, SuccessResponse

router = APIRouter(tags=["bots"])


class RegisterBotRequest(BaseModel):
    """Request to register a chat bot."""

    bot_token: str = Field(..., alias="botToken", min_length=1, description="Telegram Bot API token from @BotFather")
    name: str = Field(..., min_length=1, description="Display name")

    model_config = {"populate_by_name": True}


class RegisterBotResponse(BaseModel):
    success: bool = Field(True)
    bot: BotView


class BotStatusReport(BaseModel):
    bots: list[BotDiagnostics]


@router.get(
    "/bots",
    summary="List bots",
    description="Registered bots with the status of their live connection. Only accessible by admin users.",
    operation_id="listBots",
    responses={
        200: {"description": "Registered bots"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
    },
)
async def list_bots(app: AppDep, auth_token: AuthTokenDep) -> list[BotView]:
    return await app.get_bots(auth_token)


@router.get(
    "/bots/status",
    summary="Check bot connections",
    description="Compare stored and actual connection status of every bot. Tokens are masked.",
    operation_id="getBotStatus",
    responses={
        200: {"description": "Per-bot diagnostics"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
    },
)
async def get_bot_status(app: AppDep, auth_token: AuthTokenDep) -> BotStatusReport:
    return BotStatusReport(bots=await app.get_bot_diagnostics(auth_token))


@router.post(
    "/bots",
    summary="Register bot",
    description="Register a bot token and start connecting it in the background. Only accessible by admin users.",
    operation_id="registerBot",
    responses={
        200: {"description": "Bot registered"},
        400: {"model": ErrorResponse, "description": "Missing token or name"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
        409: {"model": ErrorResponse, "description": "Bot token already registered"},
    },
)
async def register_bot(request: RegisterBotRequest, app: AppDep, auth_token: AuthTokenDep) -> RegisterBotResponse:
    return RegisterBotResponse(bot=await app.register_bot(auth_token, request.bot_token, request.name))


@router.delete(
    "/bots/{bot_token}",
    summary="Delete bot",
    description="Disconnect a bot and delete its registration. Only accessible by admin users.",
    operation_id="deleteBot",
    responses={
        200: {"description": "Bot deleted"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
        404: {"model": ErrorResponse, "description": "Bot not found"},
    },
)
async def delete_bot(bot_token: str, app: AppDep, auth_token: AuthTokenDep) -> SuccessResponse:
    await app.delete_bot(auth_token, bot_token)
    return SuccessResponse()
