from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from uidkeeper.core.modules.uid.models import DEFAULT_UID_HOURS, UidView
from uidkeeper.web.deps import AppDep, AuthTokenDep
from uidkeeper.web.openapi import ErrorResponse, SuccessResponse

router = APIRouter(tags=["uids"])


class CreateUidRequest(BaseModel):
    """Request to whitelist a new uid."""

    uid: str = Field(..., min_length=1, description="Identifier to whitelist")
    hours: float = Field(..., allow_inf_nan=False, description="Hours until expiry, at least 1, may be fractional")

    model_config = {"json_schema_extra": {"examples": [{"uid": "1234567890", "hours": 24}]}}


class UpdateUidRequest(BaseModel):
    """Request to reset a uid's expiry to now + hours."""

    hours: float = Field(DEFAULT_UID_HOURS, allow_inf_nan=False, description="Hours until expiry, at least 1, may be fractional")


class ClearUidsResponse(BaseModel):
    success: bool = Field(True)
    deleted_count: int = Field(..., serialization_alias="deletedCount", description="Number of deleted uids")


@router.get(
    "/uids",
    summary="List all uids",
    description="Get every whitelisted uid with its status derived at request time.",
    operation_id="listUids",
    responses={
        200: {"description": "All uids"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def list_uids(app: AppDep, auth_token: AuthTokenDep) -> list[UidView]:
    return await app.get_all_uids(auth_token)


@router.get(
    "/uids/active",
    summary="List active uids",
    operation_id="listActiveUids",
    responses={
        200: {"description": "Uids that have not expired"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def list_active_uids(app: AppDep, auth_token: AuthTokenDep) -> list[UidView]:
    return await app.get_active_uids(auth_token)


@router.get(
    "/uids/expired",
    summary="List expired uids",
    operation_id="listExpiredUids",
    responses={
        200: {"description": "Uids past their expiry that were not cleaned up yet"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def list_expired_uids(app: AppDep, auth_token: AuthTokenDep) -> list[UidView]:
    return await app.get_expired_uids(auth_token)


@router.get(
    "/uids/lookup",
    summary="Get uid",
    description="Look up one uid. The uid is a query parameter so it never collides with the fixed /uids/* routes.",
    operation_id="getUid",
    responses={
        200: {"description": "The uid with its derived status"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "UID not found"},
    },
)
async def get_uid(
    uid: Annotated[str, Query(min_length=1, description="Identifier to look up")], app: AppDep, auth_token: AuthTokenDep
) -> UidView:
    return await app.get_uid(auth_token, uid)


@router.post(
    "/uids",
    summary="Create uid",
    description="Whitelist a uid for the given number of hours. Fails if the uid already exists.",
    operation_id="createUid",
    responses={
        200: {"description": "Created uid"},
        400: {"model": ErrorResponse, "description": "Invalid uid or hours"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        409: {"model": ErrorResponse, "description": "UID already exists"},
    },
)
async def create_uid(request: CreateUidRequest, app: AppDep, auth_token: AuthTokenDep) -> UidView:
    return await app.create_uid(auth_token, request.uid, request.hours)


@router.patch(
    "/uids/{uid}",
    summary="Extend uid",
    description="Set the uid's expiry to now plus the given hours, creating it if missing.",
    operation_id="updateUid",
    responses={
        200: {"description": "Updated uid"},
        400: {"model": ErrorResponse, "description": "Invalid hours"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def update_uid(uid: str, request: UpdateUidRequest, app: AppDep, auth_token: AuthTokenDep) -> UidView:
    return await app.update_uid(auth_token, uid, request.hours)


@router.delete(
    "/uids/{uid}",
    summary="Delete uid",
    operation_id="deleteUid",
    responses={
        200: {"description": "UID deleted"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "UID not found"},
    },
)
async def delete_uid(uid: str, app: AppDep, auth_token: AuthTokenDep) -> SuccessResponse:
    await app.delete_uid(auth_token, uid)
    return SuccessResponse()


@router.delete(
    "/uids",
    summary="Delete all uids",
    description="Remove every uid from the whitelist. Only accessible by admin users.",
    operation_id="clearUids",
    responses={
        200: {"description": "Number of deleted uids"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
    },
)
async def clear_uids(app: AppDep, auth_token: AuthTokenDep) -> ClearUidsResponse:
    return ClearUidsResponse(deleted_count=await app.clear_uids(auth_token))
