from fastapi import APIRouter
from pydantic import BaseModel, Field

from uidkeeper.core.modules.uid.models import UidStatistics
from uidkeeper.web.deps import AppDep, AuthTokenDep
from uidkeeper.web.openapi import ErrorResponse

router = APIRouter(tags=["stats"])


class CleanupResponse(BaseModel):
    success: bool = Field(True)
    deleted_count: int = Field(..., serialization_alias="deletedCount", description="Number of expired uids removed")


@router.post(
    "/cleanup",
    summary="Remove expired uids",
    description="Delete every uid whose expiry has passed.",
    operation_id="cleanupExpiredUids",
    responses={
        200: {"description": "Number of removed uids"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def cleanup(app: AppDep, auth_token: AuthTokenDep) -> CleanupResponse:
    return CleanupResponse(deleted_count=await app.cleanup_expired_uids(auth_token))


@router.get(
    "/stats",
    summary="Get uid statistics",
    description="Total, active and expired counts taken at one instant.",
    operation_id="getStatistics",
    responses={
        200: {"description": "Statistics"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_statistics(app: AppDep, auth_token: AuthTokenDep) -> UidStatistics:
    return await app.get_statistics(auth_token)
