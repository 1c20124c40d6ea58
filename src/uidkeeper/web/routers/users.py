from fastapi import APIRouter

from uidkeeper.core.modules.user.models import UserView
from uidkeeper.web.deps import AppDep, AuthTokenDep
from uidkeeper.web.openapi import ErrorResponse

router = APIRouter(tags=["users"])


@router.get(
    "/users",
    summary="List all users",
    description="Get all users in the system. Only accessible by admin users.",
    operation_id="listUsers",
    responses={
        200: {"description": "List of all users"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
    },
)
async def list_users(app: AppDep, auth_token: AuthTokenDep) -> list[UserView]:
    return await app.get_all_users(auth_token)
