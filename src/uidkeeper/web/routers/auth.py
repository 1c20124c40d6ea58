from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from uidkeeper.core.modules.user.models import Role, UserView
from uidkeeper.web.deps import AUTH_COOKIE_NAME, AppDep, AuthTokenDep
from uidkeeper.web.openapi import ErrorResponse, SuccessResponse

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    """Authentication request."""

    username: str = Field(..., min_length=1, description="Username for authentication")
    password: str = Field(..., min_length=1, description="Password for authentication")


class LoginResponse(BaseModel):
    """Authentication response."""

    success: bool = Field(True)
    token: str = Field(..., description="Bearer token for subsequent requests")
    role: Role = Field(..., description="Role of the authenticated user")
    username: str = Field(..., description="Authenticated username")


class CreateUserRequest(BaseModel):
    """Request to create a new user."""

    username: str = Field(..., min_length=1, description="Username for the new user")
    password: str = Field(..., min_length=1, description="Password for the new user")


@router.post(
    "/auth/login",
    summary="Authenticate user",
    description="Authenticate with username and password to receive a bearer token.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        400: {"model": ErrorResponse, "description": "Malformed request"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, response: Response) -> LoginResponse:
    result = await app.login(login_data.username, login_data.password)

    # Set cookie for browser-based clients
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=result.token,
        httponly=True,
        samesite="lax",
        secure=False,  # Set to True in production with HTTPS
    )

    return LoginResponse(token=result.token, role=result.role, username=result.username)


@router.post(
    "/auth/logout",
    summary="End session",
    description="Invalidate the current session token.",
    operation_id="logout",
    status_code=204,
    responses={
        204: {"description": "Successfully logged out"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout(app: AppDep, auth_token: AuthTokenDep, response: Response) -> None:
    await app.logout(auth_token)
    response.delete_cookie(AUTH_COOKIE_NAME)


@router.get(
    "/auth/me",
    summary="Get current user",
    description="Get the username and role behind the current session.",
    operation_id="getCurrentUser",
    responses={
        200: {"description": "Current user"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_me(app: AppDep, auth_token: AuthTokenDep) -> UserView:
    return await app.get_current_user(auth_token)


@router.post(
    "/auth/create-user",
    summary="Create new user",
    description="Create a new account with the user role. Only accessible by admin users.",
    operation_id="createUser",
    responses={
        200: {"description": "User created successfully"},
        400: {"model": ErrorResponse, "description": "Invalid request"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
        409: {"model": ErrorResponse, "description": "User already exists"},
    },
)
async def create_user(create_data: CreateUserRequest, app: AppDep, auth_token: AuthTokenDep) -> SuccessResponse:
    await app.create_user(auth_token, create_data.username, create_data.password)
    return SuccessResponse()
