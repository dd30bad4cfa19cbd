import structlog
from fastapi import APIRouter, Request

from schooldata.exceptions import AuthenticationError
from schooldata.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    UserResponse,
)
from schooldata.services.auth import authenticate_user, create_access_token, get_profile
from schooldata.utils.deps import CurrentUser, DbSession

logger = structlog.get_logger()

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, request: Request, db: DbSession) -> LoginResponse:
    """
    Exchange credentials for a bearer token.

    The ``email`` field also accepts a learner reference number.
    """
    user = await authenticate_user(
        db,
        data.email,
        data.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    token = create_access_token(user)
    logger.info("User logged in", user_id=user["id"], role=user["role"])
    return LoginResponse(token=token, user=UserResponse(**user))


@router.get("/me", response_model=MeResponse)
async def me(current_user: CurrentUser, db: DbSession) -> MeResponse:
    profile = await get_profile(db, current_user["id"])
    if profile is None:
        raise AuthenticationError("User not found")
    return MeResponse(user=UserResponse(**profile))


@router.post("/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    # Tokens are stateless; the client drops its copy.
    return MessageResponse(message="Logged out successfully")
