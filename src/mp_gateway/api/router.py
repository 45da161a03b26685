"""Identity endpoints: register, login, refresh and the caller's own profile.

Register, login and refresh are the only unauthenticated routes under /api/v1.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.container import Container, get_container
from src.mp_common.database import get_db_session
from src.mp_common.response import ApiResponse, respond
from src.mp_gateway.auth.dependencies import get_current_user
from src.mp_gateway.user.db_models import UserModel
from src.mp_gateway.user.schemas import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    Principal,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
)
from src.mp_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()

_ACCESS_TTL_SECONDS = settings.JWT_EXPIRE_MINUTES * 60


def _principal(user: UserModel) -> Principal:
    return Principal(user_id=str(user.id), username=user.username, email=user.email)


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def register(
    request: Request,
    body: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.register(body.username, body.email, body.password, db)
    data = RegisterResponse(
        **_principal(user).model_dump(),
        balance_cents=0,
        created_at=user.created_at.isoformat(),
    )
    return respond(request, data.model_dump(), "User registered successfully")


@router.post("/login", response_model=ApiResponse)
async def login(
    request: Request,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user, access_token, refresh_token = await _service.login(body.username, body.password, db)
    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=_ACCESS_TTL_SECONDS,
        user=_principal(user),
    )
    return respond(request, data.model_dump(), "Login successful")


@router.post("/refresh", response_model=ApiResponse)
async def refresh_token(request: Request, body: RefreshRequest) -> ApiResponse:
    access_token = await _service.refresh(body.refresh_token)
    data = RefreshResponse(access_token=access_token, expires_in=_ACCESS_TTL_SECONDS)
    return respond(request, data.model_dump(), "Token refreshed")


@router.get("/me", response_model=ApiResponse)
async def me(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    container: Annotated[Container, Depends(get_container)],
) -> ApiResponse:
    """The caller plus their current wallet balance."""
    principal = _principal(current_user)
    balance = await container.accounts.get_balance(db, principal.user_id)
    data = MeResponse(
        **principal.model_dump(),
        balance_cents=balance.balance_cents,
        balance_display=balance.balance_display,
    )
    return respond(request, data.model_dump())
