"""Bearer-token dependencies for the marketplace routers.

Routers take the caller as a plain id string:

    @router.post("/offers")
    async def create_offer(user_id: CurrentUserId, ...): ...

That id is `str(users.id)`, the same key the wallet, listings, offers and
orders store.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_common.database import get_db_session
from src.mp_common.errors import AccountDisabledError, ForbiddenError, InvalidCredentialsError
from src.mp_gateway.auth.jwt_handler import decode_token
from src.mp_gateway.user.db_models import UserModel

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Resolve an access token to an active user.

    A missing, forged, expired or refresh token is a 401; a disabled user
    is AccountDisabledError.
    """
    try:
        payload = decode_token(token, expected_type="access")
    except InvalidCredentialsError:
        raise _UNAUTHORIZED from None

    subject: str | None = payload.get("sub")
    if not subject:
        raise _UNAUTHORIZED

    result = await db.execute(select(UserModel).where(UserModel.id == subject))
    user = result.scalar_one_or_none()
    if user is None:
        raise _UNAUTHORIZED
    if not user.is_active:
        raise AccountDisabledError()
    return user


async def current_user_id(
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> str:
    return str(current_user.id)


CurrentUserId = Annotated[str, Depends(current_user_id)]


async def require_admin(
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> UserModel:
    """Operators are configured by username in ADMIN_USERNAMES."""
    if current_user.username not in settings.ADMIN_USERNAMES:
        raise ForbiddenError("Admin privileges required")
    return current_user
