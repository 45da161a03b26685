"""User domain service: register, login, refresh.

Registration creates the user and their zero-balance wallet account in one
transaction; the service commits or rolls back itself.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.mp_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.mp_gateway.auth.password import hash_password, verify_password
from src.mp_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


class UserService:
    """Stateless; one instance serves every request."""

    def __init__(self, accounts: AccountRepositoryProtocol | None = None) -> None:
        self._accounts: AccountRepositoryProtocol = accounts or AccountRepository()

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
    ) -> UserModel:
        """Register a new user and auto-create their wallet account."""
        email = email.strip().lower()
        try:
            # DB UNIQUE constraints are the final guard
            result = await db.execute(select(UserModel).where(UserModel.username == username))
            if result.scalar_one_or_none() is not None:
                raise UsernameExistsError()

            result = await db.execute(select(UserModel).where(UserModel.email == email))
            if result.scalar_one_or_none() is not None:
                raise EmailExistsError()

            user = UserModel(
                username=username,
                email=email,
                password_hash=hash_password(password),
                is_active=True,
            )
            db.add(user)
            await db.flush()  # Get user.id without committing

            await self._accounts.create_account(db, str(user.id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Registered user=%s", user.id)
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Authenticate user and return (user, access_token, refresh_token).

        "User not found" and "Wrong password" both raise InvalidCredentialsError
        so usernames cannot be enumerated.
        """
        result = await db.execute(select(UserModel).where(UserModel.username == username))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        return (
            user,
            create_access_token(str(user.id)),
            create_refresh_token(str(user.id)),
        )

    async def refresh(self, refresh_token: str) -> str:
        """Validate refresh token and return a new access token."""
        payload = decode_token(refresh_token, expected_type="refresh")
        return create_access_token(str(payload["sub"]))
