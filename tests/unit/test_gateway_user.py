"""Unit tests for registration schemas and UserService (mocked session)."""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError

from src.mp_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.mp_gateway.user.db_models import UserModel
from src.mp_gateway.user.schemas import RegisterRequest
from src.mp_gateway.user.service import UserService


def _user(is_active: bool = True) -> UserModel:
    user = UserModel()
    user.id = uuid.uuid4()
    user.username = "jamie"
    user.email = "jamie@example.com"
    user.password_hash = "$2b$12$notarealhash"
    user.is_active = is_active
    user.created_at = datetime(2026, 3, 2, tzinfo=UTC)
    return user


def _lookup(found: UserModel | None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = found
    return result


class TestRegisterRequest:
    def test_valid(self) -> None:
        req = RegisterRequest(username="jamie_d", email="j@example.com", password="Secret123")
        assert req.username == "jamie_d"

    @pytest.mark.parametrize("password", ["short1A", "alllower1", "ALLUPPER1", "NoDigitsHere"])
    def test_weak_passwords(self, password: str) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="jamie", email="j@example.com", password=password)

    def test_username_charset(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="jamie!", email="j@example.com", password="Secret123")


class TestRegister:
    async def test_creates_user_and_wallet(self) -> None:
        accounts = AsyncMock()
        db = AsyncMock()
        db.add = MagicMock()
        db.execute = AsyncMock(side_effect=[_lookup(None), _lookup(None)])

        async def assign_id() -> None:
            db.add.call_args.args[0].id = uuid.uuid4()

        db.flush = AsyncMock(side_effect=assign_id)
        user = await UserService(accounts=accounts).register(
            "jamie", "jamie@example.com", "Secret123", db
        )

        accounts.create_account.assert_awaited_once_with(db, str(user.id))
        db.commit.assert_awaited_once()
        assert user.password_hash != "Secret123"

    async def test_email_stored_lowercased(self) -> None:
        db = AsyncMock()
        db.add = MagicMock()
        db.execute = AsyncMock(side_effect=[_lookup(None), _lookup(None)])

        async def assign_id() -> None:
            db.add.call_args.args[0].id = uuid.uuid4()

        db.flush = AsyncMock(side_effect=assign_id)
        user = await UserService(accounts=AsyncMock()).register(
            "jamie", " Jamie@Example.COM ", "Secret123", db
        )
        assert user.email == "jamie@example.com"

    async def test_duplicate_username(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_lookup(_user()))
        with pytest.raises(UsernameExistsError):
            await UserService(accounts=AsyncMock()).register("jamie", "x@example.com", "Secret123", db)
        db.rollback.assert_awaited_once()

    async def test_duplicate_email(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(side_effect=[_lookup(None), _lookup(_user())])
        with pytest.raises(EmailExistsError):
            await UserService(accounts=AsyncMock()).register("new", "jamie@example.com", "Secret123", db)


class TestLogin:
    async def test_unknown_user(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_lookup(None))
        with pytest.raises(InvalidCredentialsError):
            await UserService(accounts=AsyncMock()).login("nobody", "Secret123", db)

    async def test_disabled_user(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_lookup(_user(is_active=False)))
        with (
            patch("src.mp_gateway.user.service.verify_password", return_value=True),
            pytest.raises(AccountDisabledError),
        ):
            await UserService(accounts=AsyncMock()).login("jamie", "Secret123", db)

    async def test_token_pair(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(return_value=_lookup(_user()))
        service = UserService(accounts=AsyncMock())
        with patch("src.mp_gateway.user.service.verify_password", return_value=True):
            user, access, refresh = await service.login("jamie", "Secret123", db)
        assert access != refresh
        assert await service.refresh(refresh)
