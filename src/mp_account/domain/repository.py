"""Ledger Protocol: dependency inversion for testability.

Every other context moves money only through `credit_cents` / `debit_cents`.
Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.domain.models import Account, LedgerEntry


class AccountRepositoryProtocol(Protocol):
    async def create_account(self, db: AsyncSession, user_id: str) -> Account: ...

    async def get_account_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Account | None: ...

    async def credit_cents(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Account, LedgerEntry]: ...

    async def debit_cents(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Account, LedgerEntry]: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
        reference_id: str | None = None,
    ) -> list[LedgerEntry]: ...
