"""Wallet surface over the ledger.

Deposit and withdraw stand in for an external payment rail: each is one
ledger movement in its own transaction. Balance and ledger reads run without
an explicit transaction.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.application.schemas import (
    BalanceResponse,
    DepositResponse,
    LedgerEntryItem,
    LedgerResponse,
    WithdrawResponse,
    cursor_decode,
    cursor_encode,
)
from src.mp_account.domain.models import Account, LedgerEntry
from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.enums import LedgerEntryType
from src.mp_common.errors import AccountNotFoundError

logger = logging.getLogger(__name__)


class AccountApplicationService:
    def __init__(self, repo: AccountRepositoryProtocol | None = None) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        account = await self._repo.get_account_by_user_id(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return BalanceResponse.from_cents(user_id=user_id, balance=account.balance_cents)

    async def deposit(
        self, db: AsyncSession, user_id: str, amount_cents: int
    ) -> DepositResponse:
        account, entry = await self._move(
            db, user_id, amount_cents, LedgerEntryType.DEPOSIT, "Wallet top-up"
        )
        return DepositResponse.from_result(
            balance=account.balance_cents, amount=amount_cents, entry_id=entry.id
        )

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount_cents: int
    ) -> WithdrawResponse:
        account, entry = await self._move(
            db, user_id, amount_cents, LedgerEntryType.WITHDRAW, "Wallet cash-out"
        )
        return WithdrawResponse.from_result(
            balance=account.balance_cents, amount=amount_cents, entry_id=entry.id
        )

    async def _move(
        self,
        db: AsyncSession,
        user_id: str,
        amount_cents: int,
        entry_type: LedgerEntryType,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        move = (
            self._repo.credit_cents
            if entry_type is LedgerEntryType.DEPOSIT
            else self._repo.debit_cents
        )
        try:
            account, entry = await move(
                db, user_id, amount_cents, entry_type,
                ref_type=entry_type.value, description=description,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "%s: user=%s amount=%d balance=%d",
            entry_type.value, user_id, amount_cents, account.balance_cents,
        )
        return account, entry

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
        reference_id: str | None = None,
    ) -> LedgerResponse:
        """One page of the caller's ledger, newest first.

        `reference_id` narrows the page to the movements of a single offer or
        order, e.g. the hold, release or purchase behind one negotiation.
        """
        cursor_id = cursor_decode(cursor)
        # one extra row tells whether another page exists
        entries = await self._repo.list_ledger_entries(
            db, user_id, cursor_id, limit + 1, entry_type, reference_id
        )
        page = entries[:limit]
        has_more = len(entries) > limit
        return LedgerResponse(
            items=[LedgerEntryItem.from_entry(e) for e in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )
