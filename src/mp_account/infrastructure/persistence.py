"""AccountRepository: concrete implementation of AccountRepositoryProtocol.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING.
A debit is a single conditional update (`balance_cents >= :amount`); a result
of 0 rows means the account could not cover it. Never read-then-write.

Transaction ownership: The CALLER (application service) is responsible for
committing or rolling back.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.domain.models import Account, LedgerEntry
from src.mp_common.errors import AccountNotFoundError, InsufficientFundsError, InternalError

_ACCOUNT_COLUMNS = "id, user_id, balance_cents, version, created_at, updated_at"

_CREATE_ACCOUNT_SQL = text(f"""
    INSERT INTO accounts (user_id, balance_cents, version)
    VALUES (:user_id, 0, 0)
    RETURNING {_ACCOUNT_COLUMNS}
""")

_CREDIT_SQL = text(f"""
    UPDATE accounts
    SET balance_cents = balance_cents + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_DEBIT_SQL = text(f"""
    UPDATE accounts
    SET balance_cents = balance_cents - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND balance_cents >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE user_id = :user_id
""")

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (user_id, entry_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:user_id, :entry_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    RETURNING id, user_id, entry_type, amount, balance_after,
              reference_type, reference_id, description, created_at
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, user_id, entry_type, amount, balance_after,
           reference_type, reference_id, description, created_at
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = :entry_type)
      AND (CAST(:reference_id AS TEXT) IS NULL OR reference_id = :reference_id)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> Account:
    return Account(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance_cents=row.balance_cents,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class AccountRepository:
    """Every balance change is a single atomic SQL statement."""

    async def create_account(self, db: AsyncSession, user_id: str) -> Account:
        result = await db.execute(_CREATE_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        if row is None:
            raise InternalError("Account insert returned no row")
        return _row_to_account(row)

    async def get_account_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def credit_cents(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Account, LedgerEntry]:
        if amount <= 0:
            raise ValueError(f"credit amount must be positive, got {amount}")
        result = await db.execute(_CREDIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        account = _row_to_account(row)
        entry = await self._write_entry(
            db, account, entry_type, amount, ref_type, ref_id, description
        )
        return account, entry

    async def debit_cents(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        entry_type: str,
        ref_type: str | None = None,
        ref_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Account, LedgerEntry]:
        if amount <= 0:
            raise ValueError(f"debit amount must be positive, got {amount}")
        result = await db.execute(_DEBIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            acc_result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})
            acc_row = acc_result.fetchone()
            if acc_row is None:
                raise AccountNotFoundError(user_id)
            raise InsufficientFundsError(amount, acc_row.balance_cents)
        account = _row_to_account(row)
        entry = await self._write_entry(
            db, account, entry_type, -amount, ref_type, ref_id, description
        )
        return account, entry

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
        reference_id: str | None = None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "reference_id": reference_id,
                "limit": limit,
            },
        )
        rows = result.fetchall()
        return [_row_to_ledger(row) for row in rows]

    async def _write_entry(
        self,
        db: AsyncSession,
        account: Account,
        entry_type: str,
        signed_amount: int,
        ref_type: str | None,
        ref_id: str | None,
        description: str | None,
    ) -> LedgerEntry:
        ledger_result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": account.user_id,
                "entry_type": getattr(entry_type, "value", entry_type),
                "amount": signed_amount,
                "balance_after": account.balance_cents,
                "reference_type": ref_type,
                "reference_id": ref_id,
                "description": description,
            },
        )
        ledger_row = ledger_result.fetchone()
        if ledger_row is None:
            raise InternalError("Ledger insert returned no row")
        return _row_to_ledger(ledger_row)
