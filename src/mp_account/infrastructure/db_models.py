"""ORM mirror of the wallet tables (migrations 003 and 004).

Repositories talk raw SQL; these classes pin the column set and constraints
the SQL relies on so a drift between the two is caught in tests.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.mp_common.database import Base
from src.mp_common.enums import LedgerEntryType

_ENTRY_TYPES = ", ".join(f"'{t.value}'" for t in LedgerEntryType)


class AccountORM(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance_cents >= 0", name="ck_accounts_balance_gte_0"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    balance_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # bumped on every balance change
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class LedgerEntryORM(Base):
    """Append-only; one row per wallet movement, signed from the wallet's side."""

    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint(f"entry_type IN ({_ENTRY_TYPES})", name="ck_ledger_entry_type"),
        CheckConstraint("balance_after >= 0", name="ck_ledger_balance_gte_0"),
        Index("idx_ledger_user_time", "user_id", "created_at"),
        Index("idx_ledger_reference", "reference_type", "reference_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entry_type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # LISTING, OFFER or ORDER plus the id it points at
    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
