"""SQLAlchemy ORM models for orders and order_status_history.

These map to tables created by Alembic migrations and serve as DDL reference;
repositories query with raw SQL.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.mp_common.database import Base


class OrderORM(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    listing_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False)
    offer_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="PAID")
    item_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    shipping_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Escrow
    escrow_held_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    escrow_status: Mapped[str] = mapped_column(String(10), nullable=False, default="HELD")
    escrow_released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    seller_payout_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # Refund (at most one per order)
    refund_mode: Mapped[str | None] = mapped_column(String(10), nullable=True)
    refund_amount_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    refund_fee_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    refund_seller_debit_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(String(40), nullable=True)
    refund_issued_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    tracking_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    listing_snapshot: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    shipping_address: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class OrderStatusHistoryORM(Base):
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # append-only, no updated_at
