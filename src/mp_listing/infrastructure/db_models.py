"""SQLAlchemy ORM models for listings and favorites (DDL reference only: queries use raw SQL)."""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.mp_common.database import Base


class ListingORM(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    designer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[str | None] = mapped_column(String(20), nullable=True)
    thumbnail: Mapped[str | None] = mapped_column(String(500), nullable=True)
    price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    original_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    buyer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_sold: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_free_shipping: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shipping_regions: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    can_offer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    favorites_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sold_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class FavoriteORM(Base):
    __tablename__ = "favorites"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    listing_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
