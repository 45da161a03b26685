"""OfferRepository: raw SQL persistence for offers.

Every status change goes through `transition`, whose UPDATE is filtered on
`status = 'pending'`. Accept, decline and expire racing on one offer therefore
resolve to exactly one winner; the losers get None and must not move funds.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.jsonb import from_json, to_json
from src.mp_offer.domain.models import Offer

_COLUMNS = """
    id, listing_id, buyer_id, seller_id, mode,
    amount_cents, shipping_cents, tax_cents, total_cents,
    status, funds_held, expires_at, responded_at, decline_reason,
    shipping_address, created_at, updated_at
"""

_O_COLUMNS = ", ".join(f"o.{c.strip()}" for c in _COLUMNS.split(","))

_INSERT_SQL = text(f"""
    INSERT INTO offers (id, listing_id, buyer_id, seller_id, mode,
        amount_cents, shipping_cents, tax_cents, total_cents,
        status, funds_held, expires_at, shipping_address, created_at)
    VALUES (:id, :listing_id, :buyer_id, :seller_id, :mode,
        :amount_cents, :shipping_cents, :tax_cents, :total_cents,
        'pending', :funds_held, :expires_at, CAST(:shipping_address AS JSONB), :created_at)
    ON CONFLICT (listing_id, buyer_id, mode) WHERE status = 'pending' DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM offers WHERE id = :id")

_TRANSITION_SQL = text(f"""
    WITH prior AS (
        SELECT id, funds_held FROM offers
        WHERE id = :id
          AND status = 'pending'
          AND (CAST(:due_by AS TIMESTAMPTZ) IS NULL
               OR (expires_at IS NOT NULL AND expires_at <= CAST(:due_by AS TIMESTAMPTZ)))
        FOR UPDATE
    )
    UPDATE offers AS o
    SET status = :status, funds_held = FALSE, responded_at = :now,
        decline_reason = :reason, updated_at = NOW()
    FROM prior
    WHERE o.id = prior.id
    RETURNING {_O_COLUMNS},
              prior.funds_held AS funds_were_held
""")

_HAS_PENDING_SQL = text("""
    SELECT 1 FROM offers
    WHERE listing_id = :listing_id AND buyer_id = :buyer_id
      AND mode = :mode AND status = 'pending'
    LIMIT 1
""")

_HAS_PENDING_BROADCAST_SQL = text("""
    SELECT 1 FROM offers
    WHERE listing_id = :listing_id AND mode = 'seller_broadcast' AND status = 'pending'
    LIMIT 1
""")

_LIST_WAVES_SQL = text("""
    SELECT amount_cents, MIN(created_at) AS first_at
    FROM offers
    WHERE listing_id = :listing_id AND mode = 'seller_broadcast'
    GROUP BY amount_cents
    ORDER BY first_at ASC
""")

_LIST_PENDING_SQL = text("""
    SELECT id FROM offers
    WHERE listing_id = :listing_id AND status = 'pending'
      AND (CAST(:exclude_id AS TEXT) IS NULL OR id <> :exclude_id)
    ORDER BY created_at ASC, id ASC
""")

_FIND_SELLER_OFFER_SQL = text(f"""
    SELECT {_COLUMNS} FROM offers
    WHERE listing_id = :listing_id AND buyer_id = :buyer_id
      AND mode IN ('seller_private', 'seller_broadcast') AND status = 'pending'
    ORDER BY created_at DESC
    LIMIT 1
""")

_LIST_DUE_SQL = text("""
    SELECT id FROM offers
    WHERE status = 'pending' AND expires_at IS NOT NULL AND expires_at <= :now
    ORDER BY expires_at ASC
    LIMIT :limit
""")


def _row_to_offer(row: Any) -> Offer:
    return Offer(
        id=row.id,
        listing_id=row.listing_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        mode=row.mode,
        amount_cents=row.amount_cents,
        shipping_cents=row.shipping_cents,
        tax_cents=row.tax_cents,
        status=row.status,
        funds_held=row.funds_held,
        expires_at=row.expires_at,
        responded_at=row.responded_at,
        decline_reason=row.decline_reason,
        shipping_address=from_json(row.shipping_address),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class OfferRepository:
    """Concrete implementation of OfferRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, offer: Offer) -> Offer | None:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": offer.id,
                "listing_id": offer.listing_id,
                "buyer_id": offer.buyer_id,
                "seller_id": offer.seller_id,
                "mode": offer.mode,
                "amount_cents": offer.amount_cents,
                "shipping_cents": offer.shipping_cents,
                "tax_cents": offer.tax_cents,
                "total_cents": offer.total_cents,
                "funds_held": offer.funds_held,
                "expires_at": offer.expires_at,
                "shipping_address": to_json(offer.shipping_address),
                "created_at": offer.created_at,
            },
        )
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def get_by_id(self, db: AsyncSession, offer_id: str) -> Offer | None:
        row = (await db.execute(_GET_SQL, {"id": offer_id})).fetchone()
        return _row_to_offer(row) if row else None

    async def transition(
        self,
        db: AsyncSession,
        offer_id: str,
        status: str,
        now: datetime,
        reason: str | None = None,
        due_by: datetime | None = None,
    ) -> tuple[Offer, bool] | None:
        result = await db.execute(
            _TRANSITION_SQL,
            {
                "id": offer_id,
                "status": status,
                "now": now,
                "reason": reason,
                "due_by": due_by,
            },
        )
        row = result.fetchone()
        if row is None:
            return None
        return _row_to_offer(row), bool(row.funds_were_held)

    async def has_pending(
        self, db: AsyncSession, listing_id: str, buyer_id: str, mode: str
    ) -> bool:
        result = await db.execute(
            _HAS_PENDING_SQL,
            {"listing_id": listing_id, "buyer_id": buyer_id, "mode": mode},
        )
        return result.fetchone() is not None

    async def has_pending_broadcast(self, db: AsyncSession, listing_id: str) -> bool:
        result = await db.execute(_HAS_PENDING_BROADCAST_SQL, {"listing_id": listing_id})
        return result.fetchone() is not None

    async def list_broadcast_waves(self, db: AsyncSession, listing_id: str) -> list[int]:
        rows = (await db.execute(_LIST_WAVES_SQL, {"listing_id": listing_id})).fetchall()
        return [int(row.amount_cents) for row in rows]

    async def list_pending_ids(
        self, db: AsyncSession, listing_id: str, exclude_offer_id: str | None = None
    ) -> list[str]:
        rows = (
            await db.execute(
                _LIST_PENDING_SQL,
                {"listing_id": listing_id, "exclude_id": exclude_offer_id},
            )
        ).fetchall()
        return [row.id for row in rows]

    async def list_due_ids(self, db: AsyncSession, now: datetime, limit: int) -> list[str]:
        rows = (await db.execute(_LIST_DUE_SQL, {"now": now, "limit": limit})).fetchall()
        return [row.id for row in rows]

    async def find_pending_seller_offer(
        self, db: AsyncSession, listing_id: str, buyer_id: str
    ) -> Offer | None:
        row = (
            await db.execute(
                _FIND_SELLER_OFFER_SQL, {"listing_id": listing_id, "buyer_id": buyer_id}
            )
        ).fetchone()
        return _row_to_offer(row) if row else None
