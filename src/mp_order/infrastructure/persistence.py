"""OrderRepository: raw SQL persistence for orders and status history.

Each state change is a conditional UPDATE on the order's current state
(status, escrow_status, refund_mode IS NULL) so replays and races fall
through as None instead of applying twice.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.jsonb import from_json, to_json
from src.mp_order.domain.models import Escrow, Order, Refund, StatusChange
from src.mp_order.domain.refund import RefundPlan

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, order_number, listing_id, buyer_id, seller_id, offer_id, status,
    item_price_cents, shipping_cents, tax_cents, total_cents,
    escrow_held_cents, escrow_status, escrow_released_at, seller_payout_cents,
    refund_mode, refund_amount_cents, refund_fee_cents, refund_seller_debit_cents,
    refund_reason, refund_issued_at, tracking_number,
    listing_snapshot, shipping_address, created_at, updated_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO orders (id, order_number, listing_id, buyer_id, seller_id, offer_id,
        status, item_price_cents, shipping_cents, tax_cents, total_cents,
        escrow_held_cents, escrow_status, listing_snapshot, shipping_address, created_at)
    VALUES (:id, :order_number, :listing_id, :buyer_id, :seller_id, :offer_id,
        'PAID', :item_price_cents, :shipping_cents, :tax_cents, :total_cents,
        :total_cents, 'HELD', CAST(:listing_snapshot AS JSONB),
        CAST(:shipping_address AS JSONB), :created_at)
    ON CONFLICT (listing_id) DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_COLUMNS} FROM orders WHERE id = :id")

_GET_FOR_UPDATE_SQL = text(f"SELECT {_COLUMNS} FROM orders WHERE id = :id FOR UPDATE")

_FIND_BY_LISTING_BUYER_SQL = text(f"""
    SELECT {_COLUMNS} FROM orders
    WHERE listing_id = :listing_id AND buyer_id = :buyer_id
""")

_ADVANCE_SQL = text(f"""
    UPDATE orders
    SET status = :to_status,
        tracking_number = COALESCE(tracking_number, CAST(:tracking_number AS TEXT)),
        updated_at = NOW()
    WHERE id = :id AND status = :from_status
    RETURNING {_COLUMNS}
""")

_RELEASE_ESCROW_SQL = text(f"""
    UPDATE orders
    SET escrow_status = 'RELEASED', escrow_released_at = :now,
        seller_payout_cents = :payout_cents, updated_at = NOW()
    WHERE id = :id AND status = 'DELIVERED' AND escrow_status = 'HELD'
    RETURNING {_COLUMNS}
""")

_APPLY_REFUND_SQL = text(f"""
    UPDATE orders
    SET refund_mode = :mode, refund_amount_cents = :amount_cents,
        refund_fee_cents = :fee_cents, refund_seller_debit_cents = :seller_debit_cents,
        refund_reason = :reason, refund_issued_at = :now,
        escrow_held_cents = :escrow_held_after,
        status = CASE WHEN CAST(:cancels AS BOOLEAN) THEN 'CANCELED' ELSE status END,
        updated_at = NOW()
    WHERE id = :id AND refund_mode IS NULL
    RETURNING {_COLUMNS}
""")

_APPEND_HISTORY_SQL = text("""
    INSERT INTO order_status_history (order_id, status, changed_at)
    VALUES (:order_id, :status, :at)
""")

_LIST_HISTORY_SQL = text("""
    SELECT status, changed_at FROM order_status_history
    WHERE order_id = :order_id
    ORDER BY id ASC
""")

_LIST_AS_BUYER_SQL = text(f"""
    SELECT {_COLUMNS} FROM orders
    WHERE buyer_id = :user_id
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_LIST_AS_SELLER_SQL = text(f"""
    SELECT {_COLUMNS} FROM orders
    WHERE seller_id = :user_id
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    refund = None
    if row.refund_mode is not None:
        refund = Refund(
            mode=row.refund_mode,
            amount_cents=row.refund_amount_cents,
            fee_cents=row.refund_fee_cents,
            seller_debit_cents=row.refund_seller_debit_cents,
            reason=row.refund_reason,
            issued_at=row.refund_issued_at,
        )
    return Order(
        id=row.id,
        order_number=row.order_number,
        listing_id=row.listing_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        offer_id=row.offer_id,
        status=row.status,
        item_price_cents=row.item_price_cents,
        shipping_cents=row.shipping_cents,
        tax_cents=row.tax_cents,
        escrow=Escrow(
            held_cents=row.escrow_held_cents,
            status=row.escrow_status,
            released_at=row.escrow_released_at,
        ),
        seller_payout_cents=row.seller_payout_cents,
        refund=refund,
        tracking_number=row.tracking_number,
        listing_snapshot=from_json(row.listing_snapshot) or {},
        shipping_address=from_json(row.shipping_address) or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, order: Order) -> Order | None:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": order.id,
                "order_number": order.order_number,
                "listing_id": order.listing_id,
                "buyer_id": order.buyer_id,
                "seller_id": order.seller_id,
                "offer_id": order.offer_id,
                "item_price_cents": order.item_price_cents,
                "shipping_cents": order.shipping_cents,
                "tax_cents": order.tax_cents,
                "total_cents": order.total_cents,
                "listing_snapshot": to_json(order.listing_snapshot),
                "shipping_address": to_json(order.shipping_address),
                "created_at": order.created_at,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order | None:
        row = (await db.execute(_GET_SQL, {"id": order_id})).fetchone()
        return _row_to_order(row) if row else None

    async def get_for_update(self, db: AsyncSession, order_id: str) -> Order | None:
        row = (await db.execute(_GET_FOR_UPDATE_SQL, {"id": order_id})).fetchone()
        return _row_to_order(row) if row else None

    async def find_by_listing_and_buyer(
        self, db: AsyncSession, listing_id: str, buyer_id: str
    ) -> Order | None:
        row = (
            await db.execute(
                _FIND_BY_LISTING_BUYER_SQL, {"listing_id": listing_id, "buyer_id": buyer_id}
            )
        ).fetchone()
        return _row_to_order(row) if row else None

    async def advance_status(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: str,
        to_status: str,
        tracking_number: str | None = None,
    ) -> Order | None:
        result = await db.execute(
            _ADVANCE_SQL,
            {
                "id": order_id,
                "from_status": from_status,
                "to_status": to_status,
                "tracking_number": tracking_number,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def release_escrow(
        self, db: AsyncSession, order_id: str, payout_cents: int, now: datetime
    ) -> Order | None:
        result = await db.execute(
            _RELEASE_ESCROW_SQL, {"id": order_id, "payout_cents": payout_cents, "now": now}
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def apply_refund(
        self, db: AsyncSession, order_id: str, plan: RefundPlan, now: datetime
    ) -> Order | None:
        result = await db.execute(
            _APPLY_REFUND_SQL,
            {
                "id": order_id,
                "mode": plan.mode,
                "amount_cents": plan.amount_cents,
                "fee_cents": plan.fee_cents,
                "seller_debit_cents": plan.seller_debit_cents,
                "reason": plan.reason,
                "escrow_held_after": plan.escrow_held_after,
                "cancels": plan.cancels_order,
                "now": now,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def append_history(
        self, db: AsyncSession, order_id: str, status: str, at: datetime
    ) -> None:
        await db.execute(_APPEND_HISTORY_SQL, {"order_id": order_id, "status": status, "at": at})

    async def list_history(self, db: AsyncSession, order_id: str) -> list[StatusChange]:
        rows = (await db.execute(_LIST_HISTORY_SQL, {"order_id": order_id})).fetchall()
        return [StatusChange(status=row.status, at=row.changed_at) for row in rows]

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        limit: int,
        cursor_id: str | None,
    ) -> list[Order]:
        sql = _LIST_AS_SELLER_SQL if role == "seller" else _LIST_AS_BUYER_SQL
        rows = (
            await db.execute(sql, {"user_id": user_id, "limit": limit, "cursor_id": cursor_id})
        ).fetchall()
        return [_row_to_order(row) for row in rows]
