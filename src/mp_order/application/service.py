"""OrderApplicationService: purchase, status progression, escrow release, refunds.

Every write path locks the order row (or reserves the listing) first and
commits once at the end. Replaying an operation is safe: the repository's
conditional updates and the once-per-order system events make a second run a
no-op for money and messages.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.enums import LedgerEntryType, OrderStatus, SystemEvent
from src.mp_common.errors import (
    AlreadyRefundedError,
    DuplicateOrderError,
    ForbiddenError,
    InvalidOrderTransitionError,
    ListingNotFoundError,
    ListingUnavailableError,
    OrderNotFoundError,
)
from src.mp_common.id_generator import IdGenerator, default_generator, tracking_number
from src.mp_conversation.application.recorder import ConversationRecorder
from src.mp_listing.domain.repository import ListingRepositoryProtocol
from src.mp_listing.domain.shipping import shipping_cents_for
from src.mp_listing.infrastructure.persistence import ListingRepository
from src.mp_order.application.schemas import OrderListResponse, OrderResponse
from src.mp_order.application.settlement import OrderOpener
from src.mp_order.domain.models import Order, StatusChange, next_status, status_rank
from src.mp_order.domain.payout import payout_for, platform_fee_cents
from src.mp_order.domain.refund import plan_refund
from src.mp_order.domain.repository import OrderRepositoryProtocol
from src.mp_order.infrastructure.persistence import OrderRepository
from src.mp_search.projector import SearchProjector

logger = logging.getLogger(__name__)

_ADVANCE_TARGETS = (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value)


class OrderApplicationService:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        listings: ListingRepositoryProtocol | None = None,
        accounts: AccountRepositoryProtocol | None = None,
        recorder: ConversationRecorder | None = None,
        opener: OrderOpener | None = None,
        projector: SearchProjector | None = None,
        clock: Clock = utc_now,
        ids: IdGenerator | None = None,
        fee_bps: int | None = None,
        shipping_region: str | None = None,
    ) -> None:
        self._ids: IdGenerator = ids or default_generator()
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._accounts: AccountRepositoryProtocol = accounts or AccountRepository()
        self._recorder = recorder or ConversationRecorder(ids=self._ids)
        self._opener = opener or OrderOpener(
            orders=self._orders, recorder=self._recorder, ids=self._ids
        )
        self._projector = projector or SearchProjector()
        self._clock = clock
        self._fee_bps = settings.PLATFORM_FEE_BPS if fee_bps is None else fee_bps
        self._region = shipping_region or settings.SHIPPING_REGION

    async def purchase_listing(
        self,
        db: AsyncSession,
        buyer_id: str,
        listing_id: str,
        shipping_address: dict[str, Any],
        tax_cents: int = 0,
    ) -> OrderResponse:
        """Buy at list price: reserve the listing, debit the buyer, open the order."""
        now = self._clock()
        try:
            listing = await self._listings.get_by_id(db, listing_id)
            if listing is None or listing.is_deleted:
                raise ListingNotFoundError(listing_id)
            if listing.seller_id == buyer_id:
                raise ForbiddenError("Sellers cannot buy their own listing")
            if await self._orders.find_by_listing_and_buyer(db, listing_id, buyer_id):
                raise DuplicateOrderError(listing_id)
            if not listing.is_available:
                raise ListingUnavailableError(listing_id)

            shipping = shipping_cents_for(listing, self._region)
            reserved = await self._listings.reserve_for_sale(db, listing_id, buyer_id, now)
            total = reserved.price_cents + shipping + tax_cents
            await self._accounts.debit_cents(
                db, buyer_id, total, LedgerEntryType.PURCHASE,
                ref_type="LISTING", ref_id=listing_id, description="Purchase at list price",
            )
            order = await self._opener.open(
                db, reserved, buyer_id, reserved.price_cents, shipping, tax_cents,
                shipping_address, now,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._projector.upsert_or_remove(reserved)
        logger.info(
            "Order created: id=%s listing=%s buyer=%s total=%d",
            order.id, listing_id, buyer_id, order.total_cents,
        )
        return OrderResponse.from_domain(order, [StatusChange(OrderStatus.PAID.value, now)])

    async def advance_order_status(
        self, db: AsyncSession, order_id: str, user_id: str, target: str | None = None
    ) -> OrderResponse:
        """Step the order forward to `target` (default: the next status).

        CANCELED orders are left alone. A DELIVERED order re-runs delivery
        finalisation, which releases escrow only if it is still held.
        """
        now = self._clock()
        try:
            order = await self._party_order(db, order_id, user_id, lock=True)
            if not order.is_canceled:
                goal = target or next_status(order.status) or order.status
                if goal not in _ADVANCE_TARGETS or status_rank(goal) < status_rank(order.status):
                    raise InvalidOrderTransitionError(order_id, order.status, goal)
                while status_rank(order.status) < status_rank(goal):
                    order = await self._step(db, order, now)
                if order.status == OrderStatus.DELIVERED.value:
                    order = await self._finalize_delivery(db, order, now)
            history = await self._orders.list_history(db, order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return OrderResponse.from_domain(order, history)

    async def issue_refund(
        self,
        db: AsyncSession,
        order_id: str,
        user_id: str,
        mode: str,
        reason: str,
        amount_cents: int | None = None,
    ) -> OrderResponse:
        """Seller refunds the buyer once, clawing back any payout already released."""
        now = self._clock()
        try:
            order = await self._party_order(db, order_id, user_id, lock=True)
            if user_id != order.seller_id:
                raise ForbiddenError("Only the seller can issue a refund")
            plan = plan_refund(order, mode, reason, amount_cents)

            refunded = await self._orders.apply_refund(db, order_id, plan, now)
            if refunded is None:
                raise AlreadyRefundedError(order_id)
            await self._accounts.credit_cents(
                db, order.buyer_id, plan.amount_cents, LedgerEntryType.REFUND_CREDIT,
                ref_type="ORDER", ref_id=order_id, description=f"Refund ({plan.reason})",
            )
            if plan.seller_debit_cents > 0:
                await self._accounts.debit_cents(
                    db, order.seller_id, plan.seller_debit_cents,
                    LedgerEntryType.REFUND_CLAWBACK,
                    ref_type="ORDER", ref_id=order_id, description="Refund clawback",
                )
            if plan.cancels_order:
                await self._orders.append_history(
                    db, order_id, OrderStatus.CANCELED.value, now
                )

            thread = await self._recorder.thread_for(
                db, order.listing_id, order.buyer_id, order.seller_id, now
            )
            await self._recorder.record_event(
                db, thread, SystemEvent.REFUND_ISSUED, now,
                order_id=order_id,
                payload={
                    "mode": plan.mode,
                    "amount_cents": plan.amount_cents,
                    "seller_debit_cents": plan.seller_debit_cents,
                    "fee_cents": plan.fee_cents,
                    "reason": plan.reason,
                },
            )
            history = await self._orders.list_history(db, order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Refund issued: order=%s mode=%s amount=%d clawback=%d canceled=%s",
            order_id, plan.mode, plan.amount_cents, plan.seller_debit_cents, plan.cancels_order,
        )
        return OrderResponse.from_domain(refunded, history)

    async def get_order(self, db: AsyncSession, order_id: str, user_id: str) -> OrderResponse:
        order = await self._party_order(db, order_id, user_id)
        history = await self._orders.list_history(db, order_id)
        return OrderResponse.from_domain(order, history)

    async def list_orders(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        cursor: str | None,
        limit: int,
    ) -> OrderListResponse:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        orders = await self._orders.list_for_user(db, user_id, role, limit + 1, cursor)
        has_more = len(orders) > limit
        page = orders[:limit]
        return OrderListResponse(
            items=[OrderResponse.from_domain(o, []) for o in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _party_order(
        self, db: AsyncSession, order_id: str, user_id: str, lock: bool = False
    ) -> Order:
        if lock:
            order = await self._orders.get_for_update(db, order_id)
        else:
            order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.has_party(user_id):
            raise ForbiddenError("Not a party to this order")
        return order

    async def _step(self, db: AsyncSession, order: Order, now: datetime) -> Order:
        target = next_status(order.status)
        if target is None:
            raise InvalidOrderTransitionError(order.id, order.status, "next")
        tracking = (
            tracking_number(self._ids) if target == OrderStatus.SHIPPED.value else None
        )
        updated = await self._orders.advance_status(
            db, order.id, order.status, target, tracking_number=tracking
        )
        if updated is None:
            raise InvalidOrderTransitionError(order.id, order.status, target)
        await self._orders.append_history(db, order.id, target, now)

        if target == OrderStatus.SHIPPED.value:
            thread = await self._recorder.thread_for(
                db, order.listing_id, order.buyer_id, order.seller_id, now
            )
            await self._recorder.record_event(
                db, thread, SystemEvent.ORDER_SHIPPED, now,
                order_id=order.id,
                payload={"tracking_number": updated.tracking_number},
            )
            logger.info("Order shipped: id=%s tracking=%s", order.id, updated.tracking_number)
        return updated

    async def _finalize_delivery(self, db: AsyncSession, order: Order, now: datetime) -> Order:
        payout = payout_for(order, self._fee_bps)
        released = await self._orders.release_escrow(db, order.id, payout, now)
        if released is not None:
            if payout > 0:
                await self._accounts.credit_cents(
                    db, order.seller_id, payout, LedgerEntryType.ESCROW_PAYOUT,
                    ref_type="ORDER", ref_id=order.id, description="Escrow payout",
                )
            order = released
            logger.info("Payout released: order=%s seller=%s amount=%d",
                        order.id, order.seller_id, payout)

        thread = await self._recorder.thread_for(
            db, order.listing_id, order.buyer_id, order.seller_id, now
        )
        await self._recorder.record_event(
            db, thread, SystemEvent.ORDER_DELIVERED, now, order_id=order.id
        )
        await self._recorder.record_event(
            db, thread, SystemEvent.PAYOUT_RELEASED, now,
            order_id=order.id,
            payload={
                "payout_cents": order.seller_payout_cents,
                "platform_fee_cents": platform_fee_cents(order.item_price_cents, self._fee_bps),
            },
        )
        return order
