"""OrderOpener: everything that happens in the transaction that sells a listing.

Both purchase_listing and accept_offer land here after the listing has been
reserved and the buyer's funds are committed to escrow.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import ArchivedReason, OrderStatus, SystemEvent
from src.mp_common.errors import DuplicateOrderError
from src.mp_common.id_generator import IdGenerator, default_generator
from src.mp_conversation.application.recorder import ConversationRecorder
from src.mp_listing.domain.models import Listing
from src.mp_offer.application.release import OfferReleaser
from src.mp_order.domain.models import Order
from src.mp_order.domain.repository import OrderRepositoryProtocol
from src.mp_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)


class OrderOpener:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        releaser: OfferReleaser | None = None,
        recorder: ConversationRecorder | None = None,
        ids: IdGenerator | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._recorder = recorder or ConversationRecorder()
        self._releaser = releaser or OfferReleaser(recorder=self._recorder)
        self._ids: IdGenerator = ids or default_generator()

    async def open(
        self,
        db: AsyncSession,
        listing: Listing,
        buyer_id: str,
        item_price_cents: int,
        shipping_cents: int,
        tax_cents: int,
        shipping_address: dict[str, Any],
        now: datetime,
        offer_id: str | None = None,
    ) -> Order:
        """Create the PAID order for a reserved listing and settle its surroundings.

        Competing pending offers are declined with their holds released, and
        every other buyer's thread on the listing is archived.
        """
        snapshot = listing.snapshot()
        snapshot["price_cents"] = item_price_cents
        draft = Order(
            id=self._ids.next_id(),
            order_number=self._ids.next_id(),
            listing_id=listing.id,
            buyer_id=buyer_id,
            seller_id=listing.seller_id,
            offer_id=offer_id,
            item_price_cents=item_price_cents,
            shipping_cents=shipping_cents,
            tax_cents=tax_cents,
            listing_snapshot=snapshot,
            shipping_address=dict(shipping_address),
            created_at=now,
        )
        order = await self._orders.insert(db, draft)
        if order is None:
            raise DuplicateOrderError(listing.id)
        await self._orders.append_history(db, order.id, OrderStatus.PAID.value, now)

        thread = await self._recorder.thread_for(
            db, listing.id, buyer_id, listing.seller_id, now
        )
        await self._recorder.record_event(
            db, thread, SystemEvent.ORDER_CREATED, now,
            order_id=order.id,
            offer_id=offer_id,
            payload={"order_number": order.order_number, "total_cents": order.total_cents},
        )

        await self._releaser.release_all_pending(
            db, listing.id, ArchivedReason.SOLD_TO_OTHER.value, now,
            exclude_offer_id=offer_id, purchaser_id=buyer_id,
        )
        archived = await self._recorder.archive_others(
            db, listing.id, ArchivedReason.SOLD_TO_OTHER.value, except_buyer_id=buyer_id
        )
        logger.debug("Order %s opened; %d other threads archived", order.id, archived)
        return order
