"""OfferReleaser: the one path by which a pending offer ends without a sale.

Decline, expiry and the automatic decline of competing offers when a listing
sells or is deleted all share the same steps: conditional status transition,
refund of held funds, snapshot projection and a system message. Callers own
the transaction.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.enums import LedgerEntryType, OfferStatus, SystemEvent
from src.mp_conversation.application.recorder import ConversationRecorder
from src.mp_offer.domain.models import Offer
from src.mp_offer.domain.repository import OfferRepositoryProtocol
from src.mp_offer.domain.snapshot import status_patch
from src.mp_offer.infrastructure.persistence import OfferRepository

logger = logging.getLogger(__name__)

DECLINED_BY_RESPONDER = "declined"
# the buyer's own pending offer, superseded by their purchase of the listing
SUPERSEDED_BY_PURCHASE = "purchased"


class OfferReleaser:
    def __init__(
        self,
        offers: OfferRepositoryProtocol | None = None,
        accounts: AccountRepositoryProtocol | None = None,
        recorder: ConversationRecorder | None = None,
    ) -> None:
        self._offers: OfferRepositoryProtocol = offers or OfferRepository()
        self._accounts: AccountRepositoryProtocol = accounts or AccountRepository()
        self._recorder = recorder or ConversationRecorder()

    async def release(
        self,
        db: AsyncSession,
        offer_id: str,
        status: OfferStatus,
        now: datetime,
        reason: str | None = None,
        due_by: datetime | None = None,
    ) -> Offer | None:
        """Decline or expire one offer. None if another transition got there first."""
        moved = await self._offers.transition(
            db, offer_id, status.value, now, reason=reason, due_by=due_by
        )
        if moved is None:
            return None
        offer, funds_were_held = moved

        if funds_were_held:
            await self._accounts.credit_cents(
                db, offer.buyer_id, offer.total_cents, LedgerEntryType.OFFER_RELEASE,
                ref_type="OFFER", ref_id=offer.id,
                description=f"Offer {status.value}: hold released",
            )

        await self._recorder.project_offer_status(
            db, offer.id, status_patch(status.value, now, reason)
        )
        thread = await self._recorder.thread_for(
            db, offer.listing_id, offer.buyer_id, offer.seller_id, now
        )
        event = (
            SystemEvent.OFFER_EXPIRED if status is OfferStatus.EXPIRED
            else SystemEvent.OFFER_DECLINED
        )
        await self._recorder.record_event(
            db, thread, event, now,
            offer_id=offer.id,
            payload={
                "reason": reason,
                "released_cents": offer.total_cents if funds_were_held else 0,
            },
        )
        return offer

    async def release_all_pending(
        self,
        db: AsyncSession,
        listing_id: str,
        reason: str,
        now: datetime,
        exclude_offer_id: str | None = None,
        purchaser_id: str | None = None,
    ) -> list[Offer]:
        """Decline every other pending offer on a listing that is no longer for sale.

        Offers made by `purchaser_id` are declined as superseded by the purchase
        rather than with `reason`.
        """
        released = []
        for offer_id in await self._offers.list_pending_ids(db, listing_id, exclude_offer_id):
            offer_reason = reason
            if purchaser_id is not None:
                pending = await self._offers.get_by_id(db, offer_id)
                if pending is not None and pending.buyer_id == purchaser_id:
                    offer_reason = SUPERSEDED_BY_PURCHASE
            offer = await self.release(
                db, offer_id, OfferStatus.DECLINED, now, reason=offer_reason
            )
            if offer is not None:
                released.append(offer)
        if released:
            logger.info(
                "Declined %d pending offers on listing %s (%s)",
                len(released), listing_id, reason,
            )
        return released
