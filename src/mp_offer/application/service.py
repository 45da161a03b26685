"""OfferApplicationService: create, accept, decline and expire offers.

Each public operation is one transaction: repositories are called in order,
then commit; any exception rolls everything back and propagates. Row locks
are always taken listing first, then offer, then accounts.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.enums import LedgerEntryType, OfferMode, OfferStatus
from src.mp_common.errors import (
    AlreadySoldError,
    DuplicateOfferError,
    ForbiddenError,
    InternalError,
    ListingNotFoundError,
    ListingUnavailableError,
    MissingCheckoutDetailsError,
    NoBroadcastRecipientsError,
    OfferExpiredError,
    OfferNotFoundError,
    OfferNotPendingError,
)
from src.mp_common.id_generator import IdGenerator, default_generator
from src.mp_conversation.application.recorder import ConversationRecorder
from src.mp_listing.domain.models import Listing
from src.mp_listing.domain.repository import ListingRepositoryProtocol
from src.mp_listing.domain.shipping import shipping_cents_for
from src.mp_listing.infrastructure.persistence import ListingRepository
from src.mp_offer.application.release import DECLINED_BY_RESPONDER, OfferReleaser
from src.mp_offer.application.schemas import (
    AcceptOfferResponse,
    ActiveSellerOfferResponse,
    BroadcastResponse,
    BroadcastStatusResponse,
    OfferResponse,
)
from src.mp_offer.domain.models import Offer
from src.mp_offer.domain.pricing import (
    NegotiationPolicy,
    buyer_offer_bounds,
    check_buyer_amount,
    check_private_amount,
    check_wave_amount,
    next_wave_ceiling,
    offer_expires_at,
)
from src.mp_offer.domain.repository import OfferRepositoryProtocol
from src.mp_offer.domain.snapshot import build_offer_snapshot, status_patch
from src.mp_offer.infrastructure.persistence import OfferRepository
from src.mp_order.application.schemas import OrderResponse
from src.mp_order.application.settlement import OrderOpener
from src.mp_search.projector import SearchProjector

logger = logging.getLogger(__name__)


class OfferApplicationService:
    def __init__(
        self,
        offers: OfferRepositoryProtocol | None = None,
        listings: ListingRepositoryProtocol | None = None,
        accounts: AccountRepositoryProtocol | None = None,
        recorder: ConversationRecorder | None = None,
        releaser: OfferReleaser | None = None,
        opener: OrderOpener | None = None,
        projector: SearchProjector | None = None,
        clock: Clock = utc_now,
        ids: IdGenerator | None = None,
        policy: NegotiationPolicy | None = None,
        shipping_region: str | None = None,
    ) -> None:
        self._ids: IdGenerator = ids or default_generator()
        self._offers: OfferRepositoryProtocol = offers or OfferRepository()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._accounts: AccountRepositoryProtocol = accounts or AccountRepository()
        self._recorder = recorder or ConversationRecorder(ids=self._ids)
        self._releaser = releaser or OfferReleaser(self._offers, self._accounts, self._recorder)
        self._opener = opener or OrderOpener(
            releaser=self._releaser, recorder=self._recorder, ids=self._ids
        )
        self._projector = projector or SearchProjector()
        self._clock = clock
        self._policy = policy or NegotiationPolicy.from_settings(settings)
        self._region = shipping_region or settings.SHIPPING_REGION

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_buyer_offer(
        self,
        db: AsyncSession,
        buyer_id: str,
        listing_id: str,
        amount_cents: int,
        shipping_address: dict[str, Any],
        tax_cents: int = 0,
    ) -> OfferResponse:
        """Buyer proposes a price; the full total is held from their balance."""
        now = self._clock()
        try:
            listing = await self._open_listing(db, listing_id)
            if listing.seller_id == buyer_id:
                raise ForbiddenError("Sellers cannot make offers on their own listing")
            if not listing.can_offer:
                raise ForbiddenError("This listing does not accept offers")
            if await self._offers.has_pending(db, listing_id, buyer_id, OfferMode.BUYER.value):
                raise DuplicateOfferError(f"buyer {buyer_id} on listing {listing_id}")

            waves = await self._offers.list_broadcast_waves(db, listing_id)
            floor, ceiling = buyer_offer_bounds(
                listing, self._policy, waves[-1] if waves else None
            )
            check_buyer_amount(amount_cents, floor, ceiling)

            offer = Offer(
                id=self._ids.next_id(),
                listing_id=listing_id,
                buyer_id=buyer_id,
                seller_id=listing.seller_id,
                mode=OfferMode.BUYER.value,
                amount_cents=amount_cents,
                shipping_cents=shipping_cents_for(listing, self._region),
                tax_cents=tax_cents,
                funds_held=True,
                expires_at=offer_expires_at(now, self._policy),
                shipping_address=dict(shipping_address),
                created_at=now,
            )
            # Debit-or-fail comes before any offer state is written.
            await self._accounts.debit_cents(
                db, buyer_id, offer.total_cents, LedgerEntryType.OFFER_HOLD,
                ref_type="OFFER", ref_id=offer.id, description="Offer hold",
            )
            stored = await self._offers.insert(db, offer)
            if stored is None:
                raise DuplicateOfferError(f"buyer {buyer_id} on listing {listing_id}")
            await self._record_offer_message(db, stored, listing, buyer_id, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Offer created: id=%s listing=%s buyer=%s total=%d held",
            stored.id, listing_id, buyer_id, stored.total_cents,
        )
        return OfferResponse.from_domain(stored)

    async def create_seller_private_offer(
        self, db: AsyncSession, seller_id: str, listing_id: str, buyer_id: str, amount_cents: int
    ) -> OfferResponse:
        """Seller proposes a price to one buyer; nothing is held until acceptance."""
        now = self._clock()
        try:
            listing = await self._open_listing(db, listing_id)
            if listing.seller_id != seller_id:
                raise ForbiddenError("Only the seller can send a private offer")
            if buyer_id == seller_id:
                raise ForbiddenError("Cannot send an offer to yourself")
            check_private_amount(amount_cents, listing)
            mode = OfferMode.SELLER_PRIVATE.value
            if await self._offers.has_pending(db, listing_id, buyer_id, mode):
                raise DuplicateOfferError(f"private offer to {buyer_id} on listing {listing_id}")

            stored = await self._insert_seller_offer(db, listing, buyer_id, mode, amount_cents, now)
            if stored is None:
                raise DuplicateOfferError(f"private offer to {buyer_id} on listing {listing_id}")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Private offer created: id=%s listing=%s buyer=%s amount=%d",
            stored.id, listing_id, buyer_id, amount_cents,
        )
        return OfferResponse.from_domain(stored)

    async def create_broadcast_offers(
        self, db: AsyncSession, seller_id: str, listing_id: str, amount_cents: int
    ) -> BroadcastResponse:
        """One offer per favoriter at a wave price below the previous wave."""
        now = self._clock()
        try:
            listing = await self._open_listing(db, listing_id)
            if listing.seller_id != seller_id:
                raise ForbiddenError("Only the seller can broadcast an offer")
            if await self._offers.has_pending_broadcast(db, listing_id):
                raise DuplicateOfferError(f"broadcast still pending on listing {listing_id}")

            waves = await self._offers.list_broadcast_waves(db, listing_id)
            check_wave_amount(amount_cents, next_wave_ceiling(listing, waves, self._policy))

            recipients = [
                uid for uid in await self._listings.list_favorited_user_ids(db, listing_id)
                if uid != seller_id
            ]
            if not recipients:
                raise NoBroadcastRecipientsError(listing_id)

            created = []
            mode = OfferMode.SELLER_BROADCAST.value
            for buyer_id in recipients:
                stored = await self._insert_seller_offer(
                    db, listing, buyer_id, mode, amount_cents, now
                )
                if stored is not None:
                    created.append(stored)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Broadcast wave %d on listing %s: amount=%d recipients=%d",
            len(waves) + 1, listing_id, amount_cents, len(created),
        )
        return BroadcastResponse(
            listing_id=listing_id,
            wave=len(waves) + 1,
            amount_cents=amount_cents,
            offers=[OfferResponse.from_domain(o) for o in created],
        )

    # ------------------------------------------------------------------
    # Respond
    # ------------------------------------------------------------------

    async def accept_offer(
        self,
        db: AsyncSession,
        offer_id: str,
        user_id: str,
        shipping_address: dict[str, Any] | None = None,
        payment_method: str | None = None,
    ) -> AcceptOfferResponse:
        now = self._clock()
        offer = await self._responder_offer(db, offer_id, user_id)

        if offer.is_past_deadline(now):
            await self._expire_now(db, offer, now)
            raise OfferExpiredError(offer_id)

        if offer.is_seller_initiated:
            if shipping_address is None:
                raise MissingCheckoutDetailsError("shipping_address")
            if payment_method is None:
                raise MissingCheckoutDetailsError("payment_method")
            address = dict(shipping_address)
        else:
            address = dict(offer.shipping_address or {})

        try:
            try:
                listing = await self._listings.reserve_for_sale(
                    db, offer.listing_id, offer.buyer_id, now
                )
            except AlreadySoldError:
                raise ListingUnavailableError(offer.listing_id) from None

            moved = await self._offers.transition(db, offer_id, OfferStatus.ACCEPTED.value, now)
            if moved is None:
                raise OfferNotPendingError(offer_id)
            accepted, funds_were_held = moved

            if accepted.is_seller_initiated:
                await self._accounts.debit_cents(
                    db, accepted.buyer_id, accepted.total_cents, LedgerEntryType.PURCHASE,
                    ref_type="OFFER", ref_id=accepted.id, description="Offer accepted",
                )
            elif not funds_were_held:
                raise InternalError(f"Buyer offer {offer_id} accepted without held funds")

            order = await self._opener.open(
                db, listing, accepted.buyer_id,
                accepted.amount_cents, accepted.shipping_cents, accepted.tax_cents,
                address, now, offer_id=accepted.id,
            )
            await self._recorder.project_offer_status(
                db, accepted.id, status_patch(OfferStatus.ACCEPTED.value, now)
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._projector.upsert_or_remove(listing)
        logger.info(
            "Offer accepted: id=%s order=%s total=%d",
            accepted.id, order.id, order.total_cents,
        )
        return AcceptOfferResponse(
            offer=OfferResponse.from_domain(accepted),
            order=OrderResponse.from_domain(order),
        )

    async def decline_offer(self, db: AsyncSession, offer_id: str, user_id: str) -> OfferResponse:
        now = self._clock()
        await self._responder_offer(db, offer_id, user_id)
        try:
            released = await self._releaser.release(
                db, offer_id, OfferStatus.DECLINED, now, reason=DECLINED_BY_RESPONDER
            )
            if released is None:
                raise OfferNotPendingError(offer_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Offer declined: id=%s by=%s", offer_id, user_id)
        return OfferResponse.from_domain(released)

    async def expire_offer(self, db: AsyncSession, offer_id: str) -> Offer | None:
        """Expire one offer if it is still pending and past its deadline."""
        now = self._clock()
        try:
            expired = await self._releaser.release(
                db, offer_id, OfferStatus.EXPIRED, now, due_by=now
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if expired is not None:
            logger.info("Offer expired: id=%s total=%d", offer_id, expired.total_cents)
        return expired

    async def get_offer(self, db: AsyncSession, offer_id: str, user_id: str) -> OfferResponse:
        offer = await self._offers.get_by_id(db, offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        if user_id not in (offer.buyer_id, offer.seller_id):
            raise ForbiddenError("Not a party to this offer")
        return OfferResponse.from_domain(offer)

    async def get_broadcast_status(
        self, db: AsyncSession, listing_id: str, user_id: str
    ) -> BroadcastStatusResponse:
        """Where the seller stands in the listing's broadcast schedule."""
        listing = await self._listings.get_by_id(db, listing_id)
        if listing is None or listing.is_deleted:
            raise ListingNotFoundError(listing_id)
        if listing.seller_id != user_id:
            raise ForbiddenError("Only the seller can view broadcast status")

        waves = await self._offers.list_broadcast_waves(db, listing_id)
        remaining = max(self._policy.max_waves - len(waves), 0)
        ceiling = None
        if remaining and listing.is_available:
            ceiling = next_wave_ceiling(listing, waves, self._policy)
        return BroadcastStatusResponse(
            listing_id=listing_id,
            waves_sent=len(waves),
            max_waves=self._policy.max_waves,
            remaining_waves=remaining,
            last_wave_cents=waves[-1] if waves else None,
            next_wave_ceiling_cents=ceiling,
            pending=await self._offers.has_pending_broadcast(db, listing_id),
        )

    async def get_active_seller_offer(
        self, db: AsyncSession, listing_id: str, user_id: str
    ) -> ActiveSellerOfferResponse:
        offer = await self._offers.find_pending_seller_offer(db, listing_id, user_id)
        return ActiveSellerOfferResponse(
            listing_id=listing_id,
            offer=OfferResponse.from_domain(offer) if offer else None,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _open_listing(self, db: AsyncSession, listing_id: str) -> Listing:
        listing = await self._listings.get_by_id(db, listing_id)
        if listing is None or listing.is_deleted:
            raise ListingNotFoundError(listing_id)
        if not listing.is_available:
            raise ListingUnavailableError(listing_id)
        return listing

    async def _responder_offer(self, db: AsyncSession, offer_id: str, user_id: str) -> Offer:
        offer = await self._offers.get_by_id(db, offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        if user_id != offer.responder_id:
            raise ForbiddenError("Only the receiving party can respond to this offer")
        if not offer.is_pending:
            raise OfferNotPendingError(offer_id)
        return offer

    async def _expire_now(self, db: AsyncSession, offer: Offer, now: datetime) -> None:
        try:
            await self._releaser.release(db, offer.id, OfferStatus.EXPIRED, now, due_by=now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Offer expired at accept time: id=%s", offer.id)

    async def _insert_seller_offer(
        self,
        db: AsyncSession,
        listing: Listing,
        buyer_id: str,
        mode: str,
        amount_cents: int,
        now: datetime,
    ) -> Offer | None:
        offer = Offer(
            id=self._ids.next_id(),
            listing_id=listing.id,
            buyer_id=buyer_id,
            seller_id=listing.seller_id,
            mode=mode,
            amount_cents=amount_cents,
            shipping_cents=shipping_cents_for(listing, self._region),
            funds_held=False,
            expires_at=offer_expires_at(now, self._policy),
            created_at=now,
        )
        stored = await self._offers.insert(db, offer)
        if stored is not None:
            await self._record_offer_message(db, stored, listing, listing.seller_id, now)
        return stored

    async def _record_offer_message(
        self, db: AsyncSession, offer: Offer, listing: Listing, sender_id: str, now: datetime
    ) -> None:
        thread = await self._recorder.thread_for(
            db, listing.id, offer.buyer_id, listing.seller_id, now
        )
        await self._recorder.record_offer(
            db, thread, sender_id, offer.id, build_offer_snapshot(offer, listing), now
        )
