"""ListingApplicationService: listing lifecycle outside of a sale.

The search projector is notified after commit; its failures never undo a
listing change.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.enums import ArchivedReason
from src.mp_common.errors import (
    ForbiddenError,
    InvalidPriceDropError,
    ListingNotFoundError,
    ListingUnavailableError,
)
from src.mp_common.id_generator import IdGenerator, default_generator
from src.mp_conversation.application.recorder import ConversationRecorder
from src.mp_listing.application.schemas import (
    CreateListingRequest,
    FavoriteResponse,
    ListingResponse,
)
from src.mp_listing.domain.models import Listing, ShippingRegion
from src.mp_listing.domain.repository import ListingRepositoryProtocol
from src.mp_listing.infrastructure.persistence import ListingRepository
from src.mp_offer.application.release import OfferReleaser
from src.mp_search.projector import SearchProjector

logger = logging.getLogger(__name__)


class ListingApplicationService:
    def __init__(
        self,
        listings: ListingRepositoryProtocol | None = None,
        releaser: OfferReleaser | None = None,
        recorder: ConversationRecorder | None = None,
        projector: SearchProjector | None = None,
        clock: Clock = utc_now,
        ids: IdGenerator | None = None,
    ) -> None:
        self._ids: IdGenerator = ids or default_generator()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._recorder = recorder or ConversationRecorder(ids=self._ids)
        self._releaser = releaser or OfferReleaser(recorder=self._recorder)
        self._projector = projector or SearchProjector()
        self._clock = clock

    async def create_listing(
        self, db: AsyncSession, seller_id: str, body: CreateListingRequest
    ) -> ListingResponse:
        draft = Listing(
            id=self._ids.next_id(),
            seller_id=seller_id,
            title=body.title,
            designer=body.designer,
            size=body.size,
            thumbnail=body.thumbnail,
            price_cents=body.price_cents,
            original_price_cents=body.price_cents,
            is_draft=body.is_draft,
            is_free_shipping=body.is_free_shipping,
            can_offer=body.can_offer,
            shipping_regions=[
                ShippingRegion(region=r.region, cost_cents=r.cost_cents, enabled=r.enabled)
                for r in body.shipping_regions
            ],
        )
        try:
            listing = await self._listings.insert(db, draft)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._projector.upsert_or_remove(listing)
        logger.info("Listing created: id=%s seller=%s price=%d", listing.id, seller_id,
                    listing.price_cents)
        return ListingResponse.from_domain(listing)

    async def get_listing(self, db: AsyncSession, listing_id: str) -> ListingResponse:
        listing = await self._listings.get_by_id(db, listing_id)
        if listing is None or listing.is_deleted:
            raise ListingNotFoundError(listing_id)
        return ListingResponse.from_domain(listing)

    async def price_drop_listing(
        self, db: AsyncSession, listing_id: str, seller_id: str, new_price_cents: int
    ) -> ListingResponse:
        try:
            listing = await self._owned_listing(db, listing_id, seller_id)
            if not listing.is_available:
                raise ListingUnavailableError(listing_id)
            if new_price_cents <= 0:
                raise InvalidPriceDropError("price must be positive")
            if new_price_cents >= listing.price_cents:
                raise InvalidPriceDropError(
                    f"{new_price_cents} is not below the current {listing.price_cents}"
                )
            dropped = await self._listings.drop_price(db, listing_id, seller_id, new_price_cents)
            if dropped is None:
                raise InvalidPriceDropError("listing changed concurrently")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._projector.upsert_or_remove(dropped)
        logger.info("Price drop: listing=%s %d -> %d", listing_id, listing.price_cents,
                    new_price_cents)
        return ListingResponse.from_domain(dropped)

    async def delete_listing(
        self, db: AsyncSession, listing_id: str, seller_id: str
    ) -> ListingResponse:
        """Soft delete; pending offers are declined and every thread archived."""
        now = self._clock()
        try:
            listing = await self._owned_listing(db, listing_id, seller_id)
            if listing.is_sold:
                raise ListingUnavailableError(listing_id)
            deleted = await self._listings.soft_delete(db, listing_id, seller_id)
            if deleted is None:
                raise ListingUnavailableError(listing_id)
            reason = ArchivedReason.LISTING_DELETED.value
            await self._releaser.release_all_pending(db, listing_id, reason, now)
            await self._recorder.archive_others(db, listing_id, reason, except_buyer_id=None)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._projector.upsert_or_remove(deleted)
        logger.info("Listing deleted: id=%s", listing_id)
        return ListingResponse.from_domain(deleted)

    async def favorite_listing(
        self, db: AsyncSession, listing_id: str, user_id: str
    ) -> FavoriteResponse:
        try:
            listing = await self._listings.get_by_id(db, listing_id)
            if listing is None or listing.is_deleted:
                raise ListingNotFoundError(listing_id)
            changed = await self._listings.add_favorite(db, listing_id, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return FavoriteResponse(listing_id=listing_id, favorited=True, changed=changed)

    async def unfavorite_listing(
        self, db: AsyncSession, listing_id: str, user_id: str
    ) -> FavoriteResponse:
        try:
            changed = await self._listings.remove_favorite(db, listing_id, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return FavoriteResponse(listing_id=listing_id, favorited=False, changed=changed)

    async def _owned_listing(self, db: AsyncSession, listing_id: str, seller_id: str) -> Listing:
        listing = await self._listings.get_by_id(db, listing_id)
        if listing is None or listing.is_deleted:
            raise ListingNotFoundError(listing_id)
        if listing.seller_id != seller_id:
            raise ForbiddenError("Only the seller can change this listing")
        return listing
