"""ListingRepository Protocol: listing reads plus the availability gate."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_listing.domain.models import Listing


class ListingRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, listing: Listing) -> Listing: ...

    async def get_by_id(self, db: AsyncSession, listing_id: str) -> Listing | None: ...

    async def reserve_for_sale(
        self, db: AsyncSession, listing_id: str, buyer_id: str, now: datetime
    ) -> Listing:
        """Flip is_sold false→true for an available listing. Raises AlreadySoldError."""
        ...

    async def drop_price(
        self, db: AsyncSession, listing_id: str, seller_id: str, new_price_cents: int
    ) -> Listing | None: ...

    async def soft_delete(
        self, db: AsyncSession, listing_id: str, seller_id: str
    ) -> Listing | None: ...

    async def add_favorite(self, db: AsyncSession, listing_id: str, user_id: str) -> bool: ...

    async def remove_favorite(self, db: AsyncSession, listing_id: str, user_id: str) -> bool: ...

    async def list_favorited_user_ids(
        self, db: AsyncSession, listing_id: str
    ) -> list[str]: ...
