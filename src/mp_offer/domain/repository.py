"""OfferRepository Protocol: offers and their conditional status transitions."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_offer.domain.models import Offer


class OfferRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, offer: Offer) -> Offer | None:
        """Insert a pending offer; None when the buyer already has a pending one of that mode."""
        ...

    async def get_by_id(self, db: AsyncSession, offer_id: str) -> Offer | None: ...

    async def transition(
        self,
        db: AsyncSession,
        offer_id: str,
        status: str,
        now: datetime,
        reason: str | None = None,
        due_by: datetime | None = None,
    ) -> tuple[Offer, bool] | None:
        """Move a pending offer to a terminal status, clearing funds_held.

        Returns the updated offer and whether funds were held before the
        update, or None if the offer was no longer pending (or, with
        `due_by`, not yet past its deadline).
        """
        ...

    async def has_pending(
        self, db: AsyncSession, listing_id: str, buyer_id: str, mode: str
    ) -> bool: ...

    async def has_pending_broadcast(self, db: AsyncSession, listing_id: str) -> bool: ...

    async def list_broadcast_waves(self, db: AsyncSession, listing_id: str) -> list[int]:
        """Distinct broadcast prices for the listing, oldest first."""
        ...

    async def list_pending_ids(
        self, db: AsyncSession, listing_id: str, exclude_offer_id: str | None = None
    ) -> list[str]: ...

    async def list_due_ids(self, db: AsyncSession, now: datetime, limit: int) -> list[str]: ...

    async def find_pending_seller_offer(
        self, db: AsyncSession, listing_id: str, buyer_id: str
    ) -> Offer | None:
        """The newest pending private or broadcast offer a seller made to this buyer."""
        ...
