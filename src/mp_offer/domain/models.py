"""Offer domain model: pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.mp_common.enums import OfferMode, OfferStatus


@dataclass
class Offer:
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    mode: str  # OfferMode value
    amount_cents: int
    shipping_cents: int
    tax_cents: int = 0
    total_cents: int = field(init=False)
    status: str = OfferStatus.PENDING.value
    funds_held: bool = False
    expires_at: datetime | None = None  # None: never auto-expires
    responded_at: datetime | None = None
    decline_reason: str | None = None
    shipping_address: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.total_cents = self.amount_cents + self.shipping_cents + self.tax_cents

    @property
    def is_pending(self) -> bool:
        return self.status == OfferStatus.PENDING.value

    @property
    def is_seller_initiated(self) -> bool:
        return self.mode != OfferMode.BUYER.value

    @property
    def responder_id(self) -> str:
        """The party allowed to accept or decline."""
        return self.buyer_id if self.is_seller_initiated else self.seller_id

    @property
    def initiator_id(self) -> str:
        return self.seller_id if self.is_seller_initiated else self.buyer_id

    def is_past_deadline(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now
