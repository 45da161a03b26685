"""Domain models for mp_listing: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class ShippingRegion:
    region: str
    cost_cents: int
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"region": self.region, "cost_cents": self.cost_cents, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShippingRegion":
        return cls(
            region=data["region"],
            cost_cents=int(data.get("cost_cents", 0)),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class Listing:
    id: str
    seller_id: str
    title: str | None
    price_cents: int
    original_price_cents: int   # price at creation; price drops never touch it
    buyer_id: str | None = None
    is_sold: bool = False
    is_deleted: bool = False
    is_draft: bool = False
    is_free_shipping: bool = False
    shipping_regions: list[ShippingRegion] = field(default_factory=list)
    designer: str | None = None
    size: str | None = None
    thumbnail: str | None = None
    can_offer: bool = True
    favorites_count: int = 0
    sold_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_available(self) -> bool:
        """Purchasable: not sold, not soft-deleted, not a draft."""
        return not (self.is_sold or self.is_deleted or self.is_draft)

    def snapshot(self) -> dict[str, Any]:
        """Listing fields frozen onto an order at sale time."""
        return {
            "title": self.title,
            "designer": self.designer,
            "size": self.size,
            "price_cents": self.price_cents,
            "image_url": self.thumbnail or "",
        }
