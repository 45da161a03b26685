"""Pydantic schemas for the listing API."""

from pydantic import BaseModel, Field, model_validator

from src.mp_listing.domain.models import Listing


class ShippingRegionIn(BaseModel):
    region: str = Field(..., min_length=1, max_length=100)
    cost_cents: int = Field(0, ge=0)
    enabled: bool = True


class CreateListingRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    designer: str | None = Field(None, max_length=100)
    size: str | None = Field(None, max_length=20)
    thumbnail: str | None = Field(None, max_length=500)
    price_cents: int = Field(..., gt=0)
    is_draft: bool = False
    is_free_shipping: bool = False
    can_offer: bool = True
    shipping_regions: list[ShippingRegionIn] = Field(..., min_length=1)

    @model_validator(mode="after")
    def one_enabled_region(self) -> "CreateListingRequest":
        if not any(r.enabled for r in self.shipping_regions):
            raise ValueError("At least one shipping region must be enabled")
        return self


class PriceDropRequest(BaseModel):
    new_price_cents: int = Field(..., gt=0)


class ShippingRegionView(BaseModel):
    region: str
    cost_cents: int
    enabled: bool


class ListingResponse(BaseModel):
    id: str
    seller_id: str
    title: str | None
    designer: str | None
    size: str | None
    thumbnail: str | None
    price_cents: int
    original_price_cents: int
    buyer_id: str | None
    is_sold: bool
    is_deleted: bool
    is_draft: bool
    is_free_shipping: bool
    can_offer: bool
    favorites_count: int
    shipping_regions: list[ShippingRegionView]
    sold_at: str | None
    created_at: str

    @classmethod
    def from_domain(cls, listing: Listing) -> "ListingResponse":
        return cls(
            id=listing.id,
            seller_id=listing.seller_id,
            title=listing.title,
            designer=listing.designer,
            size=listing.size,
            thumbnail=listing.thumbnail,
            price_cents=listing.price_cents,
            original_price_cents=listing.original_price_cents,
            buyer_id=listing.buyer_id,
            is_sold=listing.is_sold,
            is_deleted=listing.is_deleted,
            is_draft=listing.is_draft,
            is_free_shipping=listing.is_free_shipping,
            can_offer=listing.can_offer,
            favorites_count=listing.favorites_count,
            shipping_regions=[ShippingRegionView(**r.to_dict()) for r in listing.shipping_regions],
            sold_at=listing.sold_at.isoformat() if listing.sold_at else None,
            created_at=listing.created_at.isoformat() if listing.created_at else "",
        )


class FavoriteResponse(BaseModel):
    listing_id: str
    favorited: bool
    changed: bool
