"""Pydantic schemas for the offer API."""

from typing import Literal

from pydantic import BaseModel, Field

from src.mp_offer.domain.models import Offer
from src.mp_order.application.schemas import OrderResponse, ShippingAddress

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateBuyerOfferRequest(BaseModel):
    listing_id: str
    amount_cents: int = Field(..., gt=0, description="Offered item price in cents")
    tax_cents: int = Field(0, ge=0)
    shipping_address: ShippingAddress


class CreateSellerPrivateOfferRequest(BaseModel):
    listing_id: str
    buyer_id: str
    amount_cents: int = Field(..., gt=0)


class CreateBroadcastOfferRequest(BaseModel):
    listing_id: str
    amount_cents: int = Field(..., gt=0, description="Wave price in cents")


class AcceptOfferRequest(BaseModel):
    """Checkout details; required when the buyer accepts a seller's offer."""

    shipping_address: ShippingAddress | None = None
    payment_method: Literal["wallet"] | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OfferResponse(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    mode: str
    amount_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    status: str
    funds_held: bool
    expires_at: str | None
    responded_at: str | None
    decline_reason: str | None

    @classmethod
    def from_domain(cls, offer: Offer) -> "OfferResponse":
        return cls(
            id=offer.id,
            listing_id=offer.listing_id,
            buyer_id=offer.buyer_id,
            seller_id=offer.seller_id,
            mode=offer.mode,
            amount_cents=offer.amount_cents,
            shipping_cents=offer.shipping_cents,
            tax_cents=offer.tax_cents,
            total_cents=offer.total_cents,
            status=offer.status,
            funds_held=offer.funds_held,
            expires_at=offer.expires_at.isoformat() if offer.expires_at else None,
            responded_at=offer.responded_at.isoformat() if offer.responded_at else None,
            decline_reason=offer.decline_reason,
        )


class BroadcastResponse(BaseModel):
    listing_id: str
    wave: int
    amount_cents: int
    offers: list[OfferResponse]


class AcceptOfferResponse(BaseModel):
    offer: OfferResponse
    order: OrderResponse


class BroadcastStatusResponse(BaseModel):
    listing_id: str
    waves_sent: int
    max_waves: int
    remaining_waves: int
    last_wave_cents: int | None
    # None once the wave limit is reached or the listing is off the market
    next_wave_ceiling_cents: int | None
    pending: bool


class ActiveSellerOfferResponse(BaseModel):
    listing_id: str
    offer: OfferResponse | None
