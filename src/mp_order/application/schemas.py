"""Pydantic schemas for the order API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from src.mp_common.enums import RefundMode
from src.mp_order.domain.models import Order, StatusChange


class ShippingAddress(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    line1: str = Field(..., min_length=1, max_length=200)
    line2: str | None = Field(None, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("United States", max_length=100)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PurchaseRequest(BaseModel):
    listing_id: str
    shipping_address: ShippingAddress
    tax_cents: int = Field(0, ge=0)


class AdvanceOrderRequest(BaseModel):
    target: Literal["SHIPPED", "DELIVERED"] | None = Field(
        None, description="Defaults to the next status"
    )


class RefundRequest(BaseModel):
    mode: RefundMode
    reason: str = Field(..., min_length=1, max_length=40)
    amount_cents: int | None = Field(None, gt=0, description="Required for partial refunds")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class EscrowView(BaseModel):
    held_cents: int
    status: str
    released_at: str | None


class RefundView(BaseModel):
    mode: str
    amount_cents: int
    fee_cents: int
    seller_debit_cents: int
    reason: str
    issued_at: str


class StatusChangeView(BaseModel):
    status: str
    at: str


class OrderResponse(BaseModel):
    id: str
    order_number: str
    listing_id: str
    buyer_id: str
    seller_id: str
    offer_id: str | None
    status: str
    item_price_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    escrow: EscrowView
    seller_payout_cents: int
    refund: RefundView | None
    tracking_number: str | None
    listing_snapshot: dict[str, Any]
    shipping_address: dict[str, Any]
    status_history: list[StatusChangeView]
    created_at: str

    @classmethod
    def from_domain(
        cls, order: Order, history: list[StatusChange] | None = None
    ) -> "OrderResponse":
        escrow = order.escrow
        refund = order.refund
        return cls(
            id=order.id,
            order_number=order.order_number,
            listing_id=order.listing_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            offer_id=order.offer_id,
            status=order.status,
            item_price_cents=order.item_price_cents,
            shipping_cents=order.shipping_cents,
            tax_cents=order.tax_cents,
            total_cents=order.total_cents,
            escrow=EscrowView(
                held_cents=escrow.held_cents if escrow else 0,
                status=escrow.status if escrow else "HELD",
                released_at=(
                    escrow.released_at.isoformat() if escrow and escrow.released_at else None
                ),
            ),
            seller_payout_cents=order.seller_payout_cents,
            refund=(
                RefundView(
                    mode=refund.mode,
                    amount_cents=refund.amount_cents,
                    fee_cents=refund.fee_cents,
                    seller_debit_cents=refund.seller_debit_cents,
                    reason=refund.reason,
                    issued_at=refund.issued_at.isoformat(),
                )
                if refund
                else None
            ),
            tracking_number=order.tracking_number,
            listing_snapshot=order.listing_snapshot,
            shipping_address=order.shipping_address,
            status_history=[
                StatusChangeView(status=h.status, at=h.at.isoformat())
                for h in (history if history is not None else order.status_history)
            ],
            created_at=order.created_at.isoformat() if order.created_at else "",
        )


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool
