"""Order domain model: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.mp_common.enums import EscrowStatus, OrderStatus

# Forward path; CANCELED sits outside it and is reached only through a refund.
STATUS_SEQUENCE = (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED)


@dataclass
class Escrow:
    held_cents: int
    status: str = EscrowStatus.HELD.value
    released_at: datetime | None = None

    @property
    def is_released(self) -> bool:
        return self.status == EscrowStatus.RELEASED.value


@dataclass
class Refund:
    mode: str  # RefundMode value
    amount_cents: int
    fee_cents: int  # share of the refund absorbed by the platform
    seller_debit_cents: int
    reason: str
    issued_at: datetime


@dataclass
class StatusChange:
    status: str
    at: datetime


@dataclass
class Order:
    id: str
    order_number: str
    listing_id: str
    buyer_id: str
    seller_id: str
    item_price_cents: int
    shipping_cents: int
    tax_cents: int = 0
    total_cents: int = field(init=False)
    status: str = OrderStatus.PAID.value
    escrow: Escrow | None = None
    seller_payout_cents: int = 0
    refund: Refund | None = None
    offer_id: str | None = None
    tracking_number: str | None = None
    listing_snapshot: dict[str, Any] = field(default_factory=dict)
    shipping_address: dict[str, Any] = field(default_factory=dict)
    status_history: list[StatusChange] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.total_cents = self.item_price_cents + self.shipping_cents + self.tax_cents
        if self.escrow is None:
            self.escrow = Escrow(held_cents=self.total_cents)

    @property
    def is_canceled(self) -> bool:
        return self.status == OrderStatus.CANCELED.value

    @property
    def has_shipped(self) -> bool:
        return self.status in (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value)

    def has_party(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)


def status_rank(status: str) -> int:
    """Position on the forward path; -1 for CANCELED."""
    for rank, step in enumerate(STATUS_SEQUENCE):
        if step.value == status:
            return rank
    return -1


def next_status(status: str) -> str | None:
    rank = status_rank(status)
    if rank < 0 or rank + 1 >= len(STATUS_SEQUENCE):
        return None
    return STATUS_SEQUENCE[rank + 1].value
