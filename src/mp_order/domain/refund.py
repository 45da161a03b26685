"""Refund planning: the pure half of issue_refund.

`plan_refund` validates the request against the order's current state and
works out every amount the transaction will move. The service then applies
the plan under a row lock.
"""

from dataclasses import dataclass

from src.mp_common.enums import OrderStatus, RefundMode, RefundReason
from src.mp_common.errors import (
    AlreadyRefundedError,
    InvalidAmountError,
    InvalidRefundReasonError,
)
from src.mp_order.domain.models import Order

PRE_SHIPMENT_ONLY = frozenset({
    RefundReason.NO_LONGER_HAVE_ITEM,
    RefundReason.NO_INTERNATIONAL_SHIPPING,
    RefundReason.NO_LONGER_WANT_TO_SELL,
})


@dataclass(frozen=True)
class RefundPlan:
    mode: str
    reason: str
    amount_cents: int          # credited to the buyer
    seller_debit_cents: int    # clawed back from the seller (escrow already released)
    fee_cents: int             # part of the refund the platform covers
    escrow_held_after: int
    cancels_order: bool


def parse_reason(reason: str, status: str) -> RefundReason:
    try:
        return RefundReason(reason)
    except ValueError:
        raise InvalidRefundReasonError(reason, status) from None


def plan_refund(
    order: Order, mode: str, reason: str, amount_cents: int | None = None
) -> RefundPlan:
    if order.refund is not None:
        raise AlreadyRefundedError(order.id)

    parsed = parse_reason(reason, order.status)
    if parsed in PRE_SHIPMENT_ONLY and order.has_shipped:
        raise InvalidRefundReasonError(parsed.value, order.status)

    if mode == RefundMode.FULL.value:
        amount = order.total_cents
    elif mode == RefundMode.PARTIAL.value:
        if amount_cents is None or amount_cents <= 0:
            raise InvalidAmountError("partial refund needs a positive amount")
        if amount_cents > order.total_cents:
            raise InvalidAmountError(
                f"refund {amount_cents} exceeds order total {order.total_cents}"
            )
        amount = amount_cents
    else:
        raise InvalidAmountError(f"unknown refund mode {mode}")

    escrow = order.escrow
    if escrow is not None and escrow.is_released:
        seller_debit = min(amount, order.seller_payout_cents)
        fee = amount - seller_debit
        held_after = escrow.held_cents
    else:
        held = escrow.held_cents if escrow else order.total_cents
        seller_debit = 0
        fee = max(amount - held, 0)
        held_after = max(held - amount, 0)

    cancels = order.status != OrderStatus.DELIVERED.value and amount == order.total_cents
    return RefundPlan(
        mode=mode,
        reason=parsed.value,
        amount_cents=amount,
        seller_debit_cents=seller_debit,
        fee_cents=fee,
        escrow_held_after=held_after,
        cancels_order=cancels,
    )
