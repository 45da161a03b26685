"""Seller payout at delivery.

net = item price - platform fee - shipping - tax, floored at 0, where the fee
is PLATFORM_FEE_BPS of the item price rounded half-up. The amount actually
released is capped at what escrow still holds after any partial refund.
"""

from src.mp_common.cents import round_bps
from src.mp_order.domain.models import Order


def platform_fee_cents(item_price_cents: int, fee_bps: int) -> int:
    return round_bps(item_price_cents, fee_bps)


def seller_net_payout(
    item_price_cents: int, shipping_cents: int, tax_cents: int, fee_bps: int
) -> int:
    fee = platform_fee_cents(item_price_cents, fee_bps)
    return max(0, item_price_cents - fee - shipping_cents - tax_cents)


def payout_for(order: Order, fee_bps: int) -> int:
    net = seller_net_payout(
        order.item_price_cents, order.shipping_cents, order.tax_cents, fee_bps
    )
    held = order.escrow.held_cents if order.escrow else 0
    return min(net, max(held, 0))
