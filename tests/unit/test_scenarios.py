"""End-to-end walkthroughs of the negotiation and settlement flows."""

import asyncio

import pytest
from marketplace_fakes import ADDRESS, Marketplace, make_listing

from src.mp_common.enums import EscrowStatus, OfferStatus, OrderStatus, SystemEvent
from src.mp_common.errors import OfferNotPendingError


async def test_offer_accepted_into_order(market: Marketplace) -> None:
    offer = await market.container.offers.create_buyer_offer(
        market.session(), "buyer", "L1", 7000, ADDRESS
    )
    assert offer.total_cents == 9000
    assert market.accounts.balance("buyer") == 41000

    result = await market.container.offers.accept_offer(market.session(), offer.id, "seller")

    assert result.order.total_cents == 9000
    assert result.order.escrow.status == EscrowStatus.HELD.value
    assert market.listings.peek("L1").is_sold
    assert market.accounts.balance("buyer") == 41000


async def test_offers_on_unrelated_listings_run_in_parallel(market: Marketplace) -> None:
    market.listings.add(make_listing("L2", price_cents=20000))

    first, second = await asyncio.gather(
        market.container.offers.create_buyer_offer(
            market.session(), "buyer", "L1", 7000, ADDRESS
        ),
        market.container.offers.create_buyer_offer(
            market.session(), "buyer", "L2", 15000, ADDRESS
        ),
    )

    assert first.total_cents == 9000
    assert second.total_cents == 17000
    assert market.accounts.balance("buyer") == 50000 - 9000 - 17000


async def test_delivery_releases_net_payout(market: Marketplace) -> None:
    order = await market.container.orders.purchase_listing(
        market.session(), "buyer", "L1", ADDRESS
    )
    delivered = await market.container.orders.advance_order_status(
        market.session(), order.id, "seller", OrderStatus.DELIVERED.value
    )

    assert delivered.seller_payout_cents == 10000 - 900 - 2000
    assert delivered.escrow.status == EscrowStatus.RELEASED.value
    assert market.accounts.balance("seller") == 7100


async def test_full_refund_after_release(market: Marketplace) -> None:
    order = await market.container.orders.purchase_listing(
        market.session(), "buyer", "L1", ADDRESS
    )
    await market.container.orders.advance_order_status(
        market.session(), order.id, "seller", OrderStatus.DELIVERED.value
    )

    refunded = await market.container.orders.issue_refund(
        market.session(), order.id, "seller", "full", "item_not_as_described"
    )

    assert refunded.refund.amount_cents == order.total_cents
    assert refunded.refund.seller_debit_cents == min(order.total_cents, 7100)
    assert refunded.status == OrderStatus.DELIVERED.value
    assert market.accounts.balance("buyer") == 50000
    assert market.accounts.balance("seller") == 0
    events = market.threads.events(SystemEvent.REFUND_ISSUED.value, order.id)
    assert len(events) == 1


async def test_unanswered_offer_expires(market: Marketplace) -> None:
    offer = await market.container.offers.create_buyer_offer(
        market.session(), "buyer", "L1", 7000, ADDRESS
    )
    assert offer.expires_at == "2026-03-03T09:00:00+00:00"

    market.clock.advance(hours=25)
    report = await market.container.sweeper.run_once()

    assert (report.due, report.expired) == (1, 1)
    assert market.offers.peek(offer.id).status == OfferStatus.EXPIRED.value
    assert market.accounts.balance("buyer") == 50000
    assert market.threads.offer_message(offer.id).offer_snapshot["status"] == "expired"
    with pytest.raises(OfferNotPendingError):
        await market.container.offers.accept_offer(market.session(), offer.id, "seller")
