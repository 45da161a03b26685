"""OrderApplicationService: purchase, progression, escrow payout and refunds."""

import pytest
from marketplace_fakes import ADDRESS, Marketplace

from src.mp_common.enums import OrderStatus, SystemEvent
from src.mp_common.errors import (
    AlreadyRefundedError,
    DuplicateOrderError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidOrderTransitionError,
    InvalidRefundReasonError,
    ListingUnavailableError,
)


async def _purchase(market: Marketplace, buyer: str = "buyer"):
    return await market.container.orders.purchase_listing(market.session(), buyer, "L1", ADDRESS)


async def _advance(market: Marketplace, order_id: str, user: str = "seller", target=None):
    return await market.container.orders.advance_order_status(
        market.session(), order_id, user, target
    )


async def _delivered(market: Marketplace):
    order = await _purchase(market)
    return await _advance(market, order.id, target=OrderStatus.DELIVERED.value)


async def _refund(market: Marketplace, order_id: str, mode: str = "full",
                  reason: str = "buyer_requested", amount: int | None = None):
    return await market.container.orders.issue_refund(
        market.session(), order_id, "seller", mode, reason, amount
    )


class TestPurchase:
    async def test_moves_total_into_escrow(self, market: Marketplace) -> None:
        order = await _purchase(market)

        assert order.status == OrderStatus.PAID.value
        assert order.total_cents == 12000
        assert order.escrow.held_cents == 12000
        assert order.escrow.status == "HELD"
        assert order.listing_snapshot["price_cents"] == 10000
        assert [h.status for h in order.status_history] == ["PAID"]
        assert market.accounts.balance("buyer") == 38000
        assert market.accounts.entries_for("buyer", "PURCHASE")[0].reference_type == "LISTING"
        assert market.listings.peek("L1").is_sold

    async def test_tax_is_part_of_total(self, market: Marketplace) -> None:
        order = await market.container.orders.purchase_listing(
            market.session(), "buyer", "L1", ADDRESS, tax_cents=825
        )
        assert order.total_cents == 12825

    async def test_same_buyer_twice(self, market: Marketplace) -> None:
        await _purchase(market)
        with pytest.raises(DuplicateOrderError):
            await _purchase(market)
        assert market.accounts.balance("buyer") == 38000

    async def test_sold_to_someone_else(self, market: Marketplace) -> None:
        await _purchase(market)
        with pytest.raises(ListingUnavailableError):
            await _purchase(market, "buyer2")
        assert market.accounts.balance("buyer2") == 50000

    async def test_own_listing(self, market: Marketplace) -> None:
        with pytest.raises(ForbiddenError):
            await _purchase(market, "seller")

    async def test_insufficient_funds_unreserves(self, market: Marketplace) -> None:
        market.accounts.seed("poor", 11999)
        with pytest.raises(InsufficientFundsError):
            await _purchase(market, "poor")
        assert market.listings.peek("L1").is_available
        assert market.orders.orders == {}
        assert market.backend.documents == []

    async def test_projects_sold_listing(self, market: Marketplace) -> None:
        await _purchase(market)
        assert market.backend.documents[-1]["id"] == "L1"
        assert market.backend.documents[-1]["is_sold"]

    async def test_pending_offers_released(self, market: Marketplace) -> None:
        offer = await market.container.offers.create_buyer_offer(
            market.session(), "buyer2", "L1", 7000, ADDRESS
        )
        await _purchase(market)
        assert market.offers.peek(offer.id).decline_reason == "sold_to_other"
        assert market.accounts.balance("buyer2") == 50000

    async def test_own_pending_offer_superseded_by_purchase(self, market: Marketplace) -> None:
        offer = await market.container.offers.create_buyer_offer(
            market.session(), "buyer", "L1", 7000, ADDRESS
        )
        await _purchase(market)

        assert market.offers.peek(offer.id).decline_reason == "purchased"
        # hold of 9000 returned, list price 12000 paid
        assert market.accounts.balance("buyer") == 38000
        declined = market.threads.events(SystemEvent.OFFER_DECLINED.value)
        assert [m.payload["reason"] for m in declined] == ["purchased"]


class TestAdvance:
    async def test_ship_assigns_tracking(self, market: Marketplace) -> None:
        order = await _purchase(market)
        shipped = await _advance(market, order.id)

        assert shipped.status == OrderStatus.SHIPPED.value
        assert shipped.tracking_number.startswith("1Z")
        event = market.threads.events(SystemEvent.ORDER_SHIPPED.value, order.id)[0]
        assert event.payload["tracking_number"] == shipped.tracking_number

    async def test_delivery_pays_seller_net(self, market: Marketplace) -> None:
        delivered = await _delivered(market)

        assert delivered.status == OrderStatus.DELIVERED.value
        assert delivered.escrow.status == "RELEASED"
        assert delivered.seller_payout_cents == 7100
        assert market.accounts.balance("seller") == 7100
        assert [h.status for h in delivered.status_history] == ["PAID", "SHIPPED", "DELIVERED"]
        payout = market.threads.events(SystemEvent.PAYOUT_RELEASED.value)[0]
        assert payout.payload == {"payout_cents": 7100, "platform_fee_cents": 900}

    async def test_replay_releases_once(self, market: Marketplace) -> None:
        delivered = await _delivered(market)
        again = await _advance(market, delivered.id, user="buyer")

        assert again.status == OrderStatus.DELIVERED.value
        assert market.accounts.balance("seller") == 7100
        assert len(market.accounts.entries_for("seller", "ESCROW_PAYOUT")) == 1
        assert len(market.threads.events(SystemEvent.ORDER_DELIVERED.value)) == 1
        assert len(market.threads.events(SystemEvent.PAYOUT_RELEASED.value)) == 1

    async def test_backwards_rejected(self, market: Marketplace) -> None:
        delivered = await _delivered(market)
        with pytest.raises(InvalidOrderTransitionError):
            await _advance(market, delivered.id, target=OrderStatus.SHIPPED.value)

    async def test_strangers_cannot_advance(self, market: Marketplace) -> None:
        order = await _purchase(market)
        with pytest.raises(ForbiddenError):
            await _advance(market, order.id, user="buyer2")

    async def test_canceled_order_left_alone(self, market: Marketplace) -> None:
        order = await _purchase(market)
        await _refund(market, order.id)
        result = await _advance(market, order.id)
        assert result.status == OrderStatus.CANCELED.value
        assert market.accounts.balance("seller") == 0


class TestRefund:
    async def test_full_before_shipment_cancels(self, market: Marketplace) -> None:
        order = await _purchase(market)
        refunded = await _refund(market, order.id, reason="no_longer_have_item")

        assert refunded.status == OrderStatus.CANCELED.value
        assert refunded.refund.amount_cents == 12000
        assert refunded.refund.seller_debit_cents == 0
        assert refunded.escrow.held_cents == 0
        assert market.accounts.balance("buyer") == 50000
        assert [h.status for h in refunded.status_history] == ["PAID", "CANCELED"]

    async def test_pre_shipment_reason_after_shipping(self, market: Marketplace) -> None:
        order = await _purchase(market)
        await _advance(market, order.id)
        with pytest.raises(InvalidRefundReasonError):
            await _refund(market, order.id, reason="no_longer_want_to_sell")

    async def test_partial_then_delivery(self, market: Marketplace) -> None:
        order = await _purchase(market)
        refunded = await _refund(market, order.id, "partial", "item_damaged", 3000)
        assert refunded.status == OrderStatus.PAID.value
        assert refunded.escrow.held_cents == 9000
        assert market.accounts.balance("buyer") == 41000

        delivered = await _advance(market, order.id, target=OrderStatus.DELIVERED.value)
        assert delivered.seller_payout_cents == 7100

    async def test_after_release_claws_back_payout(self, market: Marketplace) -> None:
        delivered = await _delivered(market)
        refunded = await _refund(market, delivered.id, reason="item_not_as_described")

        assert refunded.status == OrderStatus.DELIVERED.value
        assert refunded.refund.seller_debit_cents == 7100
        assert refunded.refund.fee_cents == 4900
        assert market.accounts.balance("buyer") == 50000
        assert market.accounts.balance("seller") == 0

    async def test_clawback_shortfall_rolls_back(self, market: Marketplace) -> None:
        delivered = await _delivered(market)
        await market.container.accounts.withdraw(market.session(), "seller", 7000)

        with pytest.raises(InsufficientFundsError):
            await _refund(market, delivered.id)
        assert market.orders.peek(delivered.id).refund is None
        assert market.accounts.balance("buyer") == 38000

    async def test_only_once(self, market: Marketplace) -> None:
        order = await _purchase(market)
        await _refund(market, order.id, "partial", "other", 100)
        with pytest.raises(AlreadyRefundedError):
            await _refund(market, order.id, "partial", "other", 100)
        assert market.accounts.balance("buyer") == 38100

    async def test_only_seller_refunds(self, market: Marketplace) -> None:
        order = await _purchase(market)
        with pytest.raises(ForbiddenError):
            await market.container.orders.issue_refund(
                market.session(), order.id, "buyer", "full", "other"
            )


class TestRead:
    async def test_get_order_parties_only(self, market: Marketplace) -> None:
        order = await _purchase(market)
        assert (await market.container.orders.get_order(market.session(), order.id, "buyer")).id
        with pytest.raises(ForbiddenError):
            await market.container.orders.get_order(market.session(), order.id, "buyer2")

    async def test_list_orders_by_role(self, market: Marketplace) -> None:
        order = await _purchase(market)
        bought = await market.container.orders.list_orders(
            market.session(), "buyer", "buyer", None, 20
        )
        sold = await market.container.orders.list_orders(
            market.session(), "seller", "seller", None, 20
        )
        assert [o.id for o in bought.items] == [order.id]
        assert [o.id for o in sold.items] == [order.id]
        assert not bought.has_more
