"""HTTP surface: routing, envelopes and error rendering over the fake marketplace."""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from marketplace_fakes import ADDRESS, Marketplace

from src.main import app
from src.mp_common.database import get_db_session
from src.mp_gateway.auth.dependencies import get_current_user


class Caller:
    def __init__(self) -> None:
        self.user_id = "buyer"

    def principal(self) -> SimpleNamespace:
        return SimpleNamespace(
            id=self.user_id,
            username=self.user_id,
            email=f"{self.user_id}@example.com",
            is_active=True,
        )


@pytest.fixture
def caller(market: Marketplace):
    who = Caller()

    async def session_override():
        async with market.session() as db:
            yield db

    app.state.container = market.container
    app.dependency_overrides[get_current_user] = who.principal
    app.dependency_overrides[get_db_session] = session_override
    yield who
    app.dependency_overrides.clear()
    del app.state.container


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0"}

    async def test_protected_route_without_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/orders")
        assert resp.status_code == 401

    async def test_me_reports_wallet_balance(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user_id"] == "buyer"
        assert data["email"] == "buyer@example.com"
        assert data["balance_cents"] == 50000
        assert data["balance_display"] == "$500.00"


class TestOfferRoutes:
    async def test_offer_then_accept(
        self, client: AsyncClient, caller: Caller, market: Marketplace
    ) -> None:
        resp = await client.post("/api/v1/offers", json={
            "listing_id": "L1", "amount_cents": 7000, "shipping_address": ADDRESS,
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["request_id"] == resp.headers["X-Request-ID"]
        offer_id = body["data"]["id"]
        assert body["data"]["total_cents"] == 9000

        caller.user_id = "seller"
        resp = await client.post(f"/api/v1/offers/{offer_id}/accept")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Offer accepted"
        assert resp.json()["data"]["order"]["total_cents"] == 9000
        assert market.accounts.balance("buyer") == 41000

    async def test_domain_error_envelope(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.post("/api/v1/offers", json={
            "listing_id": "L1", "amount_cents": 5000, "shipping_address": ADDRESS,
        })
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == 4005
        assert body["data"] is None
        assert body["request_id"].startswith("req_")

    async def test_caller_request_id_is_kept(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.post(
            "/api/v1/offers",
            json={"listing_id": "L1", "amount_cents": 5000, "shipping_address": ADDRESS},
            headers={"X-Request-ID": "client-retry-7"},
        )
        assert resp.headers["X-Request-ID"] == "client-retry-7"
        assert resp.json()["request_id"] == "client-retry-7"

    async def test_seller_offer_accept_needs_checkout(
        self, client: AsyncClient, caller: Caller
    ) -> None:
        caller.user_id = "seller"
        resp = await client.post("/api/v1/offers/seller-private", json={
            "listing_id": "L1", "buyer_id": "buyer", "amount_cents": 8000,
        })
        offer_id = resp.json()["data"]["id"]

        caller.user_id = "buyer"
        resp = await client.post(f"/api/v1/offers/{offer_id}/accept", json={})
        assert resp.json()["code"] == 4008

        resp = await client.post(f"/api/v1/offers/{offer_id}/accept", json={
            "shipping_address": ADDRESS, "payment_method": "wallet",
        })
        assert resp.status_code == 200
        assert resp.json()["data"]["order"]["total_cents"] == 10000

    async def test_seller_offer_lookups(self, client: AsyncClient, caller: Caller) -> None:
        caller.user_id = "seller"
        resp = await client.get("/api/v1/offers/listings/L1/broadcast/status")
        assert resp.status_code == 200
        status = resp.json()["data"]
        assert (status["remaining_waves"], status["next_wave_ceiling_cents"]) == (3, 9000)
        resp = await client.post("/api/v1/offers/seller-private", json={
            "listing_id": "L1", "buyer_id": "buyer", "amount_cents": 8000,
        })
        offer_id = resp.json()["data"]["id"]

        caller.user_id = "buyer"
        resp = await client.get("/api/v1/offers/listings/L1/active-seller-offer")
        assert resp.json()["data"]["offer"]["id"] == offer_id
        resp = await client.get("/api/v1/offers/listings/L1/broadcast/status")
        assert resp.status_code == 403


class TestConversationRoutes:
    async def test_unread_count(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.post("/api/v1/threads/messages", json={
            "listing_id": "L1", "content": "Is this still available?",
        })
        assert resp.status_code == 201

        caller.user_id = "seller"
        resp = await client.get("/api/v1/threads/unread-count")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"unread": 1, "threads": 1}


class TestOrderRoutes:
    async def test_purchase_and_advance(
        self, client: AsyncClient, caller: Caller, market: Marketplace
    ) -> None:
        resp = await client.post("/api/v1/orders/purchase", json={
            "listing_id": "L1", "shipping_address": ADDRESS,
        })
        assert resp.status_code == 201
        order_id = resp.json()["data"]["id"]

        resp = await client.post(f"/api/v1/orders/{order_id}/advance", json={"target": "DELIVERED"})
        assert resp.json()["data"]["status"] == "DELIVERED"
        assert market.accounts.balance("seller") == 7100

        resp = await client.get("/api/v1/orders", params={"role": "buyer"})
        assert [o["id"] for o in resp.json()["data"]["items"]] == [order_id]

    async def test_refund_by_buyer_forbidden(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.post("/api/v1/orders/purchase", json={
            "listing_id": "L1", "shipping_address": ADDRESS,
        })
        order_id = resp.json()["data"]["id"]
        resp = await client.post(f"/api/v1/orders/{order_id}/refund", json={
            "mode": "full", "reason": "buyer_requested",
        })
        assert resp.status_code == 403
        assert resp.json()["code"] == 9003


class TestAdminRoutes:
    async def test_non_admin_rejected(self, client: AsyncClient, caller: Caller) -> None:
        resp = await client.post("/api/v1/admin/offers/expire")
        assert resp.status_code == 403
