"""Tests for the Offer model and the snapshot carried by offer messages."""

from datetime import UTC, datetime, timedelta

from marketplace_fakes import make_listing

from src.mp_common.enums import OfferMode, OfferStatus
from src.mp_offer.domain.models import Offer
from src.mp_offer.domain.snapshot import apply_patch, build_offer_snapshot, status_patch

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _offer(mode: str = OfferMode.BUYER.value, expires_at: datetime | None = None) -> Offer:
    return Offer(
        id="F1",
        listing_id="L1",
        buyer_id="buyer",
        seller_id="seller",
        mode=mode,
        amount_cents=7000,
        shipping_cents=2000,
        tax_cents=500,
        expires_at=expires_at,
    )


class TestOffer:
    def test_total_includes_shipping_and_tax(self) -> None:
        assert _offer().total_cents == 9500

    def test_buyer_offer_answered_by_seller(self) -> None:
        offer = _offer()
        assert offer.initiator_id == "buyer"
        assert offer.responder_id == "seller"
        assert not offer.is_seller_initiated

    def test_seller_offer_answered_by_buyer(self) -> None:
        offer = _offer(OfferMode.SELLER_BROADCAST.value)
        assert offer.initiator_id == "seller"
        assert offer.responder_id == "buyer"

    def test_deadline_is_inclusive(self) -> None:
        offer = _offer(expires_at=NOW)
        assert offer.is_past_deadline(NOW)
        assert not offer.is_past_deadline(NOW - timedelta(seconds=1))

    def test_no_deadline_never_past(self) -> None:
        assert not _offer().is_past_deadline(NOW + timedelta(days=365))


class TestSnapshot:
    def test_snapshot_fields(self) -> None:
        snap = build_offer_snapshot(_offer(expires_at=NOW), make_listing())
        assert snap["status"] == OfferStatus.PENDING.value
        assert snap["total_cents"] == 9500
        assert snap["listing_price_cents"] == 10000
        assert snap["expires_at"] == NOW.isoformat()
        assert snap["responded_at"] is None

    def test_patch_only_touches_status_fields(self) -> None:
        snap = build_offer_snapshot(_offer(), make_listing())
        patched = apply_patch(snap, status_patch(OfferStatus.DECLINED.value, NOW, "declined"))
        assert patched["status"] == "declined"
        assert patched["responded_at"] == NOW.isoformat()
        assert patched["decline_reason"] == "declined"
        untouched = [k for k in snap if k not in ("status", "responded_at")]
        assert all(patched[k] == snap[k] for k in untouched)

    def test_accept_patch_has_no_reason(self) -> None:
        assert "decline_reason" not in status_patch(OfferStatus.ACCEPTED.value, NOW)
