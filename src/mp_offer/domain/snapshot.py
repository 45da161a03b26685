"""Offer snapshot embedded in offer-type messages.

The snapshot is written once when the offer message is appended; afterwards
only the fields produced by `status_patch` change, through
ConversationRecorder.project_offer_status, in the same transaction as the
offer transition itself.
"""

from datetime import datetime
from typing import Any

from src.mp_listing.domain.models import Listing
from src.mp_offer.domain.models import Offer


def build_offer_snapshot(offer: Offer, listing: Listing) -> dict[str, Any]:
    return {
        "offer_id": offer.id,
        "mode": offer.mode,
        "status": offer.status,
        "amount_cents": offer.amount_cents,
        "shipping_cents": offer.shipping_cents,
        "tax_cents": offer.tax_cents,
        "total_cents": offer.total_cents,
        "listing_id": listing.id,
        "listing_title": listing.title,
        "listing_price_cents": listing.price_cents,
        "thumbnail": listing.thumbnail or "",
        "expires_at": offer.expires_at.isoformat() if offer.expires_at else None,
        "responded_at": None,
    }


def status_patch(
    status: str, responded_at: datetime, reason: str | None = None
) -> dict[str, Any]:
    patch: dict[str, Any] = {
        "status": status,
        "responded_at": responded_at.isoformat(),
    }
    if reason is not None:
        patch["decline_reason"] = reason
    return patch


def apply_patch(snapshot: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """In-memory equivalent of the JSONB `||` merge used by the repository."""
    return {**snapshot, **patch}
