"""Search document shape pushed to the listing index."""

from typing import Any

from src.mp_listing.domain.models import Listing


def to_search_document(listing: Listing) -> dict[str, Any]:
    return {
        "id": listing.id,
        "title": listing.title,
        "designer": listing.designer,
        "size": listing.size,
        "price_cents": listing.price_cents,
        "favorites_count": listing.favorites_count,
        "is_sold": listing.is_sold,
        "is_deleted": listing.is_deleted,
        "is_draft": listing.is_draft,
        "thumbnail": listing.thumbnail,
        "seller_id": listing.seller_id,
        "created_at": listing.created_at.isoformat() if listing.created_at else None,
    }


def is_removal(document: dict[str, Any]) -> bool:
    """Sold, deleted and draft listings are kept out of the index."""
    return bool(document.get("is_sold") or document.get("is_deleted") or document.get("is_draft"))
