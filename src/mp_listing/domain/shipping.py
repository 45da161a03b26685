"""Shipping cost lookup.

Only one destination region is looked up today (the configured
SHIPPING_REGION, "United States" by default).
"""

from src.mp_common.errors import ShippingUnavailableError
from src.mp_listing.domain.models import Listing


def shipping_cents_for(listing: Listing, region: str) -> int:
    """Shipping cost in cents to `region`; 0 when the listing ships free.

    Raises ShippingUnavailableError when the listing has no enabled entry
    for the region, even if it is marked free-shipping.
    """
    match = next(
        (r for r in listing.shipping_regions if r.region == region and r.enabled),
        None,
    )
    if match is None:
        raise ShippingUnavailableError(region)
    if listing.is_free_shipping:
        return 0
    return max(match.cost_cents, 0)
