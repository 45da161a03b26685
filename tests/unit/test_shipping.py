"""Tests for shipping cost lookup."""

import pytest
from marketplace_fakes import US, make_listing

from src.mp_common.errors import ShippingUnavailableError
from src.mp_listing.domain.models import ShippingRegion
from src.mp_listing.domain.shipping import shipping_cents_for


def test_enabled_region_cost() -> None:
    assert shipping_cents_for(make_listing(shipping_cents=2000), US) == 2000


def test_free_shipping_is_zero() -> None:
    assert shipping_cents_for(make_listing(is_free_shipping=True), US) == 0


def test_disabled_region_unavailable() -> None:
    listing = make_listing(shipping_regions=[ShippingRegion(US, 2000, enabled=False)])
    with pytest.raises(ShippingUnavailableError):
        shipping_cents_for(listing, US)


def test_free_shipping_still_needs_region() -> None:
    listing = make_listing(
        is_free_shipping=True, shipping_regions=[ShippingRegion("Canada", 0, True)]
    )
    with pytest.raises(ShippingUnavailableError):
        shipping_cents_for(listing, US)


def test_unknown_region() -> None:
    with pytest.raises(ShippingUnavailableError):
        shipping_cents_for(make_listing(), "Japan")
