"""Fixtures wiring the real services to in-memory repositories."""

import pytest
from marketplace_fakes import Marketplace, build_marketplace, make_listing


@pytest.fixture
def market() -> Marketplace:
    """Seller with one $100 listing (US shipping $20) and two funded buyers."""
    m = build_marketplace()
    m.accounts.seed("seller", 0)
    m.accounts.seed("buyer", 50000)
    m.accounts.seed("buyer2", 50000)
    m.listings.add(make_listing("L1"))
    return m
