"""Negotiation policy: offer floor/ceiling, broadcast waves, offer lifetime.

Pure functions over integer cents. Policy values come from settings at
service construction and are passed in explicitly.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from src.mp_common.cents import percent_of
from src.mp_common.errors import InvalidAmountError, OutOfPriceBoundsError
from src.mp_listing.domain.models import Listing


@dataclass(frozen=True)
class NegotiationPolicy:
    floor_percent: int = 60
    ttl_hours: int = 24
    max_waves: int = 3
    wave_percent: int = 90

    @classmethod
    def from_settings(cls, settings: Any) -> "NegotiationPolicy":
        return cls(
            floor_percent=settings.OFFER_FLOOR_PERCENT,
            ttl_hours=settings.OFFER_TTL_HOURS,
            max_waves=settings.BROADCAST_MAX_WAVES,
            wave_percent=settings.BROADCAST_WAVE_PERCENT,
        )


def buyer_offer_bounds(
    listing: Listing, policy: NegotiationPolicy, last_wave_cents: int | None = None
) -> tuple[int, int]:
    """(floor, ceiling) for a buyer-initiated offer.

    Once the seller has broadcast a discount, the ceiling drops to the latest
    wave price: a buyer never has to offer more than the seller already asked.
    """
    floor = percent_of(listing.price_cents, policy.floor_percent)
    ceiling = listing.price_cents
    if last_wave_cents is not None:
        ceiling = min(ceiling, last_wave_cents)
    return floor, ceiling


def check_buyer_amount(amount_cents: int, floor: int, ceiling: int) -> None:
    if amount_cents <= 0:
        raise InvalidAmountError("amount must be positive")
    if not floor <= amount_cents <= ceiling:
        raise OutOfPriceBoundsError(amount_cents, floor, ceiling)


def check_private_amount(amount_cents: int, listing: Listing) -> None:
    if amount_cents <= 0:
        raise InvalidAmountError("amount must be positive")
    if amount_cents > listing.price_cents:
        raise OutOfPriceBoundsError(amount_cents, 1, listing.price_cents)


def next_wave_ceiling(
    listing: Listing, waves: list[int], policy: NegotiationPolicy
) -> int:
    """Highest price the next broadcast wave may carry.

    `waves` holds the distinct prices already broadcast, oldest first. A wave
    never exceeds the current list price, which a price drop may have pushed
    below the wave schedule.
    """
    if len(waves) >= policy.max_waves:
        raise InvalidAmountError(
            f"broadcast limit of {policy.max_waves} price points reached"
        )
    base = waves[-1] if waves else listing.original_price_cents
    return min(percent_of(base, policy.wave_percent), listing.price_cents)


def check_wave_amount(amount_cents: int, ceiling: int) -> None:
    if amount_cents <= 0:
        raise InvalidAmountError("amount must be positive")
    if amount_cents > ceiling:
        raise OutOfPriceBoundsError(amount_cents, 1, ceiling)


def offer_expires_at(now: datetime, policy: NegotiationPolicy) -> datetime | None:
    if policy.ttl_hours <= 0:
        return None
    return now + timedelta(hours=policy.ttl_hours)
