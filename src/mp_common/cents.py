"""Integer arithmetic utilities for the wallet currency.

All prices, amounts, and balances use int (cents). No float, no Decimal.
"""


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def percent_of(cents: int, percent: int) -> int:
    """Floor of `percent`% of `cents`: percent_of(10000, 60) -> 6000."""
    return cents * percent // 100


def round_bps(cents: int, bps: int) -> int:
    """Round-half-up of cents x bps / 10000: round_bps(10000, 900) -> 900."""
    if cents <= 0 or bps <= 0:
        return 0
    return (cents * bps + 5000) // 10000
