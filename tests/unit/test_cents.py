"""Tests for mp_common.cents: integer money helpers."""

import pytest

from src.mp_common.cents import cents_to_display, percent_of, round_bps


class TestCentsToDisplay:
    def test_basic(self) -> None:
        assert cents_to_display(6500) == "$65.00"

    def test_zero(self) -> None:
        assert cents_to_display(0) == "$0.00"

    def test_one_cent(self) -> None:
        assert cents_to_display(1) == "$0.01"

    def test_thousands_separator(self) -> None:
        assert cents_to_display(150000) == "$1,500.00"

    def test_negative(self) -> None:
        assert cents_to_display(-1200) == "-$12.00"


class TestPercentOf:
    def test_offer_floor(self) -> None:
        assert percent_of(10000, 60) == 6000

    def test_floors_fractional_cents(self) -> None:
        # 60% of 999 is 599.4
        assert percent_of(999, 60) == 599

    def test_wave_discount(self) -> None:
        assert percent_of(10000, 90) == 9000


class TestRoundBps:
    def test_platform_fee(self) -> None:
        assert round_bps(10000, 900) == 900

    @pytest.mark.parametrize("cents,expected", [
        (5, 0),       # 0.45 rounds down
        (6, 1),       # 0.54 rounds up
        (50, 5),      # 4.5 rounds half-up
        (12345, 1111),
    ])
    def test_rounds_half_up(self, cents: int, expected: int) -> None:
        assert round_bps(cents, 900) == expected

    def test_non_positive_inputs(self) -> None:
        assert round_bps(0, 900) == 0
        assert round_bps(10000, 0) == 0
        assert round_bps(-100, 900) == 0
