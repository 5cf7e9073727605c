"""Unit tests for rounding and capping."""

from decimal import Decimal

import pytest

from policy_rating.models import RoundingMode
from policy_rating.services.rating import (
    apply_rounding_and_caps,
    round_value,
    try_round_value,
)
from policy_rating.services.rating.rounding import clamp


class TestRoundValue:
    """Rounding modes on signed values."""

    @pytest.mark.parametrize(
        ("mode", "value", "expected"),
        [
            (RoundingMode.UP, "10.001", "10.01"),
            (RoundingMode.UP, "-10.005", "-10.00"),
            (RoundingMode.DOWN, "10.009", "10.00"),
            (RoundingMode.DOWN, "-10.005", "-10.01"),
            (RoundingMode.NEAREST, "2.345", "2.35"),
            (RoundingMode.NEAREST, "-2.345", "-2.35"),
            (RoundingMode.BANKERS, "2.345", "2.34"),
            (RoundingMode.BANKERS, "2.355", "2.36"),
            (RoundingMode.TRUNCATE, "2.349", "2.34"),
            (RoundingMode.TRUNCATE, "-2.349", "-2.34"),
        ],
    )
    def test_modes(self, mode, value, expected):
        """Each mode rounds to two places by default."""
        assert round_value(Decimal(value), mode) == Decimal(expected)

    def test_none_returns_value_unchanged(self):
        """No rounding keeps every digit."""
        value = Decimal("1.23456789")

        assert round_value(value, RoundingMode.NONE) is value

    def test_precision(self):
        """Precision sets the number of decimal places."""
        assert round_value(Decimal("1.23456"), RoundingMode.NEAREST, 4) == Decimal("1.2346")
        assert round_value(Decimal("1234.5"), RoundingMode.NEAREST, 0) == Decimal("1235")

    def test_result_carries_requested_exponent(self):
        """Rounded values keep the quantized scale."""
        assert str(round_value(Decimal("5"), RoundingMode.NEAREST)) == "5.00"

    def test_value_beyond_context_precision(self):
        """Values that cannot hold the requested places are not rounded."""
        value = Decimal("1E+19")

        assert try_round_value(value, RoundingMode.NEAREST, 10) is None
        assert round_value(value, RoundingMode.NEAREST, 10) is value
        assert try_round_value(value, RoundingMode.NEAREST, 2) == Decimal("1E+19")


class TestCaps:
    """Clamping after rounding."""

    def test_clamp_bounds(self):
        """Values outside the caps are pulled in."""
        assert clamp(Decimal("0.5"), Decimal("0.8"), Decimal("1.2")) == Decimal("0.8")
        assert clamp(Decimal("1.5"), Decimal("0.8"), Decimal("1.2")) == Decimal("1.2")
        assert clamp(Decimal("1.0"), Decimal("0.8"), Decimal("1.2")) == Decimal("1.0")

    def test_clamp_open_bounds(self):
        """Missing caps do not constrain."""
        assert clamp(Decimal("-5"), None, None) == Decimal("-5")
        assert clamp(Decimal("50"), None, Decimal("10")) == Decimal("10")

    def test_crossed_caps_upper_wins(self):
        """When min exceeds max the upper bound is final."""
        assert clamp(Decimal("1"), Decimal("2"), Decimal("1.5")) == Decimal("1.5")

    def test_round_then_cap(self):
        """Rounding happens before capping and both are recorded."""
        rounded = apply_rounding_and_caps(
            Decimal("1.2049"),
            RoundingMode.NEAREST,
            max_cap=Decimal("1.2"),
        )

        assert rounded.pre_rounding == Decimal("1.2049")
        assert rounded.rounded == Decimal("1.20")
        assert rounded.final == Decimal("1.20")
        assert rounded.was_capped is False

    def test_capped_flag(self):
        """Capping is flagged when the final value differs."""
        rounded = apply_rounding_and_caps(
            Decimal("1.26"), RoundingMode.NONE, Decimal("0.8"), Decimal("1.2")
        )

        assert rounded.final == Decimal("1.2")
        assert rounded.was_capped is True

    def test_unroundable_value_is_flagged(self):
        """Skipped rounding is reported and caps still apply."""
        rounded = apply_rounding_and_caps(
            Decimal("1E+27"), RoundingMode.BANKERS, max_cap=Decimal("1000")
        )

        assert rounded.rounding_skipped is True
        assert rounded.rounded == Decimal("1E+27")
        assert rounded.final == Decimal("1000")
        assert rounded.was_capped is True
