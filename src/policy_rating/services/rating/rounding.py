# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Rounding and capping of step contributions.

Rounding works on ``Decimal`` with explicit quantization so that the same
value always rounds the same way, independent of float representation and
of the caller's decimal context. Modes are defined on the signed value:

- ``up`` / ``down`` are ceiling / floor (toward +inf / -inf), so a credit of
  -10.005 rounds up to -10.00 and down to -10.01.
- ``nearest`` rounds half away from zero, ``bankers`` half to even.
- ``truncate`` drops digits toward zero.

A value too large to carry the requested decimal places within the active
decimal context is left unrounded rather than raising.
"""

from decimal import (
    ROUND_CEILING,
    ROUND_DOWN,
    ROUND_FLOOR,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    Decimal,
    InvalidOperation,
)

from attrs import frozen
from beartype import beartype

from ...models.steps import RoundingMode

_DECIMAL_ROUNDING: dict[RoundingMode, str] = {
    RoundingMode.UP: ROUND_CEILING,
    RoundingMode.DOWN: ROUND_FLOOR,
    RoundingMode.NEAREST: ROUND_HALF_UP,
    RoundingMode.BANKERS: ROUND_HALF_EVEN,
    RoundingMode.TRUNCATE: ROUND_DOWN,
}

CURRENCY_PRECISION = 2


@frozen
class RoundedValue:
    """Outcome of rounding and capping a single value."""

    pre_rounding: Decimal
    rounded: Decimal  # pre-clamp
    final: Decimal
    was_capped: bool
    rounding_skipped: bool = False


@beartype
def try_round_value(
    value: Decimal,
    mode: RoundingMode,
    precision: int = CURRENCY_PRECISION,
) -> Decimal | None:
    """Round a value to ``precision`` decimal places.

    Args:
        value: Value to round
        mode: Rounding mode; ``none`` returns the value unchanged
        precision: Number of decimal places kept

    Returns:
        Rounded value, or None when the rounded value would need more
        digits than the active decimal context holds
    """
    if mode == RoundingMode.NONE or not value.is_finite():
        return value

    quantum = Decimal(1).scaleb(-precision)
    try:
        return value.quantize(quantum, rounding=_DECIMAL_ROUNDING[mode])
    except InvalidOperation:
        return None


@beartype
def round_value(
    value: Decimal,
    mode: RoundingMode,
    precision: int = CURRENCY_PRECISION,
) -> Decimal:
    """Round like ``try_round_value``; unroundable values come back unchanged."""
    rounded = try_round_value(value, mode, precision)
    return value if rounded is None else rounded


@beartype
def clamp(
    value: Decimal,
    min_cap: Decimal | None,
    max_cap: Decimal | None,
) -> Decimal:
    """Clamp to ``[min_cap, max_cap]``; the upper bound wins if the caps cross."""
    if min_cap is not None and value < min_cap:
        value = min_cap
    if max_cap is not None and value > max_cap:
        value = max_cap
    return value


@beartype
def apply_rounding_and_caps(
    raw_value: Decimal,
    rounding_mode: RoundingMode,
    min_cap: Decimal | None = None,
    max_cap: Decimal | None = None,
    precision: int = CURRENCY_PRECISION,
) -> RoundedValue:
    """Round first, then clamp, keeping both values for the audit trail."""
    rounded = try_round_value(raw_value, rounding_mode, precision)
    skipped = rounded is None
    if rounded is None:
        rounded = raw_value
    final = clamp(rounded, min_cap, max_cap)
    return RoundedValue(
        pre_rounding=raw_value,
        rounded=rounded,
        final=final,
        was_capped=final != rounded,
        rounding_skipped=skipped,
    )
