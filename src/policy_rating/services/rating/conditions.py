# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Applicability condition evaluation.

Conditions are ANDed and fail closed: a condition whose field is absent
from the scenario inputs is never satisfied.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation

from beartype import beartype

from ...models.steps import Condition, ConditionOperator, InputValue


@beartype
def to_decimal(value: InputValue | None) -> Decimal | None:
    """Convert a scenario value to Decimal, or None when it is not numeric.

    Booleans are not numbers here; ``True`` never compares equal to ``1``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            converted = Decimal(str(value))
        except InvalidOperation:
            return None
        return converted if converted.is_finite() else None
    try:
        converted = Decimal(value.strip())
    except InvalidOperation:
        return None
    return converted if converted.is_finite() else None


def _equals(actual: InputValue, expected: InputValue) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected

    actual_number = to_decimal(actual) if not isinstance(actual, str) else None
    expected_number = to_decimal(expected) if not isinstance(expected, str) else None
    if actual_number is not None and expected_number is not None:
        return actual_number == expected_number

    if isinstance(actual, str) and isinstance(expected, str):
        return actual == expected

    # Mixed number/string: compare numerically when the string is a number
    left, right = to_decimal(actual), to_decimal(expected)
    return left is not None and right is not None and left == right


def _between(actual: InputValue, bounds: InputValue | list[InputValue]) -> bool:
    if not isinstance(bounds, list) or len(bounds) != 2:
        return False
    value = to_decimal(actual)
    low, high = to_decimal(bounds[0]), to_decimal(bounds[1])
    if value is None or low is None or high is None:
        return False
    return low <= value <= high


def _contains(actual: InputValue, expected: InputValue | list[InputValue]) -> bool:
    if isinstance(expected, list):
        return any(_equals(actual, item) for item in expected)
    if isinstance(actual, str) and isinstance(expected, str):
        return expected in actual
    return False


@beartype
def evaluate_condition(condition: Condition, inputs: Mapping[str, InputValue]) -> bool:
    """Evaluate one condition against scenario inputs."""
    if condition.field not in inputs:
        return False

    actual = inputs[condition.field]
    expected = condition.value

    if condition.operator == ConditionOperator.EQUALS:
        return not isinstance(expected, list) and _equals(actual, expected)

    if condition.operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        if isinstance(expected, list):
            return False
        left, right = to_decimal(actual), to_decimal(expected)
        if left is None or right is None:
            return False
        if condition.operator == ConditionOperator.GREATER_THAN:
            return left > right
        return left < right

    if condition.operator == ConditionOperator.CONTAINS:
        return _contains(actual, expected)

    if condition.operator == ConditionOperator.BETWEEN:
        return _between(actual, expected)

    return False


@beartype
def first_failing_condition(
    conditions: Sequence[Condition], inputs: Mapping[str, InputValue]
) -> Condition | None:
    """Return the first unsatisfied condition, or None when all hold."""
    for condition in conditions:
        if not evaluate_condition(condition, inputs):
            return condition
    return None


@beartype
def evaluate_conditions(
    conditions: Sequence[Condition], inputs: Mapping[str, InputValue]
) -> bool:
    """AND all conditions; an empty list is satisfied."""
    return first_failing_condition(conditions, inputs) is None
