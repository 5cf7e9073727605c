# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Rating step models.

A rating program is an ordered sequence of steps. Each step is either a
``FactorStep`` contributing a value or an ``OperandStep`` naming the operator
that joins the running total with the next factor. The two variants are a
pydantic discriminated union on ``kind`` so that factor-only fields can never
appear on an operand step and vice versa.
"""

from collections.abc import Sequence
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal

from beartype import beartype
from pydantic import Field, TypeAdapter, field_validator

from .base import BaseModelConfig

# Scalar scenario values: numbers, strings and booleans
InputValue = bool | int | float | Decimal | str


class ValueType(str, Enum):
    """How a factor step obtains its raw value."""

    MULTIPLIER = "multiplier"
    PERCENTAGE = "percentage"  # whole-number percent: 10 means 10%
    FLAT = "flat"
    TABLE = "table"
    EXPRESSION = "expression"


class StepScope(str, Enum):
    """Level at which a step's effect is applied."""

    POLICY = "policy"
    COVERAGE = "coverage"
    LOCATION = "location"
    ITEM = "item"


class RoundingMode(str, Enum):
    """Rounding applied to a step contribution or to the final premium."""

    NONE = "none"
    UP = "up"  # ceiling, toward +infinity
    DOWN = "down"  # floor, toward -infinity
    NEAREST = "nearest"  # half away from zero
    BANKERS = "bankers"  # half to even
    TRUNCATE = "truncate"  # toward zero


class Operator(str, Enum):
    """Arithmetic operator carried by an operand step."""

    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
    ASSIGN = "assign"

    @property
    def symbol(self) -> str:
        """Symbol recorded in the trace."""
        return _OPERATOR_SYMBOLS[self]


_OPERATOR_SYMBOLS: dict[Operator, str] = {
    Operator.ADD: "+",
    Operator.SUBTRACT: "-",
    Operator.MULTIPLY: "*",
    Operator.DIVIDE: "/",
    Operator.ASSIGN: "=",
}
_SYMBOL_OPERATORS: dict[str, Operator] = {v: k for k, v in _OPERATOR_SYMBOLS.items()}


class StepRole(str, Enum):
    """Effect a factor step has on the chain."""

    STANDARD = "standard"
    MINIMUM_PREMIUM = "minimum_premium"  # floors the final total


class ConditionOperator(str, Enum):
    """Comparison used by a step applicability condition."""

    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    BETWEEN = "between"


@beartype
class Condition(BaseModelConfig):
    """Applicability condition over a single scenario input field."""

    field: str = Field(..., min_length=1, description="Input field code")
    operator: ConditionOperator = Field(..., description="Comparison operator")
    value: InputValue | list[InputValue] = Field(
        ..., description="Scalar, or [low, high] for between, or a list for contains"
    )

    def describe(self) -> str:
        """Short human-readable form used in skip reasons."""
        return f"{self.field} {self.operator.value} {self.value!r}"


@beartype
class FactorStep(BaseModelConfig):
    """A step contributing a numeric value to the running total."""

    kind: Literal["factor"] = "factor"
    id: str = Field(..., min_length=1, description="Stable step identifier")
    order: int = Field(..., description="Execution position")
    name: str = Field(default="", max_length=200, description="Name shown in the trace")

    value_type: ValueType = Field(default=ValueType.FLAT)
    raw_value: Decimal | None = Field(
        default=None, description="Value for multiplier, percentage and flat steps"
    )
    table_ref: str | None = Field(default=None, description="Table reference")
    expression: str | None = Field(default=None, description="Arithmetic expression")
    output_code: str | None = Field(
        default=None,
        pattern=r"^[A-Za-z_][A-Za-z0-9_]*$",
        description="Name under which the contribution is visible to later expressions",
    )

    scope: StepScope = Field(default=StepScope.COVERAGE)
    coverages: tuple[str, ...] = Field(
        default=(), description="Coverage codes this step applies to (empty = all)"
    )
    states: tuple[str, ...] = Field(
        default=(), description="Jurisdiction codes this step applies to (empty = all)"
    )
    conditions: tuple[Condition, ...] = Field(
        default=(), description="Applicability conditions, ANDed"
    )
    enabled: bool = Field(default=True)

    min_cap: Decimal | None = Field(default=None, description="Lower bound on contribution")
    max_cap: Decimal | None = Field(default=None, description="Upper bound on contribution")
    rounding_mode: RoundingMode = Field(default=RoundingMode.NONE)
    rounding_precision: int = Field(default=2, ge=0, le=10)
    role: StepRole = Field(default=StepRole.STANDARD)

    @field_validator("states")
    @classmethod
    def normalize_states(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Jurisdiction codes compare case-insensitively."""
        return tuple(state.strip().upper() for state in v)


@beartype
class OperandStep(BaseModelConfig):
    """A step naming the operator applied to the next factor step."""

    kind: Literal["operand"] = "operand"
    id: str = Field(..., min_length=1, description="Stable step identifier")
    order: int = Field(..., description="Execution position")
    operator: Operator = Field(..., description="Operator for the next factor")
    name: str = Field(default="", max_length=200)

    @field_validator("operator", mode="before")
    @classmethod
    def accept_symbols(cls, v: Any) -> Any:
        """Allow operators to be authored as ``+ - * / =``."""
        if isinstance(v, str) and v.strip() in _SYMBOL_OPERATORS:
            return _SYMBOL_OPERATORS[v.strip()]
        return v


RatingStep = Annotated[FactorStep | OperandStep, Field(discriminator="kind")]

rating_step_list_adapter: TypeAdapter[list[FactorStep | OperandStep]] = TypeAdapter(
    list[RatingStep]
)


@beartype
def sort_steps(steps: Sequence[FactorStep | OperandStep]) -> list[FactorStep | OperandStep]:
    """Return steps in execution order.

    ``order`` values are unique in a well-formed program; the id tiebreak only
    keeps ordering total for validation of malformed ones.
    """
    return sorted(steps, key=lambda step: (step.order, step.id))
