# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Evaluation results, trace entries and the error taxonomy.

Three kinds of failure exist and never mix:

- ``StructuralError``: the request itself is malformed. Returned before any
  step runs; no result and no trace are produced.
- ``StepLocalError``: one step could not be resolved. Absorbed into the
  trace as a skipped step; evaluation continues.
- ``ValidationIssue``: advisory finding from static analysis of a program.
  Never blocks evaluation.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig
from .steps import InputValue, RoundingMode, ValueType


class Severity(str, Enum):
    """Validation issue severity."""

    ERROR = "error"
    WARNING = "warning"


class StructuralErrorCode(str, Enum):
    """Fatal, pre-execution failures."""

    DUPLICATE_ORDER = "DUPLICATE_ORDER"
    DUPLICATE_STEP_ID = "DUPLICATE_STEP_ID"
    MISSING_TABLE = "MISSING_TABLE"


class StepErrorCode(str, Enum):
    """Recoverable failures local to a single step."""

    TABLE_KEY_NOT_FOUND = "TABLE_KEY_NOT_FOUND"
    TABLE_NOT_EFFECTIVE = "TABLE_NOT_EFFECTIVE"
    EXPRESSION_ERROR = "EXPRESSION_ERROR"
    MISSING_VALUE = "MISSING_VALUE"


@beartype
class StructuralError(BaseModelConfig):
    """A malformed request rejected before execution."""

    code: StructuralErrorCode
    message: str
    step_ids: tuple[str, ...] = Field(default=())

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@beartype
class StepLocalError(BaseModelConfig):
    """A step that could not produce a value."""

    code: StepErrorCode
    message: str


@beartype
class ValidationIssue(BaseModelConfig):
    """Advisory finding about a step sequence."""

    severity: Severity
    code: str = Field(..., min_length=1)
    message: str
    step_id: str | None = Field(default=None)


@beartype
class StepTraceEntry(BaseModelConfig):
    """Audit record of one step's evaluation outcome."""

    step_id: str
    step_name: str
    step_kind: Literal["factor", "operand"]
    order: int
    value_type: ValueType | None = Field(default=None)

    applied: bool
    skip_reason: str | None = Field(default=None)
    operation: str | None = Field(
        default=None, description="Operator symbol applied, 'Initial' or 'Minimum'"
    )

    input_values: dict[str, InputValue | None] = Field(
        default_factory=dict, description="Scenario values consumed by the step"
    )
    table_lookup_key: tuple[str, ...] | None = Field(default=None)
    evaluated_expression: str | None = Field(default=None)

    raw_value: Decimal | None = Field(default=None, description="Resolved value")
    pre_rounding_value: Decimal | None = Field(default=None)
    pre_cap_value: Decimal | None = Field(default=None, description="After rounding")
    contribution: Decimal | None = Field(
        default=None, description="After rounding and capping"
    )
    was_capped: bool = Field(default=False)

    running_total_before: Decimal
    running_total: Decimal
    impact: Decimal = Field(default=Decimal("0"))
    impact_percent: Decimal = Field(default=Decimal("0"))

    warnings: tuple[str, ...] = Field(default=())


@beartype
class EvaluationResult(BaseModelConfig):
    """Premium, audit trace and reproducibility hash for one evaluation."""

    final_premium: Decimal
    pre_rounded_premium: Decimal
    final_rounding_mode: RoundingMode = Field(
        default=RoundingMode.NONE, description="Rounding applied to the chain total"
    )
    minimum_applied: bool = Field(default=False)
    minimum_premium_value: Decimal | None = Field(default=None)
    coverage_id: str | None = Field(default=None)
    trace: tuple[StepTraceEntry, ...]
    warnings: tuple[str, ...] = Field(default=())
    result_hash: str = Field(..., min_length=1)
    evaluated_at: datetime
    execution_time_ms: float = Field(..., ge=0)

    @property
    def applied_steps(self) -> tuple[StepTraceEntry, ...]:
        """Trace entries for steps that affected the premium."""
        return tuple(entry for entry in self.trace if entry.applied)

    @property
    def skipped_steps(self) -> tuple[StepTraceEntry, ...]:
        """Trace entries for steps that did not apply, with their reasons."""
        return tuple(entry for entry in self.trace if not entry.applied)


@beartype
class PackageResult(BaseModelConfig):
    """Bundle of coverage results with the package discount applied."""

    subtotal: Decimal
    discount_percent: Decimal
    discount: Decimal
    total: Decimal
    per_coverage: dict[str, EvaluationResult] = Field(default_factory=dict)
    coverage_errors: dict[str, str] = Field(
        default_factory=dict, description="Coverage id to failure message"
    )
    complete: bool = Field(..., description="True when every coverage rated")


@beartype
class PackageRatingError(BaseModelConfig):
    """All-or-nothing package failure."""

    message: str
    coverage_errors: dict[str, str] = Field(default_factory=dict)

    def __str__(self) -> str:
        return self.message
