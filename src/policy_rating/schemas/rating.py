# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Request and response payloads for the rating API.

Decimals serialize as strings so that premiums survive JSON round trips
without float drift.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ..models.context import EvaluationContext
from ..models.results import ValidationIssue
from ..models.steps import InputValue, RatingStep, RoundingMode

__all__ = [
    "EvaluateRequest",
    "ValidateRequest",
    "ValidateResponse",
    "CoverageRatingRequest",
    "StepBreakdown",
    "CoverageRatingResponse",
    "PackageRatingRequest",
    "CoverageSummary",
    "PackageRatingResponse",
]


class EvaluateRequest(BaseModel):
    """Evaluate an inline step sequence against one scenario."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    steps: list[RatingStep] = Field(..., description="Factor and operand steps")
    context: EvaluationContext
    coverage_id: str | None = Field(default=None, description="Coverage being rated")
    final_rounding: RoundingMode | None = Field(
        default=None, description="Final rounding pass; defaults to the configured mode"
    )


class ValidateRequest(BaseModel):
    """Static validation of a step sequence."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    steps: list[RatingStep] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    """Validation findings with a publish verdict."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    issues: list[ValidationIssue] = Field(default_factory=list)
    error_count: int = Field(..., ge=0)
    warning_count: int = Field(..., ge=0)
    publishable: bool = Field(..., description="True when there are no errors")
    formula: str = Field(..., description="Human-readable formula")


class CoverageRatingRequest(BaseModel):
    """Rate one coverage of a stored rating program."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    product_id: str = Field(..., min_length=1)
    coverage_id: str = Field(..., min_length=1)
    version_id: str | None = Field(default=None, description="Latest when omitted")
    inputs: dict[str, InputValue] = Field(default_factory=dict)
    state: str | None = Field(default=None, min_length=2, max_length=2)
    effective_date: date
    final_rounding: RoundingMode | None = Field(default=None)


class StepBreakdown(BaseModel):
    """One line of the premium breakdown."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    step_id: str
    step_name: str
    applied: bool
    operation: str | None = Field(default=None)
    contribution: Decimal | None = Field(default=None)
    running_total: Decimal
    impact: Decimal
    impact_percent: Decimal
    skip_reason: str | None = Field(default=None)


class CoverageRatingResponse(BaseModel):
    """Premium of one coverage with its breakdown."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    product_id: str
    coverage_id: str
    version_id: str
    final_premium: Decimal
    pre_rounded_premium: Decimal
    minimum_applied: bool
    formula: str
    breakdown: list[StepBreakdown] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    result_hash: str
    cached: bool = Field(default=False, description="Served from the response cache")


class PackageRatingRequest(BaseModel):
    """Rate several coverages of a product as a bundle."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    product_id: str = Field(..., min_length=1)
    coverage_ids: list[str] = Field(..., min_length=1)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    inputs: dict[str, InputValue] = Field(default_factory=dict)
    state: str | None = Field(default=None, min_length=2, max_length=2)
    effective_date: date
    all_or_nothing: bool | None = Field(
        default=None, description="Defaults to the configured package policy"
    )
    final_rounding: RoundingMode | None = Field(default=None)


class CoverageSummary(BaseModel):
    """Per-coverage line of a package result."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    coverage_id: str
    version_id: str
    final_premium: Decimal
    minimum_applied: bool
    result_hash: str


class PackageRatingResponse(BaseModel):
    """Package totals with per-coverage results and failures."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    product_id: str
    subtotal: Decimal
    discount_percent: Decimal
    discount: Decimal
    total: Decimal
    coverages: list[CoverageSummary] = Field(default_factory=list)
    coverage_errors: dict[str, str] = Field(default_factory=dict)
    complete: bool
