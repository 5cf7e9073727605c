# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Package rating across several coverages with a bundle discount."""

from collections.abc import Mapping, Sequence
from decimal import Decimal

from beartype import beartype

from ...core.logging_utils import get_logger
from ...core.result_types import Err, Ok, Result
from ...models.context import EvaluationContext
from ...models.results import EvaluationResult, PackageRatingError, PackageResult
from ...models.steps import FactorStep, OperandStep, RoundingMode
from .rounding import round_value
from .step_chain import evaluate

logger = get_logger(__name__)

@beartype
def rate_package(
    steps_by_coverage: Mapping[str, Sequence[FactorStep | OperandStep]],
    coverage_ids: Sequence[str],
    discount_percent: Decimal,
    context: EvaluationContext,
    all_or_nothing: bool = False,
    final_rounding: RoundingMode = RoundingMode.NONE,
) -> Result[PackageResult, PackageRatingError]:
    """Rate each coverage of a package and apply the bundle discount.

    A coverage that cannot be rated is reported in ``coverage_errors`` while
    the others still contribute to the subtotal, unless ``all_or_nothing`` is
    set, in which case any failure fails the package.

    Args:
        steps_by_coverage: Rating program of each coverage
        coverage_ids: Coverages to rate; duplicates are rated once
        discount_percent: Bundle discount in whole-number percent
        context: Scenario shared by every coverage
        all_or_nothing: Fail the whole package on any coverage failure
        final_rounding: Final rounding pass applied per coverage

    Returns:
        Result containing the package totals or the package failure
    """
    if discount_percent < 0 or discount_percent > 100:
        return Err(
            PackageRatingError(
                message=f"Discount percent {discount_percent} outside [0, 100]"
            )
        )

    per_coverage: dict[str, EvaluationResult] = {}
    coverage_errors: dict[str, str] = {}

    for coverage_id in dict.fromkeys(coverage_ids):
        steps = steps_by_coverage.get(coverage_id)
        if not steps:
            coverage_errors[coverage_id] = f"No rating steps for coverage {coverage_id}"
            continue

        result = evaluate(steps, context, coverage_id, final_rounding)
        if result.is_err():
            coverage_errors[coverage_id] = str(result.unwrap_err())
            continue
        per_coverage[coverage_id] = result.unwrap()

    if coverage_errors:
        logger.warning(
            "Package rating failed for %d of %d coverages: %s",
            len(coverage_errors),
            len(coverage_errors) + len(per_coverage),
            ", ".join(sorted(coverage_errors)),
        )
        if all_or_nothing:
            return Err(
                PackageRatingError(
                    message="Package could not be rated: "
                    + "; ".join(
                        f"{cid}: {message}" for cid, message in coverage_errors.items()
                    ),
                    coverage_errors=coverage_errors,
                )
            )

    subtotal = sum(
        (result.final_premium for result in per_coverage.values()), Decimal("0")
    )
    discount = round_value(
        subtotal * discount_percent / Decimal("100"), RoundingMode.NEAREST
    )

    return Ok(
        PackageResult(
            subtotal=subtotal,
            discount_percent=discount_percent,
            discount=discount,
            total=subtotal - discount,
            per_coverage=per_coverage,
            coverage_errors=coverage_errors,
            complete=not coverage_errors,
        )
    )
