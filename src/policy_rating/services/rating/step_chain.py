# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Step chain executor.

Walks a rating program in ``order``, joining each applicable factor's
contribution to a running total with the operator pending from the operand
step before it. Every step yields exactly one trace entry, applied or not.

Percentage factors hold whole-number percents. Under ``*``, ``/`` and ``=``
(and when seeding the chain) the operand is ``value / 100``; under ``+`` and
``-`` it is that share of the running total, so ``+ 10%`` raises the total
by a tenth.
"""

import re
import time
from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal, localcontext

from beartype import beartype

from ...core.logging_utils import get_logger
from ...core.result_types import Err, Ok, Result
from ...models.context import EvaluationContext
from ...models.results import (
    EvaluationResult,
    StepTraceEntry,
    StructuralError,
    StructuralErrorCode,
)
from ...models.steps import (
    FactorStep,
    OperandStep,
    Operator,
    RoundingMode,
    StepRole,
    ValueType,
    sort_steps,
)
from ..performance_monitor import performance_monitor
from .determinism import compute_result_hash
from .rounding import (
    CURRENCY_PRECISION,
    apply_rounding_and_caps,
    round_value,
    try_round_value,
)
from .scope_filter import applies
from .value_resolver import resolve

logger = get_logger(__name__)

DECIMAL_PRECISION = 28
HUNDRED = Decimal("100")
ZERO = Decimal("0")
IMPACT_PRECISION = 4

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@beartype
def check_structure(
    steps: Sequence[FactorStep | OperandStep],
    context: EvaluationContext,
) -> StructuralError | None:
    """Reject malformed programs before any step runs.

    Returns:
        The first structural error found, or None for a well-formed program
    """
    id_counts = Counter(step.id for step in steps)
    duplicate_ids = sorted(step_id for step_id, count in id_counts.items() if count > 1)
    if duplicate_ids:
        return StructuralError(
            code=StructuralErrorCode.DUPLICATE_STEP_ID,
            message=f"Step ids are not unique: {', '.join(duplicate_ids)}",
            step_ids=tuple(duplicate_ids),
        )

    by_order: dict[int, list[str]] = defaultdict(list)
    for step in steps:
        by_order[step.order].append(step.id)
    clashes = {order: ids for order, ids in sorted(by_order.items()) if len(ids) > 1}
    if clashes:
        described = "; ".join(
            f"order {order}: {', '.join(sorted(ids))}" for order, ids in clashes.items()
        )
        return StructuralError(
            code=StructuralErrorCode.DUPLICATE_ORDER,
            message=f"Steps share an order value ({described})",
            step_ids=tuple(sorted(step_id for ids in clashes.values() for step_id in ids)),
        )

    missing = sorted(
        {
            (step.table_ref, step.id)
            for step in steps
            if isinstance(step, FactorStep)
            and step.value_type == ValueType.TABLE
            and step.table_ref
            and not context.has_table(step.table_ref)
        }
    )
    if missing:
        refs = sorted({ref for ref, _ in missing})
        return StructuralError(
            code=StructuralErrorCode.MISSING_TABLE,
            message=f"Referenced tables not supplied: {', '.join(refs)}",
            step_ids=tuple(step_id for _, step_id in missing),
        )

    return None


class _Chain:
    """Mutable state of one evaluation; never shared between calls."""

    def __init__(self) -> None:
        self.total = ZERO
        self.seeded = False
        self.pending: Operator | None = None
        self.outputs: dict[str, Decimal] = {}
        self.minimums: list[Decimal] = []
        self.trace: list[StepTraceEntry] = []
        self.warnings: list[str] = []

    def take_pending(self) -> Operator | None:
        operator, self.pending = self.pending, None
        return operator


def _impact_percent(impact: Decimal, before: Decimal) -> Decimal:
    if before == 0:
        return ZERO
    return round_value(impact / before * HUNDRED, RoundingMode.BANKERS, IMPACT_PRECISION)


def _operand_entry(step: OperandStep, chain: _Chain) -> StepTraceEntry:
    warnings: list[str] = []
    if chain.pending is not None:
        message = (
            f"Operator '{step.operator.symbol}' at step {step.id} replaces pending "
            f"operator '{chain.pending.symbol}' with no factor between them"
        )
        warnings.append(message)
        chain.warnings.append(message)
    chain.pending = step.operator
    return StepTraceEntry(
        step_id=step.id,
        step_name=step.name or step.operator.value,
        step_kind="operand",
        order=step.order,
        applied=True,
        operation=step.operator.symbol,
        running_total_before=chain.total,
        running_total=chain.total,
        warnings=tuple(warnings),
    )


def _skipped_entry(
    step: FactorStep,
    chain: _Chain,
    reason: str,
    discarded: Operator | None,
    warnings: Sequence[str] = (),
    **recorded: object,
) -> StepTraceEntry:
    notes = list(warnings)
    if discarded is not None:
        notes.append(f"Pending operator '{discarded.symbol}' discarded with skipped step")
    logger.debug("Step %s skipped: %s", step.id, reason)
    return StepTraceEntry(
        step_id=step.id,
        step_name=step.name,
        step_kind="factor",
        order=step.order,
        value_type=step.value_type,
        applied=False,
        skip_reason=reason,
        running_total_before=chain.total,
        running_total=chain.total,
        warnings=tuple(notes),
        **recorded,  # type: ignore[arg-type]
    )


def _operand_value(
    contribution: Decimal, operator: Operator | None, value_type: ValueType, total: Decimal
) -> Decimal:
    if value_type != ValueType.PERCENTAGE:
        return contribution
    if operator in (Operator.ADD, Operator.SUBTRACT):
        return total * contribution / HUNDRED
    return contribution / HUNDRED


def _factor_entry(
    step: FactorStep,
    context: EvaluationContext,
    chain: _Chain,
    coverage_id: str | None,
) -> StepTraceEntry:
    is_minimum = step.role == StepRole.MINIMUM_PREMIUM
    # Minimum premium steps sit outside the chain and leave the pending operator alone
    operator = None if is_minimum else chain.take_pending()

    applicability = applies(step, context, coverage_id)
    if not applicability.applies:
        return _skipped_entry(step, chain, applicability.reason or "not applicable", operator)

    resolution = resolve(step, context, chain.outputs)
    if resolution.is_err():
        error = resolution.unwrap_err()
        chain.warnings.append(f"Step {step.id} skipped: {error.message}")
        return _skipped_entry(step, chain, error.message, operator)
    resolved = resolution.unwrap()

    rounded = apply_rounding_and_caps(
        resolved.value,
        step.rounding_mode,
        step.min_cap,
        step.max_cap,
        step.rounding_precision,
    )
    contribution = rounded.final
    recorded = {
        "input_values": resolved.input_values,
        "table_lookup_key": resolved.table_lookup_key,
        "evaluated_expression": resolved.evaluated_expression,
        "raw_value": resolved.value,
        "pre_rounding_value": rounded.pre_rounding,
        "pre_cap_value": rounded.rounded,
        "contribution": contribution,
        "was_capped": rounded.was_capped,
    }
    warnings = list(resolved.warnings)
    if rounded.rounding_skipped:
        message = (
            f"Value {rounded.pre_rounding} at step {step.id} too large to round to "
            f"{step.rounding_precision} places; left unrounded"
        )
        warnings.append(message)
        chain.warnings.append(message)
    if rounded.was_capped:
        warnings.append(f"Value {rounded.rounded} capped to {contribution}")

    before = chain.total
    if is_minimum:
        chain.minimums.append(contribution)
        return StepTraceEntry(
            step_id=step.id,
            step_name=step.name,
            step_kind="factor",
            order=step.order,
            value_type=step.value_type,
            applied=True,
            operation="Minimum",
            running_total_before=before,
            running_total=before,
            warnings=tuple(warnings),
            **recorded,  # type: ignore[arg-type]
        )

    if operator is None:
        if chain.seeded or chain.total != 0:
            message = f"Step {step.id} has no operator joining it to the running total"
            chain.warnings.append(message)
            return _skipped_entry(
                step, chain, "no pending operator", None, [*warnings, message], **recorded
            )
        chain.total = _operand_value(contribution, None, step.value_type, before)
        operation = "Initial"
    else:
        operand = _operand_value(contribution, operator, step.value_type, before)
        operation = operator.symbol
        if operator == Operator.ADD:
            chain.total = before + operand
        elif operator == Operator.SUBTRACT:
            chain.total = before - operand
        elif operator == Operator.MULTIPLY:
            chain.total = before * operand
        elif operator == Operator.DIVIDE:
            if operand == 0:
                message = f"Division by zero at step {step.id}; running total left unchanged"
                warnings.append(message)
                chain.warnings.append(message)
            else:
                chain.total = before / operand
        else:
            chain.total = operand

    chain.seeded = True
    if step.output_code:
        chain.outputs[step.output_code] = contribution
    if step.name and _IDENTIFIER.match(step.name):
        chain.outputs.setdefault(step.name, contribution)

    impact = chain.total - before
    return StepTraceEntry(
        step_id=step.id,
        step_name=step.name,
        step_kind="factor",
        order=step.order,
        value_type=step.value_type,
        applied=True,
        operation=operation,
        running_total_before=before,
        running_total=chain.total,
        impact=impact,
        impact_percent=_impact_percent(impact, before),
        warnings=tuple(warnings),
        **recorded,  # type: ignore[arg-type]
    )


@beartype
@performance_monitor("evaluate_rating_steps")
def evaluate(
    steps: Sequence[FactorStep | OperandStep],
    context: EvaluationContext,
    coverage_id: str | None = None,
    final_rounding: RoundingMode = RoundingMode.NONE,
) -> Result[EvaluationResult, StructuralError]:
    """Evaluate a rating program against one scenario.

    Args:
        steps: Factor and operand steps in any order; ``order`` decides
        context: Scenario inputs, state, effective date and tables
        coverage_id: Coverage being rated, used by the scope filter
        final_rounding: Rounding applied to the chain total before the
            minimum premium floor

    Returns:
        Result containing the premium with its full trace, or the structural
        error that prevented any step from running
    """
    start_time = time.perf_counter()

    structural = check_structure(steps, context)
    if structural is not None:
        logger.warning("Rejected rating program: %s", structural)
        return Err(structural)

    chain = _Chain()
    with localcontext() as decimal_context:
        decimal_context.prec = DECIMAL_PRECISION
        decimal_context.rounding = ROUND_HALF_EVEN

        for step in sort_steps(steps):
            if isinstance(step, OperandStep):
                chain.trace.append(_operand_entry(step, chain))
            else:
                chain.trace.append(_factor_entry(step, context, chain, coverage_id))

        if chain.pending is not None:
            chain.warnings.append(
                f"Trailing operator '{chain.pending.symbol}' has no factor to apply to"
            )

        pre_rounded = chain.total
        final_premium = try_round_value(pre_rounded, final_rounding, CURRENCY_PRECISION)
        if final_premium is None:
            chain.warnings.append(
                f"Premium {pre_rounded} too large to round to {CURRENCY_PRECISION} places; "
                "left unrounded"
            )
            final_premium = pre_rounded

        minimum_applied = False
        minimum_value: Decimal | None = None
        if chain.minimums:
            floor = max(chain.minimums)
            if final_premium < floor:
                final_premium = floor
                minimum_applied = True
                minimum_value = floor

    result = EvaluationResult(
        final_premium=final_premium,
        pre_rounded_premium=pre_rounded,
        final_rounding_mode=final_rounding,
        minimum_applied=minimum_applied,
        minimum_premium_value=minimum_value,
        coverage_id=coverage_id,
        trace=tuple(chain.trace),
        warnings=tuple(chain.warnings),
        result_hash="pending",
        evaluated_at=datetime.now(timezone.utc),
        execution_time_ms=(time.perf_counter() - start_time) * 1000,
    )
    result = result.model_copy(
        update={"result_hash": compute_result_hash(steps, context, result)}
    )
    logger.debug(
        "Evaluated %d steps for coverage %s: %s (hash %s)",
        len(chain.trace),
        coverage_id,
        result.final_premium,
        result.result_hash,
    )
    return Ok(result)
