# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Static validation of rating programs.

Checks here need no scenario and never block evaluation. They back the
authoring screens and the pre-publish gate.
"""

from collections.abc import Sequence

from beartype import beartype

from ...models.results import Severity, ValidationIssue
from ...models.steps import (
    ConditionOperator,
    FactorStep,
    OperandStep,
    StepRole,
    StepScope,
    ValueType,
    sort_steps,
)
from .expressions import parse_expression


def _issue(
    severity: Severity, code: str, message: str, step_id: str | None = None
) -> ValidationIssue:
    return ValidationIssue(severity=severity, code=code, message=message, step_id=step_id)


def _missing_value(step: FactorStep) -> str | None:
    if step.value_type == ValueType.TABLE:
        return None if step.table_ref else "Table step has no table reference"
    if step.value_type == ValueType.EXPRESSION:
        if step.expression and step.expression.strip():
            return None
        return "Expression step has no expression"
    if step.raw_value is None:
        return f"{step.value_type.value.capitalize()} step has no value"
    return None


def _factor_issues(step: FactorStep) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    label = step.name or step.id

    if not step.name.strip():
        issues.append(
            _issue(Severity.ERROR, "MISSING_NAME", f"Step {step.id} has no name", step.id)
        )

    missing = _missing_value(step)
    if missing is not None:
        issues.append(
            _issue(Severity.WARNING, "MISSING_VALUE", f"{label}: {missing}", step.id)
        )

    if (
        step.min_cap is not None
        and step.max_cap is not None
        and step.min_cap > step.max_cap
    ):
        issues.append(
            _issue(
                Severity.ERROR,
                "INVALID_CAPS",
                f"{label}: minimum cap {step.min_cap} exceeds maximum cap {step.max_cap}",
                step.id,
            )
        )

    if step.value_type == ValueType.EXPRESSION and step.expression and step.expression.strip():
        parsed = parse_expression(step.expression)
        if parsed.is_err():
            issues.append(
                _issue(
                    Severity.ERROR,
                    "INVALID_EXPRESSION",
                    f"{label}: {parsed.unwrap_err()}",
                    step.id,
                )
            )

    if step.scope == StepScope.POLICY and step.coverages:
        issues.append(
            _issue(
                Severity.WARNING,
                "SCOPE_COVERAGE_MISMATCH",
                f"{label}: policy-level step is limited to coverages "
                f"[{', '.join(step.coverages)}]",
                step.id,
            )
        )

    for condition in step.conditions:
        problem: str | None = None
        if condition.operator == ConditionOperator.BETWEEN:
            if not isinstance(condition.value, list) or len(condition.value) != 2:
                problem = "between needs a [low, high] range"
        elif condition.operator != ConditionOperator.CONTAINS and isinstance(
            condition.value, list
        ):
            problem = f"{condition.operator.value} needs a single value"
        if problem is not None:
            issues.append(
                _issue(
                    Severity.ERROR,
                    "INVALID_CONDITION",
                    f"{label}: condition on '{condition.field}': {problem}",
                    step.id,
                )
            )

    return issues


def _sequence_issues(ordered: list[FactorStep | OperandStep]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    pending: OperandStep | None = None
    seeded = False

    for step in ordered:
        if isinstance(step, OperandStep):
            if pending is not None:
                issues.append(
                    _issue(
                        Severity.WARNING,
                        "CONSECUTIVE_OPERANDS",
                        f"Operator '{step.operator.symbol}' replaces "
                        f"'{pending.operator.symbol}' with no factor between them",
                        step.id,
                    )
                )
            pending = step
            continue

        if step.role == StepRole.MINIMUM_PREMIUM or not step.enabled:
            if not step.enabled:
                pending = None
            continue
        if seeded and pending is None:
            issues.append(
                _issue(
                    Severity.WARNING,
                    "MISSING_OPERATOR",
                    f"{step.name or step.id}: no operator joins this step to the running total",
                    step.id,
                )
            )
        seeded = True
        pending = None

    if pending is not None:
        issues.append(
            _issue(
                Severity.WARNING,
                "TRAILING_OPERAND",
                f"Operator '{pending.operator.symbol}' has no factor after it",
                pending.id,
            )
        )
    return issues


@beartype
def validate(steps: Sequence[FactorStep | OperandStep]) -> list[ValidationIssue]:
    """Check a rating program for authoring mistakes.

    Args:
        steps: Factor and operand steps in any order

    Returns:
        Issues ordered by step order, then code; program-level issues first
    """
    ordered = sort_steps(steps)
    issues: list[ValidationIssue] = []

    if not any(isinstance(step, FactorStep) for step in ordered):
        issues.append(
            _issue(Severity.WARNING, "EMPTY_ALGORITHM", "Rating program has no factor steps")
        )

    seen_orders: dict[int, str] = {}
    for step in ordered:
        if step.order in seen_orders:
            issues.append(
                _issue(
                    Severity.ERROR,
                    "DUPLICATE_ORDER",
                    f"Step {step.id} shares order {step.order} with step "
                    f"{seen_orders[step.order]}",
                    step.id,
                )
            )
        else:
            seen_orders[step.order] = step.id
        if isinstance(step, FactorStep):
            issues.extend(_factor_issues(step))

    issues.extend(_sequence_issues(ordered))

    position = {step.id: index for index, step in enumerate(ordered)}
    return sorted(
        issues,
        key=lambda issue: (
            -1 if issue.step_id is None else position.get(issue.step_id, len(ordered)),
            issue.code,
        ),
    )
