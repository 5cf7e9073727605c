# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Step applicability: enabled flag, coverage and state scope, conditions."""

from attrs import frozen
from beartype import beartype

from ...models.context import EvaluationContext
from ...models.steps import FactorStep
from .conditions import first_failing_condition


@frozen
class Applicability:
    """Whether a step applies, and why not when it does not."""

    applies: bool
    reason: str | None = None


_APPLIES = Applicability(applies=True)


@beartype
def check_scope(
    step: FactorStep,
    context: EvaluationContext,
    coverage_id: str | None,
) -> Applicability:
    """Check coverage and jurisdiction scope.

    A step listing coverages applies only while one of them is being rated,
    and a step listing states only when the scenario's state is among them.
    Both checks fail closed when the scenario does not say.
    """
    if step.coverages:
        listed = ", ".join(step.coverages)
        if coverage_id is None:
            return Applicability(
                applies=False,
                reason=f"scope mismatch: no coverage being rated, step limited to coverage [{listed}]",
            )
        if coverage_id not in step.coverages:
            return Applicability(
                applies=False,
                reason=f"scope mismatch: coverage {coverage_id} not in [{listed}]",
            )

    if step.states:
        listed = ", ".join(step.states)
        if context.state is None:
            return Applicability(
                applies=False,
                reason=f"scope mismatch: scenario has no state, step limited to [{listed}]",
            )
        if context.state not in step.states:
            return Applicability(
                applies=False,
                reason=f"scope mismatch: state {context.state} not in [{listed}]",
            )

    return _APPLIES


@beartype
def applies(
    step: FactorStep,
    context: EvaluationContext,
    coverage_id: str | None = None,
) -> Applicability:
    """Decide whether a factor step takes part in this evaluation.

    Checks run in a fixed order so the reported reason is stable: disabled,
    then scope, then conditions.
    """
    if not step.enabled:
        return Applicability(applies=False, reason="disabled")

    scope = check_scope(step, context, coverage_id)
    if not scope.applies:
        return scope

    failing = first_failing_condition(step.conditions, context.inputs)
    if failing is not None:
        reason = f"condition not met: {failing.describe()}"
        if failing.field not in context.inputs:
            reason = f"condition not met: input '{failing.field}' is missing"
        return Applicability(applies=False, reason=reason)

    return _APPLIES
