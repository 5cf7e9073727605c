# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Resolution of a factor step's raw value.

Literal steps return their authored value, table steps look up a row keyed
by scenario values, and expression steps evaluate a restricted arithmetic
expression over inputs and earlier step outputs. Every failure here is local
to the step and comes back as ``Err(StepLocalError)``.
"""

from collections.abc import Mapping
from decimal import Decimal

from attrs import field, frozen
from beartype import beartype

from ...core.result_types import Err, Ok, Result
from ...models.context import DimensionSource, EvaluationContext, TableDimension
from ...models.results import StepErrorCode, StepLocalError
from ...models.steps import FactorStep, InputValue, ValueType
from .conditions import to_decimal
from .expressions import evaluate_expression, parse_expression, referenced_names


@frozen
class Resolution:
    """Raw value of a step and what was consumed to obtain it."""

    value: Decimal
    input_values: dict[str, InputValue | None] = field(factory=dict)
    table_lookup_key: tuple[str, ...] | None = None
    evaluated_expression: str | None = None
    warnings: tuple[str, ...] = ()


def _step_error(code: StepErrorCode, message: str) -> Err[StepLocalError]:
    return Err(StepLocalError(code=code, message=message))


@beartype
def normalize_key_part(value: InputValue) -> str:
    """Render a discrete dimension value as a table key component.

    Numbers are normalized so ``5``, ``5.0`` and ``Decimal("5.00")`` all
    address the same row.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.strip()
    number = to_decimal(value)
    if number is None:
        return str(value)
    normalized = number.normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")


def _dimension_part(
    dimension: TableDimension,
    context: EvaluationContext,
    input_values: dict[str, InputValue | None],
) -> Result[str, str]:
    if dimension.source == DimensionSource.STATE:
        raw: InputValue | None = context.state
        input_values["state"] = raw
    else:
        raw = context.inputs.get(dimension.field_code)
        input_values[dimension.field_code] = raw

    if raw is None:
        return Err(f"No value for table dimension '{dimension.name}'")

    if not dimension.bands:
        return Ok(normalize_key_part(raw))

    number = to_decimal(raw)
    if number is None:
        return Err(f"Value {raw!r} for banded dimension '{dimension.name}' is not numeric")
    for band in dimension.bands:
        if band.contains(number):
            return Ok(band.label)
    return Err(f"Value {number} falls outside every band of dimension '{dimension.name}'")


@beartype
def resolve_table(
    step: FactorStep, context: EvaluationContext
) -> Result[Resolution, StepLocalError]:
    """Look up the row addressed by the scenario for a table step."""
    table_ref = step.table_ref or ""
    table = context.table_version(table_ref)
    if table is None:
        return _step_error(
            StepErrorCode.TABLE_NOT_EFFECTIVE,
            f"No version of table '{table_ref}' is effective on "
            f"{context.effective_date.isoformat()}",
        )

    input_values: dict[str, InputValue | None] = {}
    parts: list[str] = []
    for dimension in table.dimensions:
        part = _dimension_part(dimension, context, input_values)
        if part.is_err():
            return _step_error(
                StepErrorCode.TABLE_KEY_NOT_FOUND,
                f"Table '{table_ref}': {part.unwrap_err()}",
            )
        parts.append(part.unwrap())

    key = tuple(parts)
    value = table.lookup(key)
    if value is None:
        return _step_error(
            StepErrorCode.TABLE_KEY_NOT_FOUND,
            f"Table '{table_ref}' has no row for key ({', '.join(key)}) and no default",
        )

    return Ok(Resolution(value=value, input_values=input_values, table_lookup_key=key))


def _expression_operand(value: InputValue) -> Decimal | None:
    if isinstance(value, bool):
        return Decimal("1") if value else Decimal("0")
    return to_decimal(value)


@beartype
def resolve_expression(
    step: FactorStep,
    context: EvaluationContext,
    step_outputs: Mapping[str, Decimal],
) -> Result[Resolution, StepLocalError]:
    """Evaluate an expression step.

    Identifiers resolve against scenario inputs first, then against outputs
    of earlier applied steps.
    """
    source = step.expression or ""
    parsed = parse_expression(source)
    if parsed.is_err():
        return _step_error(
            StepErrorCode.EXPRESSION_ERROR, f"Invalid expression: {parsed.unwrap_err()}"
        )
    node = parsed.unwrap()

    bindings: dict[str, Decimal] = {}
    input_values: dict[str, InputValue | None] = {}
    for name in referenced_names(node):
        if name in context.inputs:
            raw = context.inputs[name]
            input_values[name] = raw
            operand = _expression_operand(raw)
            if operand is None:
                return _step_error(
                    StepErrorCode.EXPRESSION_ERROR,
                    f"Input '{name}' has non-numeric value {raw!r}",
                )
            bindings[name] = operand
        elif name in step_outputs:
            bindings[name] = step_outputs[name]
            input_values[name] = step_outputs[name]
        else:
            return _step_error(
                StepErrorCode.EXPRESSION_ERROR, f"Unknown identifier '{name}'"
            )

    evaluated = evaluate_expression(node, bindings.get)
    if evaluated.is_err():
        return _step_error(StepErrorCode.EXPRESSION_ERROR, evaluated.unwrap_err())

    result = evaluated.unwrap()
    return Ok(
        Resolution(
            value=result.value,
            input_values=input_values,
            evaluated_expression=source,
            warnings=result.warnings,
        )
    )


@beartype
def resolve(
    step: FactorStep,
    context: EvaluationContext,
    step_outputs: Mapping[str, Decimal] | None = None,
) -> Result[Resolution, StepLocalError]:
    """Resolve the raw numeric value of a factor step.

    Args:
        step: Factor step to resolve
        context: Scenario inputs, state, effective date and tables
        step_outputs: Contributions of earlier applied steps by output name

    Returns:
        Result containing the resolution or the step-local failure
    """
    if step.value_type == ValueType.TABLE:
        if not step.table_ref:
            return _step_error(StepErrorCode.MISSING_VALUE, "Table step has no table reference")
        return resolve_table(step, context)

    if step.value_type == ValueType.EXPRESSION:
        if not step.expression or not step.expression.strip():
            return _step_error(StepErrorCode.MISSING_VALUE, "Expression step has no expression")
        return resolve_expression(step, context, step_outputs or {})

    if step.raw_value is None:
        return _step_error(
            StepErrorCode.MISSING_VALUE,
            f"{step.value_type.value.capitalize()} step has no value",
        )
    return Ok(Resolution(value=step.raw_value))
