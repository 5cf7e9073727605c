# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Canonical serialization, result hashing and audit export.

Every value is reduced to a canonical JSON form before hashing: object keys
are sorted recursively, separators are compact, ``Decimal`` values are
fixed-point strings and dates are ISO 8601. Dict insertion order therefore
never reaches the hash, while anything that can change the premium does.
"""

import hashlib
import json
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import BaseModel

from ...models.context import EvaluationContext
from ...models.results import EvaluationResult
from ...models.steps import (
    FactorStep,
    InputValue,
    OperandStep,
    RoundingMode,
    StepRole,
    ValueType,
    sort_steps,
)

HASH_LENGTH = 16

# Fields that vary between otherwise identical evaluations
_VOLATILE_RESULT_FIELDS = {"result_hash", "evaluated_at", "execution_time_ms"}


@beartype
def decimal_to_str(value: Decimal) -> str:
    """Fixed-point rendering of a Decimal, never scientific notation."""
    if not value.is_finite():
        return str(value)
    return format(value, "f")


def _canonicalize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _canonicalize(value.model_dump(mode="python"))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool) or value is None or isinstance(value, (int, str)):
        return value
    if isinstance(value, Decimal):
        return decimal_to_str(value)
    if isinstance(value, float):
        return decimal_to_str(Decimal(str(value)))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): _canonicalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonicalize(item) for item in value]
    raise TypeError(f"Cannot canonicalize value of type {type(value).__name__}")


@beartype
def canonical_json(value: Any, *, indent: int | None = None) -> str:
    """Serialize a value to canonical JSON.

    Args:
        value: Models, mappings, sequences and scalars
        indent: Pretty-print indentation; None produces the compact form
            used for hashing

    Returns:
        JSON text that is identical for equal content
    """
    separators = (",", ":") if indent is None else (",", ": ")
    return json.dumps(
        _canonicalize(value),
        sort_keys=True,
        separators=separators,
        indent=indent,
        ensure_ascii=True,
    )


def _content_hash(payload: Any) -> str:
    data_bytes = canonical_json(payload).encode("utf-8")
    return hashlib.sha256(data_bytes).hexdigest()[:HASH_LENGTH]


def _tagged_input(value: InputValue) -> list[Any]:
    # Tagged so that the string "5" and the number 5 never collide
    if isinstance(value, bool):
        return ["bool", value]
    if isinstance(value, str):
        return ["str", value]
    if isinstance(value, int):
        return ["int", str(value)]
    if isinstance(value, float):
        return ["float", decimal_to_str(Decimal(str(value)))]
    return ["decimal", decimal_to_str(value)]


def _referenced_tables(steps: Sequence[FactorStep | OperandStep]) -> list[str]:
    return sorted(
        {
            step.table_ref
            for step in steps
            if isinstance(step, FactorStep)
            and step.value_type == ValueType.TABLE
            and step.table_ref
        }
    )


@beartype
def scenario_payload(
    steps: Sequence[FactorStep | OperandStep],
    context: EvaluationContext,
    coverage_id: str | None = None,
    final_rounding: RoundingMode = RoundingMode.NONE,
) -> dict[str, Any]:
    """Everything an evaluation's outcome depends on.

    Only tables referenced by table steps are included, so unrelated tables
    shipped in the same context do not change the fingerprint.
    """
    return {
        "steps": [step.model_dump(mode="python") for step in sort_steps(steps)],
        "context": {
            "inputs": {key: _tagged_input(value) for key, value in context.inputs.items()},
            "state": context.state,
            "effective_date": context.effective_date,
            "coverage_id": coverage_id,
            "tables": {
                ref: [table.model_dump(mode="python") for table in context.tables.get(ref, ())]
                for ref in _referenced_tables(steps)
            },
        },
        "final_rounding": final_rounding,
    }


@beartype
def scenario_fingerprint(
    steps: Sequence[FactorStep | OperandStep],
    context: EvaluationContext,
    coverage_id: str | None = None,
    final_rounding: RoundingMode = RoundingMode.NONE,
) -> str:
    """Cache key covering every input that feeds the result hash."""
    return _content_hash(scenario_payload(steps, context, coverage_id, final_rounding))


@beartype
def compute_result_hash(
    steps: Sequence[FactorStep | OperandStep],
    context: EvaluationContext,
    result: EvaluationResult,
) -> str:
    """Deterministic fingerprint over steps, scenario and outputs.

    Timing fields and the stored hash itself are excluded, so re-running the
    same evaluation reproduces the same hash.
    """
    payload = scenario_payload(
        steps, context, result.coverage_id, result.final_rounding_mode
    )
    payload["outputs"] = result.model_dump(mode="python", exclude=_VOLATILE_RESULT_FIELDS)
    return _content_hash(payload)


@beartype
def verify_result_hash(
    steps: Sequence[FactorStep | OperandStep],
    context: EvaluationContext,
    result: EvaluationResult,
) -> bool:
    """Check a stored result against its inputs."""
    return compute_result_hash(steps, context, result) == result.result_hash


@beartype
def export_trace_json(result: EvaluationResult, *, indent: int | None = 2) -> str:
    """Audit export of a result with stable field order and number format."""
    return canonical_json(result, indent=indent)


def _formula_value(step: FactorStep) -> str:
    if step.value_type == ValueType.TABLE:
        return f"[{step.table_ref or '?'}]"
    if step.value_type == ValueType.EXPRESSION:
        return f"({step.expression or '?'})"
    value = decimal_to_str(step.raw_value) if step.raw_value is not None else "0"
    if step.value_type == ValueType.PERCENTAGE:
        return f"{value}%"
    return value


@beartype
def render_formula(steps: Sequence[FactorStep | OperandStep]) -> str:
    """Human-readable formula, e.g. ``500 (Base) * 1.10 (Territory Factor)``.

    Disabled factors are left out and take their pending operator with
    them. Minimum premium steps are not part of the chain and are omitted.
    """
    parts: list[str] = []
    pending: str | None = None
    for step in sort_steps(steps):
        if isinstance(step, OperandStep):
            pending = step.operator.symbol
            continue
        if not step.enabled:
            pending = None
            continue
        if step.role == StepRole.MINIMUM_PREMIUM:
            continue
        if parts and pending:
            parts.append(pending)
        parts.append(f"{_formula_value(step)} ({step.name or 'Step'})")
        pending = None
    return " ".join(parts) if parts else "No formula defined"
