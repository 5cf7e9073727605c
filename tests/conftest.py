"""Test configuration and fixtures for the rating engine.

Step factories keep scenarios short: ``make_factor("base", 1, "500")`` builds
a flat factor step, ``make_operand("op", 2, "*")`` an operand step.
"""

import os
from collections.abc import Callable, Generator
from datetime import date
from decimal import Decimal
from typing import Any

import pytest

from policy_rating.core.config import clear_settings_cache
from policy_rating.models import (
    EvaluationContext,
    FactorStep,
    OperandStep,
    RatingTableData,
)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate every test from RATING_* variables and cached settings."""
    for key in list(os.environ):
        if key.startswith("RATING_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def effective_date() -> date:
    """Rating date used by scenarios."""
    return date(2025, 7, 1)


@pytest.fixture
def make_factor() -> Callable[..., FactorStep]:
    """Factory for factor steps; the value is given as a string or Decimal."""

    def _make(
        step_id: str,
        order: int,
        value: str | Decimal | None = None,
        name: str | None = None,
        **fields: Any,
    ) -> FactorStep:
        if value is not None:
            fields["raw_value"] = Decimal(str(value))
        return FactorStep(id=step_id, order=order, name=name or step_id.title(), **fields)

    return _make


@pytest.fixture
def make_operand() -> Callable[[str, int, str], OperandStep]:
    """Factory for operand steps from an operator symbol."""

    def _make(step_id: str, order: int, symbol: str) -> OperandStep:
        return OperandStep.model_validate(
            {"id": step_id, "order": order, "operator": symbol}
        )

    return _make


@pytest.fixture
def make_context(effective_date: date) -> Callable[..., EvaluationContext]:
    """Factory for evaluation contexts dated ``effective_date`` by default."""

    def _make(**fields: Any) -> EvaluationContext:
        fields.setdefault("effective_date", effective_date)
        return EvaluationContext(**fields)

    return _make


@pytest.fixture
def territory_table() -> RatingTableData:
    """Territory x protection class factors with a default row."""
    return RatingTableData.model_validate(
        {
            "table_ref": "territory_pc",
            "version_id": "2025-01",
            "dimensions": [
                {"name": "Territory", "field_code": "territory"},
                {
                    "name": "Protection Class",
                    "field_code": "protection_class",
                    "bands": [
                        {"label": "1-4", "lower": "1", "upper": "5"},
                        {"label": "5-8", "lower": "5", "upper": "9"},
                        {"label": "9-10", "lower": "9", "upper": "11"},
                    ],
                },
            ],
            "rows": [
                {"key": ["001", "1-4"], "value": "0.95"},
                {"key": ["001", "5-8"], "value": "1.10"},
                {"key": ["002", "1-4"], "value": "1.05"},
            ],
            "default_value": "1.25",
        }
    )
