# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Domain models for rating programs, scenarios and results."""

from .base import BaseModelConfig
from .context import (
    DimensionSource,
    EvaluationContext,
    RatingTableData,
    TableDimension,
    TableRow,
    ValueBand,
)
from .program import RatingProgram
from .regression import (
    QAGateConfig,
    QAGateIssue,
    QAGateMode,
    QAGateResult,
    RatingTestCase,
    RegressionReport,
    RegressionStatus,
    TestDifference,
    TestRunResult,
    TestRunStatus,
)
from .results import (
    EvaluationResult,
    PackageRatingError,
    PackageResult,
    Severity,
    StepErrorCode,
    StepLocalError,
    StepTraceEntry,
    StructuralError,
    StructuralErrorCode,
    ValidationIssue,
)
from .steps import (
    Condition,
    ConditionOperator,
    FactorStep,
    InputValue,
    OperandStep,
    Operator,
    RatingStep,
    RoundingMode,
    StepRole,
    StepScope,
    ValueType,
    rating_step_list_adapter,
    sort_steps,
)

__all__ = [
    "BaseModelConfig",
    # Steps
    "Condition",
    "ConditionOperator",
    "FactorStep",
    "InputValue",
    "OperandStep",
    "Operator",
    "RatingStep",
    "RoundingMode",
    "StepRole",
    "StepScope",
    "ValueType",
    "rating_step_list_adapter",
    "sort_steps",
    # Context
    "DimensionSource",
    "EvaluationContext",
    "RatingTableData",
    "TableDimension",
    "TableRow",
    "ValueBand",
    # Results
    "EvaluationResult",
    "PackageRatingError",
    "PackageResult",
    "Severity",
    "StepErrorCode",
    "StepLocalError",
    "StepTraceEntry",
    "StructuralError",
    "StructuralErrorCode",
    "ValidationIssue",
    # Programs
    "RatingProgram",
    # Regression
    "QAGateConfig",
    "QAGateIssue",
    "QAGateMode",
    "QAGateResult",
    "RatingTestCase",
    "RegressionReport",
    "RegressionStatus",
    "TestDifference",
    "TestRunResult",
    "TestRunStatus",
]
