# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Regression runs of stored test cases against a rating program.

A run rates every active test case against the draft program and, when a
baseline (the published version) is given, against the baseline as well so
the two can be compared side by side. ``evaluate_qa_gate`` then decides
whether the run is good enough to publish the draft.
"""

import time
from collections.abc import Mapping, Sequence
from decimal import Decimal

from beartype import beartype

from ...core.logging_utils import get_logger
from ...models.context import EvaluationContext, RatingTableData
from ...models.regression import (
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
from ...models.results import EvaluationResult, Severity
from ...models.steps import FactorStep, OperandStep, RoundingMode
from .step_chain import evaluate

logger = get_logger(__name__)

TableMapping = Mapping[str, RatingTableData | Sequence[RatingTableData]]


@beartype
def step_outputs(
    steps: Sequence[FactorStep | OperandStep], result: EvaluationResult
) -> dict[str, Decimal]:
    """Contributions of applied factor steps keyed by output code or step id."""
    codes = {
        step.id: step.output_code or step.id
        for step in steps
        if isinstance(step, FactorStep)
    }
    return {
        codes[entry.step_id]: entry.contribution
        for entry in result.trace
        if entry.applied
        and entry.step_kind == "factor"
        and entry.contribution is not None
        and entry.step_id in codes
    }


def _compare(
    test_case: RatingTestCase,
    actual_outputs: Mapping[str, Decimal],
    final_premium: Decimal,
) -> list[TestDifference]:
    differences: list[TestDifference] = []

    for field_code, expected in sorted(test_case.expected_outputs.items()):
        actual = actual_outputs.get(field_code)
        if actual is None:
            differences.append(
                TestDifference(field_code=field_code, expected=expected, within_tolerance=False)
            )
            continue
        difference = abs(expected - actual)
        differences.append(
            TestDifference(
                field_code=field_code,
                expected=expected,
                actual=actual,
                difference=difference,
                within_tolerance=difference <= test_case.tolerance,
            )
        )

    if test_case.expected_final_premium is not None:
        difference = abs(test_case.expected_final_premium - final_premium)
        if difference > test_case.tolerance:
            differences.append(
                TestDifference(
                    field_code="final_premium",
                    expected=test_case.expected_final_premium,
                    actual=final_premium,
                    difference=difference,
                    within_tolerance=False,
                )
            )

    return differences


@beartype
def run_test_case(
    test_case: RatingTestCase,
    steps: Sequence[FactorStep | OperandStep],
    tables: TableMapping | None = None,
    final_rounding: RoundingMode = RoundingMode.NONE,
    baseline_steps: Sequence[FactorStep | OperandStep] | None = None,
) -> TestRunResult:
    """Evaluate a test case and compare against its expectations.

    Every expected output is reported, within tolerance or not; the final
    premium is reported only when it is off.

    Args:
        test_case: Scenario and expected values
        steps: Draft program under test
        tables: Rating tables shared by draft and baseline
        final_rounding: Final rounding applied to both programs
        baseline_steps: Published program to rate alongside the draft

    Returns:
        ``pass`` or ``fail`` for a draft that ran, ``error`` for one that
        could not be evaluated. A baseline that cannot be evaluated leaves
        the baseline outputs empty without affecting the status.
    """
    context = EvaluationContext(
        inputs=test_case.inputs,
        state=test_case.state,
        effective_date=test_case.effective_date,
        tables=dict(tables or {}),
    )
    evaluation = evaluate(steps, context, test_case.coverage_id, final_rounding)
    if evaluation.is_err():
        error = evaluation.unwrap_err()
        logger.warning("Test case %s could not be evaluated: %s", test_case.id, error)
        return TestRunResult(
            test_case_id=test_case.id,
            test_case_name=test_case.name,
            status=TestRunStatus.ERROR,
            error=str(error),
        )

    result = evaluation.unwrap()
    actual_outputs = step_outputs(steps, result)
    differences = _compare(test_case, actual_outputs, result.final_premium)
    passed = all(difference.within_tolerance for difference in differences)

    baseline_outputs: dict[str, Decimal] | None = None
    baseline_final_premium: Decimal | None = None
    if baseline_steps is not None:
        baseline = evaluate(baseline_steps, context, test_case.coverage_id, final_rounding)
        if baseline.is_ok():
            baseline_result = baseline.unwrap()
            baseline_outputs = step_outputs(baseline_steps, baseline_result)
            baseline_final_premium = baseline_result.final_premium
        else:
            logger.info(
                "Baseline could not be evaluated for test case %s: %s",
                test_case.id,
                baseline.unwrap_err(),
            )

    return TestRunResult(
        test_case_id=test_case.id,
        test_case_name=test_case.name,
        status=TestRunStatus.PASS if passed else TestRunStatus.FAIL,
        actual_outputs=actual_outputs,
        actual_final_premium=result.final_premium,
        differences=tuple(differences),
        baseline_outputs=baseline_outputs,
        baseline_final_premium=baseline_final_premium,
        result_hash=result.result_hash,
        execution_time_ms=result.execution_time_ms,
    )


@beartype
def run_regression(
    test_cases: Sequence[RatingTestCase],
    steps: Sequence[FactorStep | OperandStep],
    tables: TableMapping | None = None,
    final_rounding: RoundingMode = RoundingMode.NONE,
    baseline_steps: Sequence[FactorStep | OperandStep] | None = None,
) -> RegressionReport:
    """Run every active test case and count passes, failures and errors."""
    start_time = time.perf_counter()
    results = tuple(
        run_test_case(test_case, steps, tables, final_rounding, baseline_steps)
        for test_case in test_cases
        if test_case.is_active
    )
    counts = {status: 0 for status in TestRunStatus}
    for result in results:
        counts[result.status] += 1

    report = RegressionReport(
        results=results,
        passed=counts[TestRunStatus.PASS],
        failed=counts[TestRunStatus.FAIL],
        errored=counts[TestRunStatus.ERROR],
        execution_time_ms=(time.perf_counter() - start_time) * 1000,
    )
    if not report.all_passed:
        logger.info(
            "Regression run %s: %d failed, %d errors of %d test cases",
            report.status.value,
            report.failed,
            report.errored,
            report.total,
        )
    return report


@beartype
def evaluate_qa_gate(
    config: QAGateConfig,
    report: RegressionReport,
    test_cases: Sequence[RatingTestCase] = (),
) -> QAGateResult:
    """Decide whether a regression run clears the pre-publish QA gate.

    In ``required`` mode every shortfall is an error and blocks publishing;
    in ``advisory`` mode the same shortfalls are warnings only. An empty run
    has a pass rate of zero.

    Args:
        config: Gate mode and thresholds
        report: Regression run to judge
        test_cases: Test cases of the run, consulted for mandatory ones

    Returns:
        Gate verdict with every issue found
    """
    if config.mode == QAGateMode.DISABLED:
        return QAGateResult(passed=True, mode=config.mode)

    severity = Severity.ERROR if config.mode == QAGateMode.REQUIRED else Severity.WARNING
    issues: list[QAGateIssue] = []

    pass_rate = report.pass_rate
    if pass_rate < config.min_pass_rate:
        issues.append(
            QAGateIssue(
                severity=severity,
                message=(
                    f"QA pass rate {pass_rate * 100:.1f}% is below required "
                    f"{config.min_pass_rate * 100:.1f}% "
                    f"({report.failed} failed, {report.errored} errors)"
                ),
            )
        )

    if config.require_mandatory_pass:
        mandatory = {case.id for case in test_cases if case.is_required and case.is_active}
        missed = [
            result.test_case_name or result.test_case_id
            for result in report.results
            if result.test_case_id in mandatory and not result.passed
        ]
        if missed:
            issues.append(
                QAGateIssue(
                    severity=severity,
                    message=(
                        f"{len(missed)} mandatory test case(s) did not pass: "
                        f"{', '.join(missed)}"
                    ),
                )
            )

    if report.status == RegressionStatus.ERROR:
        issues.append(
            QAGateIssue(severity=severity, message="QA run encountered evaluation errors")
        )

    passed = not any(issue.severity == Severity.ERROR for issue in issues)
    if not passed:
        logger.warning("QA gate blocked publishing: %d issue(s)", len(issues))
    return QAGateResult(passed=passed, mode=config.mode, issues=tuple(issues))
