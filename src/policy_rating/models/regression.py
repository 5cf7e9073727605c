# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Stored regression test cases, run outcomes and the pre-publish QA gate."""

from datetime import date
from decimal import Decimal
from enum import Enum

from beartype import beartype
from pydantic import Field, computed_field

from .base import BaseModelConfig
from .results import Severity
from .steps import InputValue


class TestRunStatus(str, Enum):
    """Outcome of one test case."""

    __test__ = False

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


class RegressionStatus(str, Enum):
    """Outcome of a whole regression run."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


class QAGateMode(str, Enum):
    """How a QA gate treats a regression run that falls short."""

    REQUIRED = "required"  # blocks publishing
    ADVISORY = "advisory"  # warns only
    DISABLED = "disabled"


@beartype
class RatingTestCase(BaseModelConfig):
    """A scenario with the premium a rating program must keep producing."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None)
    inputs: dict[str, InputValue] = Field(default_factory=dict)
    state: str | None = Field(default=None, min_length=2, max_length=2)
    coverage_id: str | None = Field(default=None)
    effective_date: date
    expected_outputs: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Output code (or step id) to expected contribution",
    )
    expected_final_premium: Decimal | None = Field(default=None)
    tolerance: Decimal = Field(default=Decimal("0.001"), ge=0)
    is_required: bool = Field(
        default=False, description="Must pass for a QA gate requiring mandatory cases"
    )
    is_active: bool = Field(default=True, description="Inactive cases are not run")


@beartype
class TestDifference(BaseModelConfig):
    """One compared value of a test run."""

    __test__ = False  # not a pytest class

    field_code: str
    expected: Decimal
    actual: Decimal | None = Field(default=None, description="None when not produced")
    difference: Decimal | None = Field(default=None)
    within_tolerance: bool


@beartype
class TestRunResult(BaseModelConfig):
    """Outcome of running one test case."""

    __test__ = False

    test_case_id: str
    test_case_name: str = Field(default="")
    status: TestRunStatus
    actual_outputs: dict[str, Decimal] = Field(default_factory=dict)
    actual_final_premium: Decimal | None = Field(default=None)
    differences: tuple[TestDifference, ...] = Field(default=())
    baseline_outputs: dict[str, Decimal] | None = Field(
        default=None, description="Outputs of the baseline program, when one ran"
    )
    baseline_final_premium: Decimal | None = Field(default=None)
    error: str | None = Field(default=None, description="Structural error, if any")
    result_hash: str | None = Field(default=None)
    execution_time_ms: float = Field(default=0.0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> bool:
        """True when every expectation held."""
        return self.status == TestRunStatus.PASS


@beartype
class RegressionReport(BaseModelConfig):
    """Aggregate outcome of a regression run."""

    results: tuple[TestRunResult, ...] = Field(default=())
    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    errored: int = Field(default=0, ge=0)
    execution_time_ms: float = Field(default=0.0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> RegressionStatus:
        """``error`` when nothing but errors occurred, ``failed`` on any miss."""
        if self.errored and not self.passed and not self.failed:
            return RegressionStatus.ERROR
        if self.failed or self.errored:
            return RegressionStatus.FAILED
        return RegressionStatus.PASSED

    @property
    def total(self) -> int:
        """Number of test cases run."""
        return self.passed + self.failed + self.errored

    @property
    def all_passed(self) -> bool:
        """True when every test case passed."""
        return self.status == RegressionStatus.PASSED

    @property
    def pass_rate(self) -> Decimal:
        """Share of test cases that passed; zero for an empty run."""
        if not self.total:
            return Decimal("0")
        return Decimal(self.passed) / Decimal(self.total)


@beartype
class QAGateConfig(BaseModelConfig):
    """Thresholds a regression run must meet before a program is published."""

    mode: QAGateMode = Field(default=QAGateMode.REQUIRED)
    min_pass_rate: Decimal = Field(default=Decimal("1"), ge=0, le=1)
    require_mandatory_pass: bool = Field(default=True)


@beartype
class QAGateIssue(BaseModelConfig):
    """A threshold the run did not meet."""

    severity: Severity
    message: str


@beartype
class QAGateResult(BaseModelConfig):
    """Verdict of a QA gate on one regression run."""

    passed: bool
    mode: QAGateMode
    issues: tuple[QAGateIssue, ...] = Field(default=())
