"""Unit tests for static program validation."""

from decimal import Decimal

from policy_rating.models import Severity, StepRole, StepScope, ValueType
from policy_rating.services.rating import validate


def codes(issues):
    return [issue.code for issue in issues]


class TestValidateProgram:
    """Program-level checks."""

    def test_clean_program(self, make_factor, make_operand):
        """A well-formed chain has no issues."""
        steps = [
            make_factor("base", 1, "500"),
            make_operand("times", 2, "*"),
            make_factor("load", 3, "1.1"),
            make_factor("minimum", 4, "250", role=StepRole.MINIMUM_PREMIUM),
        ]

        assert validate(steps) == []

    def test_empty_algorithm(self, make_operand):
        """Programs without factors warn, program-level issues first."""
        issues = validate([make_operand("plus", 1, "+")])

        assert codes(issues) == ["EMPTY_ALGORITHM", "TRAILING_OPERAND"]
        assert issues[0].step_id is None
        assert validate([])[0].code == "EMPTY_ALGORITHM"

    def test_duplicate_order(self, make_factor, make_operand):
        """Shared order values are errors."""
        steps = [
            make_factor("base", 1, "500"),
            make_operand("times", 2, "*"),
            make_factor("load", 2, "1.1"),
        ]

        issues = validate(steps)

        duplicate = [issue for issue in issues if issue.code == "DUPLICATE_ORDER"]
        assert len(duplicate) == 1
        assert duplicate[0].severity == Severity.ERROR

    def test_sequence_warnings(self, make_factor, make_operand):
        """Operator placement mistakes are reported where they occur."""
        steps = [
            make_factor("base", 1, "500"),
            make_operand("plus", 2, "+"),
            make_operand("times", 3, "*"),
            make_factor("load", 4, "1.1"),
            make_factor("orphan", 5, "2"),
            make_operand("dangling", 6, "-"),
        ]

        issues = validate(steps)

        assert [(issue.code, issue.step_id) for issue in issues] == [
            ("CONSECUTIVE_OPERANDS", "times"),
            ("MISSING_OPERATOR", "orphan"),
            ("TRAILING_OPERAND", "dangling"),
        ]
        assert all(issue.severity == Severity.WARNING for issue in issues)

    def test_disabled_step_drops_its_operator(self, make_factor, make_operand):
        """The step after a disabled factor has no operator."""
        steps = [
            make_factor("base", 1, "500"),
            make_operand("times", 2, "*"),
            make_factor("off", 3, "2", enabled=False),
            make_factor("load", 4, "1.1"),
        ]

        assert codes(validate(steps)) == ["MISSING_OPERATOR"]


class TestValidateFactor:
    """Per-step checks."""

    def test_missing_name_and_value(self, make_factor):
        """Blank names are errors, missing values warnings."""
        steps = [make_factor("base", 1, name=" ", value_type=ValueType.MULTIPLIER)]

        issues = validate(steps)

        by_code = {issue.code: issue for issue in issues}
        assert by_code["MISSING_NAME"].severity == Severity.ERROR
        assert by_code["MISSING_VALUE"].severity == Severity.WARNING
        assert "Multiplier step has no value" in by_code["MISSING_VALUE"].message

    def test_table_and_expression_values(self, make_factor, make_operand):
        """Table steps need a reference, expression steps a parseable expression."""
        steps = [
            make_factor("rate", 1, value_type=ValueType.TABLE),
            make_operand("times", 2, "*"),
            make_factor("expr", 3, value_type=ValueType.EXPRESSION, expression="1 +"),
        ]

        issues = validate(steps)

        assert [(issue.code, issue.step_id) for issue in issues] == [
            ("MISSING_VALUE", "rate"),
            ("INVALID_EXPRESSION", "expr"),
        ]

    def test_invalid_caps(self, make_factor):
        """Crossed caps are errors."""
        steps = [
            make_factor("load", 1, "1", min_cap=Decimal("2"), max_cap=Decimal("1"))
        ]

        assert codes(validate(steps)) == ["INVALID_CAPS"]

    def test_policy_step_with_coverages(self, make_factor):
        """Policy-level steps should not be limited to coverages."""
        steps = [make_factor("fee", 1, "25", scope=StepScope.POLICY, coverages=("GL",))]

        assert codes(validate(steps)) == ["SCOPE_COVERAGE_MISMATCH"]

    def test_malformed_conditions(self, make_factor):
        """Range and scalar operators need the right value shape."""
        steps = [
            make_factor(
                "young",
                1,
                "1.5",
                conditions=(
                    {"field": "age", "operator": "between", "value": 16},
                    {"field": "age", "operator": "equals", "value": [16, 17]},
                    {"field": "state", "operator": "contains", "value": ["CA", "NY"]},
                ),
            )
        ]

        issues = validate(steps)

        assert codes(issues) == ["INVALID_CONDITION", "INVALID_CONDITION"]
        assert "between" in issues[0].message
