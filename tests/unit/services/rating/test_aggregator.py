"""Unit tests for package rating."""

from decimal import Decimal

import pytest

from policy_rating.models import RoundingMode
from policy_rating.services.rating import rate_package


@pytest.fixture
def package_steps(make_factor, make_operand):
    """Two coverages rating 600 and 400 before discount."""
    return {
        "GL": [make_factor("gl_base", 1, "600")],
        "PROP": [
            make_factor("prop_base", 1, "200"),
            make_operand("times", 2, "*"),
            make_factor("prop_load", 3, "2"),
        ],
    }


class TestRatePackage:
    """Bundle totals and discounts."""

    def test_discounted_total(self, package_steps, make_context):
        """The discount applies to the sum of coverage premiums."""
        result = rate_package(
            package_steps, ["GL", "PROP"], Decimal("10"), make_context()
        )

        assert result.is_ok()
        package = result.unwrap()
        assert package.subtotal == Decimal("1000")
        assert package.discount == Decimal("100.00")
        assert package.total == Decimal("900.00")
        assert package.complete is True
        assert set(package.per_coverage) == {"GL", "PROP"}
        assert package.per_coverage["PROP"].coverage_id == "PROP"

    def test_discount_rounds_to_cents(self, make_factor, make_context):
        """Discounts are quantized half up to cents."""
        steps = {"GL": [make_factor("base", 1, "333.33")]}

        package = rate_package(steps, ["GL"], Decimal("12.5"), make_context()).unwrap()

        assert package.discount == Decimal("41.67")
        assert package.total == Decimal("291.66")

    def test_duplicate_coverage_rated_once(self, package_steps, make_context):
        """Listing a coverage twice does not double its premium."""
        package = rate_package(
            package_steps, ["GL", "GL", "PROP"], Decimal("0"), make_context()
        ).unwrap()

        assert package.subtotal == Decimal("1000")
        assert package.discount == Decimal("0.00")

    @pytest.mark.parametrize("discount", [Decimal("-1"), Decimal("100.01")])
    def test_discount_bounds(self, package_steps, make_context, discount):
        """Discounts outside 0..100 are rejected."""
        result = rate_package(package_steps, ["GL"], discount, make_context())

        assert result.is_err()
        assert "outside [0, 100]" in str(result.unwrap_err())

    def test_partial_package(self, package_steps, make_factor, make_context):
        """Failing coverages are reported and the rest still rate."""
        package_steps["AUTO"] = [make_factor("a", 1, "1"), make_factor("b", 1, "2")]

        package = rate_package(
            package_steps, ["GL", "AUTO", "UMB"], Decimal("10"), make_context()
        ).unwrap()

        assert package.complete is False
        assert package.subtotal == Decimal("600")
        assert package.total == Decimal("540.00")
        assert "DUPLICATE_ORDER" in package.coverage_errors["AUTO"]
        assert package.coverage_errors["UMB"] == "No rating steps for coverage UMB"

    def test_all_or_nothing(self, package_steps, make_context):
        """Any coverage failure fails the package when requested."""
        result = rate_package(
            package_steps,
            ["GL", "UMB"],
            Decimal("10"),
            make_context(),
            all_or_nothing=True,
        )

        assert result.is_err()
        error = result.unwrap_err()
        assert list(error.coverage_errors) == ["UMB"]
        assert "UMB" in str(error)

    def test_final_rounding_per_coverage(self, make_factor, make_context):
        """Each coverage premium is rounded before summing."""
        steps = {
            "GL": [make_factor("gl", 1, "100.004")],
            "PROP": [make_factor("prop", 1, "100.004")],
        }

        package = rate_package(
            steps,
            ["GL", "PROP"],
            Decimal("0"),
            make_context(),
            final_rounding=RoundingMode.NEAREST,
        ).unwrap()

        assert package.subtotal == Decimal("200.00")

    def test_coverage_scoped_steps(self, make_factor, make_operand, make_context):
        """A shared program applies coverage-scoped steps per coverage."""
        shared = [
            make_factor("base", 1, "100"),
            make_operand("times", 2, "*"),
            make_factor("gl_load", 3, "1.5", coverages=("GL",)),
        ]

        package = rate_package(
            {"GL": shared, "PROP": shared}, ["GL", "PROP"], Decimal("0"), make_context()
        ).unwrap()

        assert package.per_coverage["GL"].final_premium == Decimal("150.0")
        assert package.per_coverage["PROP"].final_premium == Decimal("100")
