"""Unit tests for canonical serialization, hashing and formula rendering."""

import json
from datetime import date
from decimal import Decimal

from policy_rating.models import RoundingMode, StepRole, ValueType
from policy_rating.services.rating import (
    canonical_json,
    evaluate,
    export_trace_json,
    render_formula,
    scenario_fingerprint,
    verify_result_hash,
)
from policy_rating.services.rating.determinism import decimal_to_str


class TestCanonicalJson:
    """Stable serialization."""

    def test_sorted_compact_output(self):
        """Keys are sorted recursively and separators are compact."""
        value = {"b": [1, {"z": True, "y": None}], "a": Decimal("1.50")}

        assert canonical_json(value) == '{"a":"1.50","b":[1,{"y":null,"z":true}]}'

    def test_insertion_order_is_irrelevant(self):
        """Equal mappings serialize identically."""
        assert canonical_json({"x": 1, "y": 2}) == canonical_json({"y": 2, "x": 1})

    def test_scalars(self):
        """Decimals are fixed point, floats go through Decimal, dates are ISO."""
        assert decimal_to_str(Decimal("1E+3")) == "1000"
        assert canonical_json([0.1, date(2025, 7, 1), RoundingMode.UP]) == (
            '["0.1","2025-07-01","up"]'
        )


class TestFingerprint:
    """Scenario fingerprints used as cache keys."""

    def test_unrelated_tables_ignored(self, make_factor, make_context, territory_table):
        """Only referenced tables feed the fingerprint."""
        steps = [make_factor("base", 1, "500")]

        bare = scenario_fingerprint(steps, make_context())
        with_table = scenario_fingerprint(
            steps, make_context(tables={"territory_pc": territory_table})
        )

        assert bare == with_table

    def test_referenced_table_content_counts(self, make_factor, make_context, territory_table):
        """Changing a referenced table changes the fingerprint."""
        steps = [
            make_factor("t", 1, value_type=ValueType.TABLE, table_ref="territory_pc")
        ]
        changed = territory_table.model_copy(update={"default_value": Decimal("2")})

        original = scenario_fingerprint(
            steps, make_context(tables={"territory_pc": territory_table})
        )
        updated = scenario_fingerprint(steps, make_context(tables={"territory_pc": changed}))

        assert original != updated

    def test_coverage_and_rounding_count(self, make_factor, make_context):
        """Coverage and final rounding are part of the scenario."""
        steps = [make_factor("base", 1, "500")]
        context = make_context()

        fingerprints = {
            scenario_fingerprint(steps, context),
            scenario_fingerprint(steps, context, "GL"),
            scenario_fingerprint(steps, context, None, RoundingMode.NEAREST),
        }

        assert len(fingerprints) == 3

    def test_string_and_number_inputs_differ(self, make_factor, make_context):
        """The string "5" and the number 5 are different inputs."""
        steps = [make_factor("base", 1, "500")]

        assert scenario_fingerprint(
            steps, make_context(inputs={"n": "5"})
        ) != scenario_fingerprint(steps, make_context(inputs={"n": 5}))


class TestResultHash:
    """Result hashes and audit export."""

    def test_verify_result_hash(self, make_factor, make_operand, make_context):
        """Stored results verify against their inputs, tampered ones do not."""
        steps = [
            make_factor("base", 1, "500"),
            make_operand("times", 2, "*"),
            make_factor("load", 3, "1.10"),
        ]
        context = make_context()
        result = evaluate(steps, context).unwrap()

        assert verify_result_hash(steps, context, result)
        tampered = result.model_copy(update={"final_premium": Decimal("1")})
        assert not verify_result_hash(steps, context, tampered)

    def test_export_is_canonical_json(self, make_factor, make_operand, make_context):
        """The export parses back with string amounts and the full trace."""
        steps = [
            make_factor("base", 1, "500", name="Base"),
            make_operand("times", 2, "*"),
            make_factor("load", 3, "1.10"),
        ]
        result = evaluate(steps, make_context()).unwrap()

        exported = export_trace_json(result)
        document = json.loads(exported)

        assert document["final_premium"] == "550.00"
        assert document["result_hash"] == result.result_hash
        assert [entry["step_id"] for entry in document["trace"]] == ["base", "times", "load"]
        assert list(document) == sorted(document)


class TestRenderFormula:
    """Human-readable formulas."""

    def test_chain(self, make_factor, make_operand):
        """Factors are joined by their operators."""
        steps = [
            make_factor("base", 1, "500", name="Base"),
            make_operand("times", 2, "*"),
            make_factor("territory", 3, "1.10", name="Territory Factor"),
            make_operand("plus", 4, "+"),
            make_factor(
                "surcharge", 5, "10", name="Surcharge", value_type=ValueType.PERCENTAGE
            ),
        ]

        assert render_formula(steps) == (
            "500 (Base) * 1.10 (Territory Factor) + 10% (Surcharge)"
        )

    def test_tables_expressions_and_skipped_steps(self, make_factor, make_operand):
        """Disabled and minimum steps are omitted."""
        steps = [
            make_factor("base", 1, value_type=ValueType.TABLE, table_ref="rates", name="Base"),
            make_operand("times", 2, "*"),
            make_factor("off", 3, "2", enabled=False),
            make_operand("times2", 4, "*"),
            make_factor(
                "load", 5, value_type=ValueType.EXPRESSION, expression="1 + x", name="Load"
            ),
            make_factor("minimum", 6, "250", role=StepRole.MINIMUM_PREMIUM),
        ]

        assert render_formula(steps) == "[rates] (Base) * (1 + x) (Load)"

    def test_empty(self):
        """No factors means no formula."""
        assert render_formula([]) == "No formula defined"
