# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Rating calculation engine.

Pure, stateless functions over immutable models: ``evaluate`` walks a step
chain for one scenario, ``rate_package`` bundles coverages, ``validate``
checks a program statically.
"""

from .aggregator import rate_package
from .conditions import evaluate_condition, evaluate_conditions
from .determinism import (
    canonical_json,
    compute_result_hash,
    export_trace_json,
    render_formula,
    scenario_fingerprint,
    verify_result_hash,
)
from .expressions import evaluate_expression, parse_expression
from .regression import evaluate_qa_gate, run_regression, run_test_case
from .rounding import apply_rounding_and_caps, round_value, try_round_value
from .scope_filter import Applicability, applies
from .step_chain import check_structure, evaluate
from .validation import validate
from .value_resolver import Resolution, resolve

__all__ = [
    "Applicability",
    "Resolution",
    "applies",
    "apply_rounding_and_caps",
    "canonical_json",
    "check_structure",
    "compute_result_hash",
    "evaluate",
    "evaluate_condition",
    "evaluate_conditions",
    "evaluate_expression",
    "evaluate_qa_gate",
    "export_trace_json",
    "parse_expression",
    "rate_package",
    "render_formula",
    "resolve",
    "round_value",
    "run_regression",
    "run_test_case",
    "scenario_fingerprint",
    "try_round_value",
    "validate",
    "verify_result_hash",
]
