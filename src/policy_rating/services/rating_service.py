# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Rating service: program lookup, caching and response formatting.

This is the glue between stored rating programs and the pure engine in
:mod:`policy_rating.services.rating`. It fetches steps and tables from a
program store, builds the evaluation context, consults the response cache
and shapes results for the HTTP boundary.
"""

import threading
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from beartype import beartype

from ..core.cache import RatingResultCache
from ..core.config import Settings, get_settings
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.context import EvaluationContext, RatingTableData
from ..models.program import RatingProgram
from ..models.results import EvaluationResult, ValidationIssue
from ..models.steps import FactorStep, OperandStep, RoundingMode
from ..schemas.rating import (
    CoverageRatingRequest,
    CoverageRatingResponse,
    CoverageSummary,
    PackageRatingRequest,
    PackageRatingResponse,
    StepBreakdown,
)
from .rating import evaluate as evaluate_steps
from .rating import rate_package as rate_package_steps
from .rating import render_formula, scenario_fingerprint
from .rating import validate as validate_steps

logger = get_logger(__name__)


def _dump(tables: tuple[RatingTableData, ...]) -> list[dict[str, object]]:
    return [table.model_dump() for table in tables]


@runtime_checkable
class RatingProgramStore(Protocol):
    """Source of published rating programs."""

    def get_program(
        self, product_id: str, coverage_id: str, version_id: str | None = None
    ) -> RatingProgram | None:
        """Return a program version, the latest one when no version is given."""
        ...

    def list_coverages(self, product_id: str) -> list[str]:
        """Coverage ids that have a rating program for the product."""
        ...


class InMemoryRatingProgramStore:
    """Program store backed by a dict, for tests and embedded use."""

    def __init__(self, programs: Sequence[RatingProgram] = ()) -> None:
        self._programs: dict[tuple[str, str], dict[str, RatingProgram]] = {}
        self._lock = threading.Lock()
        for program in programs:
            self.add_program(program)

    @beartype
    def add_program(self, program: RatingProgram) -> None:
        """Register a program version; re-adding a version replaces it."""
        with self._lock:
            versions = self._programs.setdefault(
                (program.product_id, program.coverage_id), {}
            )
            versions.pop(program.version_id, None)
            versions[program.version_id] = program

    @beartype
    def get_program(
        self, product_id: str, coverage_id: str, version_id: str | None = None
    ) -> RatingProgram | None:
        """Return a program version, the most recently added when no version is given."""
        with self._lock:
            versions = self._programs.get((product_id, coverage_id))
            if not versions:
                return None
            if version_id is None:
                return next(reversed(versions.values()))
            return versions.get(version_id)

    @beartype
    def list_coverages(self, product_id: str) -> list[str]:
        """Coverage ids that have a rating program for the product."""
        with self._lock:
            return sorted(
                coverage_id
                for (program_product, coverage_id) in self._programs
                if program_product == product_id
            )


class RatingService:
    """Orchestrates rating requests over the engine."""

    @beartype
    def __init__(
        self,
        store: RatingProgramStore,
        cache: RatingResultCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize rating service.

        Args:
            store: Source of rating programs
            cache: Response cache; built from settings when omitted
            settings: Service defaults; the global settings when omitted
        """
        self._store = store
        self._settings = settings or get_settings()
        if cache is None:
            cache = RatingResultCache(
                capacity=self._settings.cache_capacity,
                ttl_seconds=self._settings.cache_ttl_seconds,
            )
        self._cache = cache

    @property
    def cache(self) -> RatingResultCache:
        """Response cache owned by this service."""
        return self._cache

    def _final_rounding(self, requested: RoundingMode | None) -> RoundingMode:
        if requested is not None:
            return requested
        return RoundingMode(self._settings.final_rounding_mode)

    def _evaluate_cached(
        self,
        steps: Sequence[FactorStep | OperandStep],
        context: EvaluationContext,
        coverage_id: str | None,
        final_rounding: RoundingMode | None,
    ) -> tuple[Result[EvaluationResult, str], bool]:
        rounding = self._final_rounding(final_rounding)
        cache_key = scenario_fingerprint(steps, context, coverage_id, rounding)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return Ok(cached), True

        result = evaluate_steps(steps, context, coverage_id, rounding)
        if result.is_err():
            return Err(str(result.unwrap_err())), False

        evaluation = result.unwrap()
        self._cache.set(cache_key, evaluation)
        return Ok(evaluation), False

    @beartype
    def evaluate(
        self,
        steps: Sequence[FactorStep | OperandStep],
        context: EvaluationContext,
        coverage_id: str | None = None,
        final_rounding: RoundingMode | None = None,
    ) -> Result[EvaluationResult, str]:
        """Evaluate steps against a scenario, serving repeats from the cache.

        Returns:
            Result containing the evaluation or the structural error message
        """
        result, _ = self._evaluate_cached(steps, context, coverage_id, final_rounding)
        return result

    @beartype
    def validate(self, steps: Sequence[FactorStep | OperandStep]) -> list[ValidationIssue]:
        """Static validation of a step sequence."""
        return validate_steps(steps)

    @beartype
    def rate_coverage(
        self, request: CoverageRatingRequest
    ) -> Result[CoverageRatingResponse | None, str]:
        """Rate one coverage of a stored program.

        Returns:
            Result containing the rating response, None when no program
            exists, or an error message
        """
        program = self._store.get_program(
            request.product_id, request.coverage_id, request.version_id
        )
        if program is None:
            return Ok(None)

        context = EvaluationContext(
            inputs=request.inputs,
            state=request.state,
            effective_date=request.effective_date,
            tables=program.tables,
        )
        result, was_cached = self._evaluate_cached(
            program.steps, context, request.coverage_id, request.final_rounding
        )
        if result.is_err():
            logger.warning(
                "Rating program %s/%s version %s is malformed: %s",
                program.product_id,
                program.coverage_id,
                program.version_id,
                result.unwrap_err(),
            )
            return Err(result.unwrap_err())

        return Ok(self._coverage_response(program, result.unwrap(), was_cached))

    @beartype
    def rate_package(
        self, request: PackageRatingRequest
    ) -> Result[PackageRatingResponse, str]:
        """Rate several coverages of a product with the bundle discount.

        Coverages without a rating program are reported as coverage errors.
        """
        steps_by_coverage: dict[str, Sequence[FactorStep | OperandStep]] = {}
        versions: dict[str, str] = {}
        tables: dict[str, tuple[RatingTableData, ...]] = {}
        for coverage_id in request.coverage_ids:
            program = self._store.get_program(request.product_id, coverage_id)
            if program is None:
                continue
            steps_by_coverage[coverage_id] = program.steps
            versions[coverage_id] = program.version_id
            for table_ref, table_versions in program.tables.items():
                if table_ref in tables and _dump(tables[table_ref]) != _dump(table_versions):
                    return Err(
                        f"Table '{table_ref}' differs between coverage programs "
                        f"of product {request.product_id}"
                    )
                tables[table_ref] = table_versions

        context = EvaluationContext(
            inputs=request.inputs,
            state=request.state,
            effective_date=request.effective_date,
            tables=tables,
        )
        all_or_nothing = (
            request.all_or_nothing
            if request.all_or_nothing is not None
            else self._settings.package_all_or_nothing
        )
        result = rate_package_steps(
            steps_by_coverage,
            request.coverage_ids,
            request.discount_percent,
            context,
            all_or_nothing,
            self._final_rounding(request.final_rounding),
        )
        if result.is_err():
            return Err(str(result.unwrap_err()))

        package = result.unwrap()
        return Ok(
            PackageRatingResponse(
                product_id=request.product_id,
                subtotal=package.subtotal,
                discount_percent=package.discount_percent,
                discount=package.discount,
                total=package.total,
                coverages=[
                    CoverageSummary(
                        coverage_id=coverage_id,
                        version_id=versions[coverage_id],
                        final_premium=evaluation.final_premium,
                        minimum_applied=evaluation.minimum_applied,
                        result_hash=evaluation.result_hash,
                    )
                    for coverage_id, evaluation in package.per_coverage.items()
                ],
                coverage_errors=package.coverage_errors,
                complete=package.complete,
            )
        )

    def _coverage_response(
        self, program: RatingProgram, evaluation: EvaluationResult, cached: bool
    ) -> CoverageRatingResponse:
        breakdown = [
            StepBreakdown(
                step_id=entry.step_id,
                step_name=entry.step_name,
                applied=entry.applied,
                operation=entry.operation,
                contribution=entry.contribution,
                running_total=entry.running_total,
                impact=entry.impact,
                impact_percent=entry.impact_percent,
                skip_reason=entry.skip_reason,
            )
            for entry in evaluation.trace
            if entry.step_kind == "factor"
        ]
        return CoverageRatingResponse(
            product_id=program.product_id,
            coverage_id=program.coverage_id,
            version_id=program.version_id,
            final_premium=evaluation.final_premium,
            pre_rounded_premium=evaluation.pre_rounded_premium,
            minimum_applied=evaluation.minimum_applied,
            formula=render_formula(program.steps),
            breakdown=breakdown,
            warnings=list(evaluation.warnings),
            result_hash=evaluation.result_hash,
            cached=cached,
        )

