# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Rating API endpoints."""

from typing import Annotated

from beartype import beartype
from fastapi import APIRouter, Depends, HTTPException, Response

from ...models.results import EvaluationResult, Severity
from ...schemas.rating import (
    CoverageRatingRequest,
    CoverageRatingResponse,
    EvaluateRequest,
    PackageRatingRequest,
    PackageRatingResponse,
    ValidateRequest,
    ValidateResponse,
)
from ...services.rating import export_trace_json, render_formula
from ...services.rating_service import RatingService
from ..dependencies import get_rating_service

router = APIRouter(prefix="/rating", tags=["rating"])

RatingServiceDep = Annotated[RatingService, Depends(get_rating_service)]


@router.post("/evaluate", response_model=EvaluationResult)
@beartype
async def evaluate_steps(
    request: EvaluateRequest,
    rating_service: RatingServiceDep,
) -> EvaluationResult:
    """Evaluate an inline step sequence and return the premium with its trace."""
    result = rating_service.evaluate(
        request.steps, request.context, request.coverage_id, request.final_rounding
    )

    if result.is_err():
        raise HTTPException(status_code=400, detail=result.err_value)

    return result.ok_value


@router.post("/validate", response_model=ValidateResponse)
@beartype
async def validate_steps(
    request: ValidateRequest,
    rating_service: RatingServiceDep,
) -> ValidateResponse:
    """Run static checks over a step sequence."""
    issues = rating_service.validate(request.steps)
    error_count = sum(1 for issue in issues if issue.severity == Severity.ERROR)

    return ValidateResponse(
        issues=issues,
        error_count=error_count,
        warning_count=len(issues) - error_count,
        publishable=error_count == 0,
        formula=render_formula(request.steps),
    )


@router.post("/coverages/rate", response_model=CoverageRatingResponse)
@beartype
async def rate_coverage(
    request: CoverageRatingRequest,
    rating_service: RatingServiceDep,
) -> CoverageRatingResponse:
    """Rate one coverage against its stored rating program."""
    result = rating_service.rate_coverage(request)

    if result.is_err():
        raise HTTPException(status_code=400, detail=result.err_value)

    response = result.ok_value
    if response is None:
        raise HTTPException(status_code=404, detail="Rating program not found")

    return response


@router.post("/packages/rate", response_model=PackageRatingResponse)
@beartype
async def rate_package(
    request: PackageRatingRequest,
    rating_service: RatingServiceDep,
) -> PackageRatingResponse:
    """Rate a bundle of coverages and apply the package discount."""
    result = rating_service.rate_package(request)

    if result.is_err():
        raise HTTPException(status_code=400, detail=result.err_value)

    return result.ok_value


@router.post("/export")
@beartype
async def export_evaluation(
    request: EvaluateRequest,
    rating_service: RatingServiceDep,
) -> Response:
    """Evaluate and return the canonical JSON document used for filings."""
    result = rating_service.evaluate(
        request.steps, request.context, request.coverage_id, request.final_rounding
    )

    if result.is_err():
        raise HTTPException(status_code=400, detail=result.err_value)

    return Response(
        content=export_trace_json(result.ok_value),
        media_type="application/json",
    )
