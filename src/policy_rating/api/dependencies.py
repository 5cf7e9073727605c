# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies for the rating API."""

from beartype import beartype
from fastapi import HTTPException, Request, status

from ..services.rating_service import RatingService


@beartype
def get_rating_service(request: Request) -> RatingService:
    """Provide the rating service owned by the application.

    Raises:
        HTTPException: 503 when the application was built without one
    """
    service = getattr(request.app.state, "rating_service", None)
    if not isinstance(service, RatingService):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rating service is not configured",
        )
    return service
