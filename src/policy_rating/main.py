# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy Rating Engine - Main Application Module."""

import uvicorn
from beartype import beartype
from fastapi import FastAPI

from .api.v1 import router as v1_router
from .core.config import get_settings
from .core.logging_utils import configure_logging, get_logger
from .schemas.common import APIInfo
from .services.rating_service import InMemoryRatingProgramStore, RatingService

API_VERSION = "0.1.0"

logger = get_logger(__name__)


@beartype
def create_app(rating_service: RatingService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        rating_service: Service to serve requests with; an empty in-memory
            program store backs it when omitted

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()
    configure_logging(level=settings.log_level)

    is_production = settings.api_env == "production"
    app = FastAPI(
        title=settings.app_name,
        description="Deterministic, auditable premium calculation",
        version=API_VERSION,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )

    if rating_service is None:
        rating_service = RatingService(InMemoryRatingProgramStore(), settings=settings)
    app.state.rating_service = rating_service

    # Include API routers
    app.include_router(v1_router)

    # Root endpoint
    @app.get("/")
    async def root() -> APIInfo:
        """Root endpoint returning API information."""
        return APIInfo(
            name=settings.app_name,
            version=API_VERSION,
            status="operational",
            environment=settings.api_env,
        )

    logger.info("Rating API created for %s environment", settings.api_env)
    return app


@beartype
def main() -> None:
    """Run the main application entry point."""
    settings = get_settings()

    uvicorn.run(
        "policy_rating.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_env == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
