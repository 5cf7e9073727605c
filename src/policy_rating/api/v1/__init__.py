# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""API v1 router aggregation."""

from fastapi import APIRouter

from .rating import router as rating_router

# Create main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(rating_router, tags=["rating"])


__all__ = ["router"]
