# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Published rating programs as handed over by the program store."""

from typing import Any

from beartype import beartype
from pydantic import Field, field_validator

from .base import BaseModelConfig
from .context import RatingTableData
from .steps import RatingStep


@beartype
class RatingProgram(BaseModelConfig):
    """One version of the rating algorithm for a product coverage."""

    product_id: str = Field(..., min_length=1)
    coverage_id: str = Field(..., min_length=1)
    version_id: str = Field(..., min_length=1)
    name: str = Field(default="", max_length=200)
    steps: tuple[RatingStep, ...] = Field(default=())
    tables: dict[str, tuple[RatingTableData, ...]] = Field(default_factory=dict)

    @field_validator("tables", mode="before")
    @classmethod
    def wrap_single_versions(cls, v: Any) -> Any:
        """Accept a single table per reference as well as a sequence of versions."""
        if not isinstance(v, dict):
            return v
        return {
            ref: (tables,) if isinstance(tables, (RatingTableData, dict)) else tables
            for ref, tables in v.items()
        }
