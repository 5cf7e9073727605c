# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Scenario context and rating table models."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field, PrivateAttr, field_validator, model_validator

from .base import BaseModelConfig
from .steps import InputValue


class DimensionSource(str, Enum):
    """Where a table dimension reads its value from."""

    INPUT = "input"  # context.inputs[field_code]
    STATE = "state"  # context.state


@beartype
class ValueBand(BaseModelConfig):
    """Half-open numeric band ``[lower, upper)`` mapped to a key label."""

    label: str = Field(..., min_length=1)
    lower: Decimal | None = Field(default=None, description="Inclusive lower bound")
    upper: Decimal | None = Field(default=None, description="Exclusive upper bound")

    def contains(self, value: Decimal) -> bool:
        """Check whether the value falls inside the band."""
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value >= self.upper:
            return False
        return True


@beartype
class TableDimension(BaseModelConfig):
    """One ordered key component of a rating table."""

    name: str = Field(..., min_length=1)
    field_code: str = Field(default="", description="Input field read for this dimension")
    source: DimensionSource = Field(default=DimensionSource.INPUT)
    bands: tuple[ValueBand, ...] = Field(
        default=(), description="Numeric bands; empty for discrete dimensions"
    )

    @model_validator(mode="after")
    def validate_source(self) -> "TableDimension":
        """Input-sourced dimensions need a field code."""
        if self.source == DimensionSource.INPUT and not self.field_code:
            raise ValueError(f"Dimension {self.name} requires a field_code")
        return self


@beartype
class TableRow(BaseModelConfig):
    """A composite key and its numeric value."""

    key: tuple[str, ...] = Field(..., min_length=1)
    value: Decimal


@beartype
class RatingTableData(BaseModelConfig):
    """Immutable keyed lookup table.

    Keys are ordered tuples of discrete or banded dimension values, e.g.
    territory x protection class. A row index is built once on construction
    so lookups are O(1).
    """

    table_ref: str = Field(..., min_length=1)
    version_id: str | None = Field(default=None)
    dimensions: tuple[TableDimension, ...] = Field(..., min_length=1)
    rows: tuple[TableRow, ...] = Field(default=())
    default_value: Decimal | None = Field(
        default=None, description="Value used when no row matches"
    )
    effective_start: date | None = Field(default=None, description="Inclusive")
    effective_end: date | None = Field(default=None, description="Exclusive")

    _index: dict[tuple[str, ...], Decimal] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def validate_rows(self) -> "RatingTableData":
        """Every key has one component per dimension and appears once."""
        width = len(self.dimensions)
        seen: set[tuple[str, ...]] = set()
        for row in self.rows:
            if len(row.key) != width:
                raise ValueError(
                    f"Row key {row.key} has {len(row.key)} parts, table "
                    f"{self.table_ref} has {width} dimensions"
                )
            if row.key in seen:
                raise ValueError(f"Duplicate row key {row.key} in table {self.table_ref}")
            seen.add(row.key)
        if (
            self.effective_start is not None
            and self.effective_end is not None
            and self.effective_end <= self.effective_start
        ):
            raise ValueError("effective_end must be after effective_start")
        return self

    def model_post_init(self, context: Any, /) -> None:
        self._index = {row.key: row.value for row in self.rows}

    def lookup(self, key: tuple[str, ...]) -> Decimal | None:
        """Return the row value for a key, falling back to the default row."""
        return self._index.get(key, self.default_value)

    def is_effective_on(self, on: date) -> bool:
        """Check whether this table version is in force on a date."""
        if self.effective_start is not None and on < self.effective_start:
            return False
        if self.effective_end is not None and on >= self.effective_end:
            return False
        return True


@beartype
class EvaluationContext(BaseModelConfig):
    """One scenario to evaluate a step sequence against."""

    inputs: dict[str, InputValue] = Field(
        default_factory=dict, description="Field code to scenario value"
    )
    state: str | None = Field(
        default=None, min_length=2, max_length=2, description="Jurisdiction code"
    )
    effective_date: date = Field(..., description="Selects table versions")
    tables: dict[str, tuple[RatingTableData, ...]] = Field(
        default_factory=dict, description="Table reference to its versions"
    )

    @field_validator("state")
    @classmethod
    def normalize_state(cls, v: str | None) -> str | None:
        """Jurisdiction codes compare case-insensitively."""
        return v.upper() if v is not None else None

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

    def has_table(self, table_ref: str) -> bool:
        """Check whether any version of the table was supplied."""
        return bool(self.tables.get(table_ref))

    def table_version(self, table_ref: str) -> RatingTableData | None:
        """Version of a table in force on the effective date.

        When several versions overlap the one with the latest start wins;
        open-ended starts sort first.
        """
        candidates = [
            table
            for table in self.tables.get(table_ref, ())
            if table.is_effective_on(self.effective_date)
        ]
        if not candidates:
            return None
        return max(
            candidates,
            key=lambda table: (table.effective_start or date.min, table.version_id or ""),
        )
