from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Union

from .schema_models import Destination, SchemaDefinition

"""Row-level models flowing through the import pipeline.

RawRow       parser output, one per data line
TransformedRow  canonical values for one destination (tagged by destination)
ValidationOutcome / DuplicateFlag  per-row annotations
"""

__all__ = [
    "CanonicalValue",
    "DuplicateFlag",
    "RawRow",
    "TransformedRow",
    "ValidationOutcome",
]

CanonicalValue = Union[str, float, None]


@dataclass(frozen=True)
class RawRow:
    """One input data row as header -> raw string, in header order.

    row_index is 0-based over data rows (the header line is not counted).
    """
    row_index: int
    values: Mapping[str, str]

    def get(self, header: str) -> str:
        return self.values.get(header, "")

    @property
    def row_number(self) -> int:
        """1-based data row number used in user-facing messages."""
        return self.row_index + 1


@dataclass(frozen=True)
class TransformedRow:
    """Canonical values of one row, keyed by field names of its destination schema."""
    row_index: int
    destination: Destination
    values: Mapping[str, CanonicalValue]
    raw: Mapping[str, str] = field(default_factory=dict)  # source header -> original string

    @classmethod
    def for_schema(
        cls,
        schema: SchemaDefinition,
        row_index: int,
        values: Mapping[str, CanonicalValue],
        raw: Mapping[str, str] | None = None,
    ) -> TransformedRow:
        unknown = set(values) - set(schema.field_names)
        if unknown:
            raise KeyError(
                f"fields {sorted(unknown)} do not belong to destination '{schema.destination.value}'"
            )
        return cls(
            row_index=row_index,
            destination=schema.destination,
            values=dict(values),
            raw=dict(raw or {}),
        )

    def record(self) -> dict[str, CanonicalValue]:
        """Plain dict handed to the store."""
        return dict(self.values)


@dataclass(frozen=True)
class ValidationOutcome:
    row_index: int
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DuplicateFlag:
    row_index: int
    is_duplicate: bool
    reason: str | None = None
