from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Schema models for the destination stores.

A SchemaDefinition describes one destination table: its canonical fields in
display order, which of them are required and which one is the natural key
used for duplicate detection, plus an optional merge field whose new values
are folded into records already stored. The concrete catalog lives in
erp_import.schema.registry.
"""

__all__ = [
    "CanonicalField",
    "Destination",
    "FieldKind",
    "PrimitiveType",
    "SchemaDefinition",
]


class Destination(str, Enum):
    """The three destination stores an export can be loaded into."""
    SALES = "sales"
    CUSTOMERS = "customers"
    CATALOG = "catalog"


class PrimitiveType(str, Enum):
    """Column types recognized by the type detector.

    Declaration order is also the detection priority (date > currency > number > text).
    """
    DATE = "date"
    CURRENCY = "currency"
    NUMBER = "number"
    TEXT = "text"


class FieldKind(str, Enum):
    """Selects the value transformer applied to a canonical field."""
    DATE = "date"
    CURRENCY = "currency"
    NUMBER = "number"
    DOCUMENT = "document"  # tax identifiers, digits only
    TEXT = "text"


@dataclass(frozen=True)
class CanonicalField:
    """A named, typed slot in a destination schema."""
    name: str  # Column name in the destination store
    accepted_types: frozenset[PrimitiveType]
    keywords: frozenset[str]
    required: bool = False
    kind: FieldKind = FieldKind.TEXT


@dataclass(frozen=True)
class SchemaDefinition:
    """Canonical record shape of one destination."""
    destination: Destination
    fields: tuple[CanonicalField, ...]
    natural_key: str
    merge_field: str | None = None  # stored value is extended, not replaced, on re-import

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"schema '{self.destination.value}' has repeated field names")
        if self.natural_key not in names:
            raise ValueError(
                f"schema '{self.destination.value}' natural key '{self.natural_key}' is not a field"
            )
        if self.merge_field is not None and self.merge_field not in names:
            raise ValueError(
                f"schema '{self.destination.value}' merge field '{self.merge_field}' is not a field"
            )

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)

    def get_field(self, name: str) -> CanonicalField:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)
