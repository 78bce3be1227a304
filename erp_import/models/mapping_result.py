from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .schema_models import Destination

"""MappingResult model: which input header feeds which canonical field."""

__all__ = [
    "MappingError",
    "MappingResult",
]


class MappingError(ValueError):
    """Raised for a mapping that assigns one field twice or names unknown headers/fields."""


@dataclass(frozen=True)
class MappingResult:
    """Partial injective map header -> canonical field name for one destination.

    Headers absent from ``header_to_field`` are left unmapped and ignored by the
    transformer. Construction fails with MappingError when two headers claim
    the same field.
    """
    destination: Destination
    header_to_field: Mapping[str, str] = field(default_factory=dict)
    confidence: float = 0.0

    def __post_init__(self) -> None:
        claimed: dict[str, str] = {}
        for header, field_name in self.header_to_field.items():
            if field_name in claimed:
                raise MappingError(
                    f"field '{field_name}' is mapped from both '{claimed[field_name]}' and '{header}'"
                )
            claimed[field_name] = header
        if not 0.0 <= self.confidence <= 1.0:
            raise MappingError(f"confidence out of range: {self.confidence}")
        # read-only view
        object.__setattr__(self, "header_to_field", MappingProxyType(dict(self.header_to_field)))

    @property
    def field_to_header(self) -> dict[str, str]:
        return {f: h for h, f in self.header_to_field.items()}

    def header_for(self, field_name: str) -> str | None:
        return self.field_to_header.get(field_name)

    @property
    def mapped_fields(self) -> set[str]:
        return set(self.header_to_field.values())
