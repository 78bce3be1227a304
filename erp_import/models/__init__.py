"""Domain models for the ERP export import engine.

Records are created fresh per import job and discarded once the job's
ImportReport has been returned.
"""

from .config_models import DatabaseConfig, ImportConfig
from .mapping_result import MappingError, MappingResult
from .processing_result import FailedRow, ImportOutcome, ImportReport
from .row_data import DuplicateFlag, RawRow, TransformedRow, ValidationOutcome
from .schema_models import (
    CanonicalField,
    Destination,
    FieldKind,
    PrimitiveType,
    SchemaDefinition,
)

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Schema models
    "CanonicalField",
    "Destination",
    "FieldKind",
    "PrimitiveType",
    "SchemaDefinition",
    # Processing models
    "DuplicateFlag",
    "FailedRow",
    "ImportOutcome",
    "ImportReport",
    "MappingError",
    "MappingResult",
    "RawRow",
    "TransformedRow",
    "ValidationOutcome",
]
