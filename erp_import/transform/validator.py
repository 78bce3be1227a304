from __future__ import annotations

from erp_import.models.mapping_result import MappingResult
from erp_import.models.row_data import RawRow, TransformedRow, ValidationOutcome
from erp_import.models.schema_models import SchemaDefinition
from erp_import.transform.values import transform_value

"""Row validation and transformation.

Validation looks at the raw strings: a required field is satisfied when its
mapped source column is non-blank for the row. Transformation then produces
a TransformedRow holding only mapped fields.
"""

__all__ = [
    "required_message",
    "transform_row",
    "validate_row",
]


def required_message(field_name: str) -> str:
    return f'Required field "{field_name}" is empty'


def validate_row(row: RawRow, mapping: MappingResult, schema: SchemaDefinition) -> ValidationOutcome:
    errors: list[str] = []
    for field_name in schema.required_fields:
        header = mapping.header_for(field_name)
        if header is None or not row.get(header).strip():
            errors.append(required_message(field_name))
    return ValidationOutcome(row_index=row.row_index, valid=not errors, errors=errors)


def transform_row(row: RawRow, mapping: MappingResult, schema: SchemaDefinition) -> TransformedRow:
    values = {}
    for header, field_name in mapping.header_to_field.items():
        values[field_name] = transform_value(row.get(header), schema.get_field(field_name).kind)
    return TransformedRow.for_schema(schema, row.row_index, values, raw=row.values)
