from __future__ import annotations

import logging
from collections.abc import Sequence

from erp_import.db.store import RecordStore
from erp_import.models.row_data import DuplicateFlag, TransformedRow
from erp_import.models.schema_models import FieldKind, SchemaDefinition

"""Duplicate detection against the store (read only).

Keys are compared as trimmed strings. Document keys (CNPJ) are matched against
the stored value reduced to digits, so a stored "12.345.678/0001-90" is found.
Rows without a key are never flagged; they are left to the validator. With
``in_file=True`` a row repeating a key already seen earlier in the same file
is flagged too.

StoreError and StoreUnavailableError from the existence check propagate: a
job cannot tell duplicates apart without the answer.
"""

__all__ = [
    "chunked",
    "detect_duplicates",
    "key_is_document",
    "natural_key_value",
]

logger = logging.getLogger(__name__)


def natural_key_value(row: TransformedRow, key_field: str) -> str:
    value = row.values.get(key_field)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # 1001.0 from a numeric column matches "1001" in the store
        value = int(value)
    return str(value).strip()


def key_is_document(schema: SchemaDefinition) -> bool:
    return schema.get_field(schema.natural_key).kind == FieldKind.DOCUMENT


def chunked(items: list[str], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def detect_duplicates(
    rows: Sequence[TransformedRow],
    schema: SchemaDefinition,
    store: RecordStore,
    table: str,
    chunk_size: int = 100,
    in_file: bool = False,
) -> list[DuplicateFlag]:
    """Flag rows whose natural key already exists in ``table``.

    Returns:
        One DuplicateFlag per input row, in input order
    """
    key_field = schema.natural_key
    keys = [natural_key_value(r, key_field) for r in rows]
    digits_only = key_is_document(schema)

    distinct = list(dict.fromkeys(k for k in keys if k))
    existing: set[str] = set()
    for chunk in chunked(distinct, chunk_size):
        found = store.exists_by_key(table, key_field, chunk, digits_only=digits_only)
        existing.update(str(v).strip() for v in found)
    logger.debug(
        "existence check on %s: %d distinct keys, %d already stored", table, len(distinct), len(existing)
    )

    flags: list[DuplicateFlag] = []
    seen: set[str] = set()
    for row, key in zip(rows, keys):
        reason = None
        if key and key in existing:
            reason = f'{key_field} "{key}" already exists in {table}'
        elif key and in_file and key in seen:
            reason = f'{key_field} "{key}" duplicated within the file'
        if key:
            seen.add(key)
        flags.append(DuplicateFlag(row_index=row.row_index, is_duplicate=reason is not None, reason=reason))
    return flags
