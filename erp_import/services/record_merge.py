from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from erp_import.db.store import RecordStore
from erp_import.models.row_data import TransformedRow
from erp_import.models.schema_models import SchemaDefinition
from erp_import.services.duplicates import chunked, key_is_document, natural_key_value

"""Merge updates for records that already exist in the store.

A re-imported customer is not inserted again, but a phone number the store
does not know yet is worth keeping. For every stored record whose key appears
in the file, the merge field of each matching row is folded into the stored
value; a record with something new yields exactly one MergeUpdate.

Phones are lists separated by "/". Two phones are the same when their digits
are equal or one contains the other ("(41) 3333-1111" and "33331111").
Matching is on the exact natural key only.
"""

__all__ = [
    "MergeUpdate",
    "clean_phone",
    "merge_phones",
    "phones_similar",
    "plan_merge_updates",
]

logger = logging.getLogger(__name__)

_NON_DIGIT = re.compile(r"\D")


@dataclass(frozen=True)
class MergeUpdate:
    """One pending update of a stored record's merge field."""
    key: str
    field: str
    old_value: str
    new_value: str
    row_indices: tuple[int, ...]  # file rows that contributed


def clean_phone(text: str) -> str:
    return _NON_DIGIT.sub("", text)


def phones_similar(a: str, b: str) -> bool:
    """Equal digits, or the digits of one contain the other.

    >>> phones_similar("(41) 3333-1111", "33331111")
    True
    """
    da, db = clean_phone(a), clean_phone(b)
    return da == db or da in db or db in da


def merge_phones(current: str, new: str) -> str:
    """Append the phones of ``new`` that are not similar to a phone already kept.

    >>> merge_phones("3333-1111", "9999-0000/(41) 3333-1111")
    '3333-1111/9999-0000'
    """
    if not current:
        return new
    if not new:
        return current
    merged = [p.strip() for p in current.split("/") if p.strip()]
    for phone in (p.strip() for p in new.split("/")):
        if phone and not any(phones_similar(phone, kept) for kept in merged):
            merged.append(phone)
    return "/".join(merged)


def plan_merge_updates(
    rows: Sequence[TransformedRow],
    schema: SchemaDefinition,
    store: RecordStore,
    table: str,
    chunk_size: int = 100,
) -> list[MergeUpdate]:
    """Updates for stored records whose merge field gains new values from ``rows``.

    Schemas without a merge field never produce updates. Store errors propagate.
    """
    merge_field = schema.merge_field
    if merge_field is None or not rows:
        return []
    key_field = schema.natural_key

    groups: dict[str, list[TransformedRow]] = {}
    for row in rows:
        key = natural_key_value(row, key_field)
        if key:
            groups.setdefault(key, []).append(row)

    stored: dict[str, dict] = {}
    for chunk in chunked(list(groups), chunk_size):
        stored.update(store.fetch_by_key(
            table, key_field, chunk, [merge_field], digits_only=key_is_document(schema)
        ))

    updates: list[MergeUpdate] = []
    for key, group in groups.items():
        if key not in stored:
            continue
        old = str(stored[key].get(merge_field) or "").strip()
        merged = old
        contributed: list[int] = []
        for row in group:
            new = str(row.values.get(merge_field) or "").strip()
            candidate = merge_phones(merged, new) if clean_phone(new) else merged
            if candidate != merged:
                merged = candidate
                contributed.append(row.row_index)
        if merged != old:
            updates.append(MergeUpdate(
                key=key, field=merge_field, old_value=old, new_value=merged, row_indices=tuple(contributed)
            ))
    logger.debug("merge check on %s: %d stored records, %d updates", table, len(stored), len(updates))
    return updates
