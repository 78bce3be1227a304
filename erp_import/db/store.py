from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

"""Persistent store contract used by the import pipeline.

The pipeline needs a bulk existence check on a natural key, an all-or-nothing
bulk insert, and for record merging a keyed read plus a keyed update.
Business failures of a write are returned in InsertResult.error or
UpdateResult.error; an unreachable store raises StoreUnavailableError, which
aborts the job.

With ``digits_only=True`` the stored key is reduced to its digits before it
is compared, so "12.345.678/0001-90" in the store matches "12345678000190".
"""

__all__ = [
    "InMemoryStore",
    "InsertResult",
    "RecordStore",
    "StoreError",
    "StoreUnavailableError",
    "UpdateResult",
]

Record = Mapping[str, Any]

_NON_DIGIT = re.compile(r"\D")


class StoreError(Exception):
    """A store call failed for this request only (bad data, constraint violation)."""


class StoreUnavailableError(Exception):
    """The store cannot be reached at all."""


@dataclass(frozen=True)
class InsertResult:
    error: str | None = None
    inserted_rows: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class UpdateResult:
    error: str | None = None
    updated_rows: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class RecordStore(Protocol):
    def exists_by_key(
        self, table: str, key_field: str, values: Sequence[str], digits_only: bool = False
    ) -> set[str]:
        ...

    def insert_many(self, table: str, rows: Sequence[Record]) -> InsertResult:
        ...

    def fetch_by_key(
        self,
        table: str,
        key_field: str,
        values: Sequence[str],
        columns: Sequence[str],
        digits_only: bool = False,
    ) -> dict[str, dict[str, Any]]:
        ...

    def update_by_key(
        self, table: str, key_field: str, key: str, values: Record, digits_only: bool = False
    ) -> UpdateResult:
        ...


def _stored_key(value: Any, digits_only: bool) -> str:
    text = str(value).strip()
    return _NON_DIGIT.sub("", text) if digits_only else text


class InMemoryStore:
    """Dict-backed store for mock mode and tests.

    ``unique_keys`` maps a table to the field that must be unique in it; an
    insert repeating a stored (or in-batch) key is rejected as a whole.
    """

    def __init__(
        self,
        unique_keys: Mapping[str, str] | None = None,
        available: bool = True,
    ) -> None:
        self.unique_keys = dict(unique_keys or {})
        self.available = available
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.insert_calls = 0
        self.exists_calls = 0
        self.update_calls = 0

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("in-memory store marked unavailable")

    def seed(self, table: str, rows: Iterable[Record]) -> None:
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables.get(table, []))

    def _matching(self, table: str, key_field: str, digits_only: bool):
        for r in self.tables.get(table, []):
            if r.get(key_field) is not None:
                yield _stored_key(r.get(key_field), digits_only), r

    def exists_by_key(
        self, table: str, key_field: str, values: Sequence[str], digits_only: bool = False
    ) -> set[str]:
        self._check_available()
        self.exists_calls += 1
        wanted = {str(v) for v in values}
        return wanted & {key for key, _ in self._matching(table, key_field, digits_only)}

    def fetch_by_key(
        self,
        table: str,
        key_field: str,
        values: Sequence[str],
        columns: Sequence[str],
        digits_only: bool = False,
    ) -> dict[str, dict[str, Any]]:
        """First stored record per wanted key, limited to ``columns``."""
        self._check_available()
        wanted = {str(v) for v in values}
        found: dict[str, dict[str, Any]] = {}
        for key, r in self._matching(table, key_field, digits_only):
            if key in wanted and key not in found:
                found[key] = {c: r.get(c) for c in columns}
        return found

    def update_by_key(
        self, table: str, key_field: str, key: str, values: Record, digits_only: bool = False
    ) -> UpdateResult:
        self._check_available()
        self.update_calls += 1
        if key_field in values:
            return UpdateResult(error=f'cannot update key field "{key_field}"')
        updated = 0
        for stored, r in self._matching(table, key_field, digits_only):
            if stored == str(key):
                r.update(values)
                updated += 1
        return UpdateResult(updated_rows=updated)

    def insert_many(self, table: str, rows: Sequence[Record]) -> InsertResult:
        self._check_available()
        self.insert_calls += 1
        key_field = self.unique_keys.get(table)
        if key_field is not None:
            seen = {
                str(r.get(key_field))
                for r in self.tables.get(table, [])
                if r.get(key_field) is not None
            }
            for r in rows:
                if r.get(key_field) is None:
                    continue
                key = str(r.get(key_field))
                if key in seen:
                    return InsertResult(
                        error=f'duplicate key value violates unique constraint on "{key_field}": {key}'
                    )
                seen.add(key)
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)
        return InsertResult(inserted_rows=len(rows))
