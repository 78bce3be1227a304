from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

from erp_import.db.store import InsertResult, Record, StoreError, StoreUnavailableError, UpdateResult
from erp_import.models.config_models import DatabaseConfig

"""PostgreSQL implementation of the record store.

Inserts go through psycopg2.extras.execute_values, one transaction per
insert_many call: the batch is committed as a whole or rolled back as a whole.
Connection-level failures (OperationalError, InterfaceError) are raised as
StoreUnavailableError; any other database error is rolled back and returned as
InsertResult.error so the loader can record the batch and move on. Keyed
updates follow the same rules and report through UpdateResult.

Document keys (digits_only) are compared as
regexp_replace(key::text, '\\D', '', 'g'), the stored value reduced to digits.

Table and column names come from the schema registry and the config file.
They are quoted, never interpolated raw.
"""

__all__ = [
    "PostgresStore",
    "connect",
    "quote_ident",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)

_UNREACHABLE = (psycopg2.OperationalError, psycopg2.InterfaceError)


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string, environment first.

    Order: DATABASE_URL / PGDSN, then the config dsn, then individual
    PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE falling back to the
    config fields and libpq defaults.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig):
    """Open a connection for one job and close it afterwards.

    Raises:
        StoreUnavailableError: the server cannot be reached
    """
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise StoreUnavailableError(f"cannot connect to PostgreSQL: {e}") from e
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()


class PostgresStore:
    def __init__(self, connection: Any, page_size: int = 1000) -> None:
        self.connection = connection
        self.page_size = page_size

    def _key_expr(self, key_field: str, digits_only: bool) -> str:
        expr = f"{quote_ident(key_field)}::text"
        if digits_only:
            return f"regexp_replace({expr}, '\\D', '', 'g')"
        return expr

    def _read(self, query: str, params: tuple, what: str) -> list[tuple]:
        try:
            with self.connection.cursor() as cur:
                cur.execute(query, params)
                fetched = cur.fetchall()
            self.connection.rollback()  # read-only; end the implicit transaction
        except _UNREACHABLE as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.Error as e:
            self.connection.rollback()
            raise StoreError(f"{what} failed: {e}") from e
        return fetched

    def exists_by_key(
        self, table: str, key_field: str, values: Sequence[str], digits_only: bool = False
    ) -> set[str]:
        if not values:
            return set()
        key = self._key_expr(key_field, digits_only)
        query = f"SELECT {key} FROM {quote_ident(table)} WHERE {key} = ANY(%s)"
        fetched = self._read(query, (list(values),), f"existence check on {table}.{key_field}")
        return {str(r[0]).strip() for r in fetched if r[0] is not None}

    def fetch_by_key(
        self,
        table: str,
        key_field: str,
        values: Sequence[str],
        columns: Sequence[str],
        digits_only: bool = False,
    ) -> dict[str, dict[str, Any]]:
        if not values:
            return {}
        key = self._key_expr(key_field, digits_only)
        cols_sql = ",".join(quote_ident(c) for c in columns)
        query = f"SELECT {key},{cols_sql} FROM {quote_ident(table)} WHERE {key} = ANY(%s)"
        fetched = self._read(query, (list(values),), f"read of {table} by {key_field}")
        found: dict[str, dict[str, Any]] = {}
        for r in fetched:
            if r[0] is not None:
                found.setdefault(str(r[0]).strip(), dict(zip(columns, r[1:])))
        return found

    def update_by_key(
        self, table: str, key_field: str, key: str, values: Record, digits_only: bool = False
    ) -> UpdateResult:
        if not values:
            return UpdateResult(updated_rows=0)
        columns = list(values)
        set_sql = ",".join(f"{quote_ident(c)} = %s" for c in columns)
        query = (
            f"UPDATE {quote_ident(table)} SET {set_sql} "
            f"WHERE {self._key_expr(key_field, digits_only)} = %s"
        )
        try:
            with self.connection.cursor() as cur:
                cur.execute(query, (*[values[c] for c in columns], str(key)))
                updated = cur.rowcount
            self.connection.commit()
        except _UNREACHABLE as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.Error as e:
            self.connection.rollback()
            message = (e.pgerror or str(e)).strip()
            logger.debug("update of %s rolled back: %s", table, message)
            return UpdateResult(error=message)
        return UpdateResult(updated_rows=updated)

    def insert_many(self, table: str, rows: Sequence[Record]) -> InsertResult:
        if not rows:
            return InsertResult(inserted_rows=0)

        # Union of keys in first-seen order; rows missing a column insert NULL
        columns: list[str] = []
        for r in rows:
            for c in r:
                if c not in columns:
                    columns.append(c)
        cols_sql = ",".join(quote_ident(c) for c in columns)
        query = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s"
        values = [tuple(r.get(c) for c in columns) for r in rows]

        try:
            with self.connection.cursor() as cur:
                execute_values(cur, query, values, page_size=self.page_size)
            self.connection.commit()
        except _UNREACHABLE as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.Error as e:
            self.connection.rollback()
            message = (e.pgerror or str(e)).strip()
            logger.debug("insert into %s rolled back: %s", table, message)
            return InsertResult(error=message)
        return InsertResult(inserted_rows=len(rows))
