"""url_rewrite_import.gateway

Persistence gateway for the importer: bulk upsert and delete-by-id against a
single table.

The upsert honours every unique key of the table, not only the primary key:

  keyed rows    if another row already holds the row's unique key
                (request_path, store_id) and the incoming id is free, that
                row is re-keyed to the incoming id; the row is then written
                with ON CONFLICT (entity_id) DO UPDATE
  keyless rows  ON CONFLICT (request_path, store_id) DO UPDATE, otherwise
                inserted with a generated id

A keyed row whose id and unique key belong to two different existing rows
cannot be reconciled and fails with UniqueViolation.

Each call runs inside its own `conn.transaction()` block: at top level that
commits per call (each bunch commits independently); inside an outer
transaction (dry run) it becomes a SAVEPOINT, so a failed call rolls back only
itself and leaves the connection usable.

Faults are psycopg.Error and are not caught here.
"""

from __future__ import annotations

import logging
from typing import Any, Hashable, Iterable, Protocol, Sequence

import psycopg
from psycopg import sql

log = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    def insert_on_duplicate(
        self,
        table: str,
        rows: Sequence[dict[str, Any]],
        columns: Sequence[str],
    ) -> int: ...

    def delete(self, table: str, column: str, ids: Iterable[Hashable]) -> int: ...


def _key_value(value: Any) -> Any:
    """Digit strings from CSV sources become ints so they match integer keys."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


class PsycopgGateway:
    """PostgreSQL implementation using INSERT ... ON CONFLICT ... DO UPDATE.

    unique_columns names the table's secondary unique key; leave it empty for
    tables keyed by key_column alone.
    """

    def __init__(
        self,
        conn: psycopg.Connection,
        key_column: str = "entity_id",
        unique_columns: Sequence[str] = (),
    ) -> None:
        self.conn = conn
        self.key_column = key_column
        self.unique_columns = tuple(unique_columns)

    def _upsert_statement(
        self,
        table: str,
        columns: Sequence[str],
        conflict_columns: Sequence[str],
    ) -> sql.Composed:
        stmt = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals})").format(
            table=sql.Identifier(table),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        if not conflict_columns or not set(conflict_columns) <= set(columns):
            return stmt
        target = sql.SQL(", ").join(sql.Identifier(c) for c in conflict_columns)
        update_cols = [c for c in columns if c not in conflict_columns]
        if not update_cols:
            return stmt + sql.SQL(" ON CONFLICT ({target}) DO NOTHING").format(target=target)
        return stmt + sql.SQL(" ON CONFLICT ({target}) DO UPDATE SET {sets}").format(
            target=target,
            sets=sql.SQL(", ").join(
                sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c))
                for c in update_cols
            ),
        )

    def _rekey_statement(self, table: str) -> sql.Composed:
        # Moves the row holding the incoming unique key onto the incoming id,
        # unless that id is already taken.
        return sql.SQL(
            "UPDATE {table} SET {key} = %s WHERE {match} AND {key} <> %s"
            " AND NOT EXISTS (SELECT 1 FROM {table} WHERE {key} = %s)"
        ).format(
            table=sql.Identifier(table),
            key=sql.Identifier(self.key_column),
            match=sql.SQL(" AND ").join(
                sql.SQL("{col} = %s").format(col=sql.Identifier(c))
                for c in self.unique_columns
            ),
        )

    def _rekeys(self, columns: Sequence[str]) -> bool:
        return bool(self.unique_columns) and set(self.unique_columns) <= set(columns)

    def insert_on_duplicate(
        self,
        table: str,
        rows: Sequence[dict[str, Any]],
        columns: Sequence[str],
    ) -> int:
        """Upsert rows; returns the number of rows inserted or updated.

        Rows are sent one statement per row, in order, so a key submitted
        twice resolves to the last submission. Rows without a key value are
        inserted without the key column and get a generated id.
        """
        if not rows:
            return 0
        keyed_cols = list(columns)
        keyless_cols = [c for c in columns if c != self.key_column]
        keyed_rows = [r for r in rows if r.get(self.key_column) is not None]
        keyless = [
            tuple(r.get(c) for c in keyless_cols)
            for r in rows
            if r.get(self.key_column) is None
        ]
        affected = 0
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                if keyed_rows:
                    upsert = self._upsert_statement(table, keyed_cols, (self.key_column,))
                    rekey = self._rekey_statement(table) if self._rekeys(keyed_cols) else None
                    for r in keyed_rows:
                        key = _key_value(r.get(self.key_column))
                        if rekey is not None:
                            cur.execute(
                                rekey,
                                (key, *(r.get(c) for c in self.unique_columns), key, key),
                            )
                        cur.execute(
                            upsert,
                            tuple(key if c == self.key_column else r.get(c) for c in keyed_cols),
                        )
                        affected += max(cur.rowcount, 0)
                if keyless:
                    cur.executemany(
                        self._upsert_statement(table, keyless_cols, self.unique_columns),
                        keyless,
                    )
                    affected += max(cur.rowcount, 0)
        log.debug("Upserted %s row(s) into %s", affected, table)
        return affected

    def delete(self, table: str, column: str, ids: Iterable[Hashable]) -> int:
        """DELETE FROM table WHERE column IN (ids); returns affected rows."""
        values = [_key_value(v) for v in ids]
        stmt = sql.SQL("DELETE FROM {table} WHERE {col} = ANY(%s)").format(
            table=sql.Identifier(table),
            col=sql.Identifier(column),
        )
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                cur.execute(stmt, (values,))
                affected = cur.rowcount
        log.debug("Deleted %s row(s) from %s", affected, table)
        return affected
