"""Unit test fixtures: an in-memory persistence gateway."""

from __future__ import annotations

from typing import Any

import pytest


class FakeGateway:
    """Records every call; upsert keeps last-write-wins state keyed by entity_id."""

    def __init__(self, existing: dict[Any, dict[str, Any]] | None = None) -> None:
        self.table_rows: dict[Any, dict[str, Any]] = dict(existing or {})
        self.insert_calls: list[tuple[str, list[dict[str, Any]], list[str]]] = []
        self.delete_calls: list[tuple[str, str, list[Any]]] = []
        self.fail_delete: Exception | None = None
        self.fail_insert: Exception | None = None

    def insert_on_duplicate(self, table, rows, columns):
        self.insert_calls.append((table, list(rows), list(columns)))
        if self.fail_insert is not None:
            raise self.fail_insert
        for row in rows:
            self.table_rows[row.get("entity_id")] = {c: row.get(c) for c in columns}
        return len(rows)

    def delete(self, table, column, ids):
        ids = list(ids)
        self.delete_calls.append((table, column, ids))
        if self.fail_delete is not None:
            raise self.fail_delete
        count = 0
        for i in ids:
            if i in self.table_rows:
                del self.table_rows[i]
                count += 1
        return count


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
