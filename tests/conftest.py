from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from watch_core import RemoteError, WatchService


def _matches(row: dict, filters) -> bool:
    for column, op, value in filters:
        current = row.get(column)
        if op == "eq":
            if str(current) != str(value):
                return False
        elif op == "ilike":
            pattern = "".join(".*" if ch == "%" else re.escape(ch) for ch in str(value))
            if not re.fullmatch(pattern, str(current), flags=re.IGNORECASE | re.DOTALL):
                return False
        else:
            raise RemoteError(f"unsupported operator {op}")
    return True


class FakeStore:
    """In-memory WatchStore that records every call."""

    def __init__(self):
        self.rows: list[dict] = []
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self._next_id = 1
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RemoteError(f"{name} exploded")

    def seed(self, title: str, watched: bool = False) -> dict:
        row = {
            "id": self._next_id,
            "title": title,
            "watched": watched,
            "created_at": self._clock.isoformat(),
        }
        self._next_id += 1
        self._clock += timedelta(minutes=1)
        self.rows.append(row)
        return row

    def select(self, columns, filters=(), order=None, limit=None):
        self._call("select")
        rows = [r for r in self.rows if _matches(r, filters)]
        if order:
            column, descending = order
            rows.sort(key=lambda r: r[column], reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return [{c: r[c] for c in columns} for r in rows]

    def maybe_single(self, columns, filters):
        self._call("maybe_single")
        rows = [r for r in self.rows if _matches(r, filters)]
        if len(rows) > 1:
            raise RemoteError("multiple rows")
        return {c: rows[0][c] for c in columns} if rows else None

    def insert(self, row):
        self._call("insert")
        stored = self.seed(row["title"], row.get("watched", False))
        return dict(stored)

    def update(self, values, filters):
        self._call("update")
        for r in self.rows:
            if _matches(r, filters):
                r.update(values)

    def delete(self, filters):
        self._call("delete")
        self.rows = [r for r in self.rows if not _matches(r, filters)]


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def service(store):
    return WatchService(store)
