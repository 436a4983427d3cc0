import asyncio
from collections import defaultdict
from datetime import datetime, timezone

import pytest

from badges import tables  # noqa: F401  (registers the badge tables)
from core.errors import StoreError
from core.store import row_matches, set_store

DEFAULTS = {
    "badges": {"archived": False, "unique": False},
    "criteria": {"required": False},
}


class MemoryStore:
    """
    In-memory stand-in for PostgresStore.

    Every call yields to the event loop once, so concurrent callers overlap
    the way they would on a real connection pool. `max_in_flight` records the
    highest number of overlapping calls; `fail` can be set to a predicate
    `(op, table, values) -> bool` to make matching calls raise StoreError.

    Ids come from a per-table sequence that, like a Postgres serial column,
    does not move when a row is seeded with an explicit id.
    """

    def __init__(self):
        self.rows = defaultdict(dict)
        self.next_id = defaultdict(int)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.fail = None

    def seed(self, table, row):
        values = {**DEFAULTS.get(table, {}), **row}
        if values.get("id") is None:
            self.next_id[table] += 1
            values["id"] = self.next_id[table]
        if table == "badges":
            values.setdefault("created", datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.rows[table][values["id"]] = values
        return dict(values)

    def all(self, table, **where):
        return [dict(r) for r in sorted(self.rows[table].values(), key=lambda r: r["id"]) if row_matches(r, where)]

    def mutations(self):
        return [call for call in self.calls if call[0] != "select"]

    async def _io(self, op, table, values=None):
        self.calls.append((op, table))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.fail is not None and self.fail(op, table, values):
                raise StoreError(f"injected {op} failure on {table}")
        finally:
            self.in_flight -= 1

    async def select(self, table, where, *, limit=None, order_by="id"):
        await self._io("select", table, where)
        rows = [dict(r) for r in self.rows[table].values() if row_matches(r, where)]
        rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)))
        return rows[:limit] if limit is not None else rows

    async def insert(self, table, values):
        await self._io("insert", table, values)
        row = dict(values)
        if row.get("id") is None:
            self.next_id[table] += 1
            row["id"] = self.next_id[table]
        if row["id"] in self.rows[table]:
            raise StoreError(f"duplicate key {row['id']} in {table}")
        return self.seed(table, row)

    async def update(self, table, row_id, values, *, where=None):
        await self._io("update", table, values)
        row = self.rows[table].get(row_id)
        if row is None or not row_matches(row, where):
            return None
        row.update(values)
        return dict(row)

    async def delete(self, table, where):
        await self._io("delete", table, where)
        doomed = [row_id for row_id, row in self.rows[table].items() if row_matches(row, where)]
        for row_id in doomed:
            del self.rows[table][row_id]
        return len(doomed)


@pytest.fixture
def store():
    memory = MemoryStore()
    previous = set_store(memory)
    yield memory
    set_store(previous)


@pytest.fixture
def badge_payload():
    return {
        "slug": "first-aid",
        "name": "First Aid",
        "strapline": "Knows the basics",
        "earnerDescription": "Completed the first aid course.",
        "consumerDescription": "This person can handle common emergencies.",
        "criteriaUrl": "https://example.org/badges/first-aid/criteria",
        "unique": "0",
    }


@pytest.fixture
def badge(store, badge_payload):
    return store.seed("badges", {**badge_payload, "unique": False})
