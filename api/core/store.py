"""
Storage backends for `core.table.Table`.

A store knows four primitives (`select`, `insert`, `update`, `delete`) over
plain dict rows. Filters ("where" mappings) are shared by all backends:

    {"badgeId": 7}                                  -> "badgeId" = 7
    {"badgeId": None}                               -> "badgeId" IS NULL
    {"id": Comparison("!=", 3)}                     -> "id" != 3
    {"badgeId": 7, "id": not_any([3, 4])}           -> "badgeId" = 7 AND "id" != 3 AND "id" != 4

Every comparison on every field is conjoined with AND, including the members
of a comparison list. `normalize_where` is the single place that flattens a
filter, so every backend gets the same semantics.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import asyncpg

from . import db
from .errors import StoreError

Where = Mapping[str, Any]

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class Comparison:
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported comparison operator: {self.op!r}")

    def matches(self, actual: Any) -> bool:
        if self.value is None:
            return (actual is None) == (self.op == "=")
        if actual is None:
            return False
        return _OPERATORS[self.op](actual, self.value)


def not_any(values: Iterable[Any]) -> list[Comparison]:
    """
    Exclusion of a known value set, as a conjunction of inequalities.
    """
    return [Comparison("!=", value) for value in values]


def normalize_where(where: Where | None) -> list[tuple[str, Comparison]]:
    pairs: list[tuple[str, Comparison]] = []
    for field, spec in (where or {}).items():
        if isinstance(spec, Comparison):
            pairs.append((field, spec))
        elif isinstance(spec, (list, tuple)):
            for item in spec:
                if not isinstance(item, Comparison):
                    raise ValueError(f"Filter list for {field!r} must contain Comparison items.")
                pairs.append((field, item))
        else:
            pairs.append((field, Comparison("=", spec)))
    return pairs


def row_matches(row: Mapping[str, Any], where: Where | None) -> bool:
    return all(cmp.matches(row.get(field)) for field, cmp in normalize_where(where))


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def compile_where(where: Where | None, *, start: int = 1) -> tuple[str, list[Any]]:
    """
    Compile a filter into a parameterized WHERE clause body.

    Returns (sql, args); placeholders are numbered from `start`.
    """
    clauses: list[str] = []
    args: list[Any] = []
    for field, cmp in normalize_where(where):
        column = quote_ident(field)
        if cmp.value is None:
            clauses.append(f"{column} IS NULL" if cmp.op == "=" else f"{column} IS NOT NULL")
            continue
        args.append(cmp.value)
        clauses.append(f"{column} {cmp.op} ${start + len(args) - 1}")
    return (" AND ".join(clauses) or "TRUE"), args


class Store(Protocol):
    async def select(
        self,
        table: str,
        where: Where | None,
        *,
        limit: int | None = None,
        order_by: str = "id",
    ) -> list[dict[str, Any]]: ...

    async def insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]: ...

    async def update(
        self,
        table: str,
        row_id: Any,
        values: Mapping[str, Any],
        *,
        where: Where | None = None,
    ) -> dict[str, Any] | None: ...

    async def delete(self, table: str, where: Where | None) -> int: ...


_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresStore:
    """
    Store backed by the shared asyncpg pool in `core.db`.
    """

    async def _run(self, call: Callable[..., Any], sql: str, *args: Any) -> Any:
        try:
            return await call(sql, *args)
        except _DRIVER_ERRORS as exc:
            raise StoreError(str(exc)) from exc

    async def select(
        self,
        table: str,
        where: Where | None,
        *,
        limit: int | None = None,
        order_by: str = "id",
    ) -> list[dict[str, Any]]:
        clause, args = compile_where(where)
        sql = f"SELECT * FROM {quote_ident(table)} WHERE {clause} ORDER BY {quote_ident(order_by)}"
        if limit is not None:
            args.append(limit)
            sql += f" LIMIT ${len(args)}"
        return await self._run(db.fetch_all, sql, *args)

    async def insert(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        if not values:
            sql = f"INSERT INTO {quote_ident(table)} DEFAULT VALUES RETURNING *"
            row = await self._run(db.fetch_one, sql)
        else:
            columns = ", ".join(quote_ident(name) for name in values)
            placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
            sql = (
                f"INSERT INTO {quote_ident(table)} ({columns}) "
                f"VALUES ({placeholders}) RETURNING *"
            )
            row = await self._run(db.fetch_one, sql, *values.values())
        if row is None:
            raise StoreError(f"Failed to insert into {table}.")
        return row

    async def update(
        self,
        table: str,
        row_id: Any,
        values: Mapping[str, Any],
        *,
        where: Where | None = None,
    ) -> dict[str, Any] | None:
        """
        Update the row with `row_id`, only if it also matches `where`.

        Returns the updated row, or None when no row qualified.
        """
        target = {**(where or {}), "id": row_id}
        if not values:
            rows = await self.select(table, target, limit=1)
            return rows[0] if rows else None
        assignments = ", ".join(
            f"{quote_ident(name)} = ${i}" for i, name in enumerate(values, start=1)
        )
        clause, args = compile_where(target, start=len(values) + 1)
        sql = f"UPDATE {quote_ident(table)} SET {assignments} WHERE {clause} RETURNING *"
        return await self._run(db.fetch_one, sql, *values.values(), *args)

    async def delete(self, table: str, where: Where | None) -> int:
        clause, args = compile_where(where)
        status = await self._run(db.execute, f"DELETE FROM {quote_ident(table)} WHERE {clause}", *args)
        # asyncpg returns the command tag, e.g. "DELETE 3".
        try:
            return int(str(status).rsplit(" ", 1)[-1])
        except ValueError:
            return 0


_store: Store = PostgresStore()


def get_store() -> Store:
    return _store


def set_store(store: Store) -> Store:
    """
    Swap the process-wide store and return the previous one.
    """
    global _store
    previous = _store
    _store = store
    return previous
