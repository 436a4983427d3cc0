"""
Generic relational table over a `core.store` backend.

A table is declared once with typed field descriptors, relationship
descriptors and an optional row validator:

    images = Table("images", fields=[Field("id", int), Field("slug"), Field("url")])
    badges = Table(
        "badges",
        fields=[Field("id", int), Field("imageId", int), ...],
        relationships={"image": HasOne(local="imageId", table="images", optional=True)},
        validator=make_validator({...}),
    )

Tables register themselves by name, so relationship targets are looked up
when a row is resolved and may be declared in any order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from .errors import NotFoundError, StoreError, ValidationError
from .store import Where, get_store, normalize_where
from .validation import FieldError, Validator

logger = logging.getLogger(__name__)

_tables: dict[str, "Table"] = {}


def lookup_table(name: str) -> "Table":
    try:
        return _tables[name]
    except KeyError:
        raise KeyError(f"Unknown table: {name}") from None


@dataclass(frozen=True)
class Field:
    name: str
    type: type = str


@dataclass(frozen=True)
class HasOne:
    local: str
    table: str
    key: str = "id"
    optional: bool = False


@dataclass(frozen=True)
class HasMany:
    local: str
    table: str
    key: str
    order_by: str = "id"


Relationship = Union[HasOne, HasMany]


@dataclass(frozen=True)
class PutResult:
    row_id: Any
    row: dict[str, Any]
    created: bool


@dataclass(frozen=True)
class WriteResult:
    index: int
    row: dict[str, Any] | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _coerce(value: Any, kind: type) -> Any:
    if value is None:
        return None
    if kind is bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true")
    if kind is int:
        if isinstance(value, int):
            return int(value)
        return int(str(value).strip())
    if kind is str:
        return value if isinstance(value, str) else str(value)
    return value


class Table:
    def __init__(
        self,
        name: str,
        *,
        fields: Sequence[Field],
        relationships: Mapping[str, Relationship] | None = None,
        validator: Validator | None = None,
    ) -> None:
        self.name = name
        self.fields = {field.name: field for field in fields}
        self.relationships = dict(relationships or {})
        self.validator = validator

        for rel_name, rel in self.relationships.items():
            if rel.local not in self.fields:
                raise ValueError(f"{name}.{rel_name}: unknown local field {rel.local!r}")
        _tables[name] = self

    def __repr__(self) -> str:
        return f"Table({self.name!r})"

    def _check_fields(self, names: Iterable[str]) -> None:
        unknown = [n for n in names if n not in self.fields]
        if unknown:
            raise ValueError(f"Unknown {self.name} field(s): {', '.join(unknown)}")

    def _check_where(self, where: Where | None) -> None:
        self._check_fields(field for field, _ in normalize_where(where))

    def validate(self, row: Mapping[str, Any]) -> list[FieldError] | None:
        if self.validator is None:
            return None
        return self.validator(row)

    def coerce(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """
        Keep declared fields only and convert them to their declared types.
        """
        values: dict[str, Any] = {}
        errors: list[FieldError] = []
        for name, value in row.items():
            field = self.fields.get(name)
            if field is None:
                continue
            try:
                values[name] = _coerce(value, field.type)
            except (TypeError, ValueError):
                errors.append(FieldError(name, "type", f"must be {field.type.__name__}"))
        if errors:
            raise ValidationError(errors, table=self.name)
        return values

    async def find_one(
        self, where: Where, *, relationships: bool = False
    ) -> dict[str, Any] | None:
        self._check_where(where)
        rows = await get_store().select(self.name, where, limit=1)
        if not rows:
            return None
        row = dict(rows[0])
        if relationships:
            row = await self._resolve(row)
        return row

    async def get_one(self, where: Where, *, relationships: bool = False) -> dict[str, Any]:
        row = await self.find_one(where, relationships=relationships)
        if row is None:
            raise NotFoundError(self.name, where)
        return row

    async def get_all(
        self,
        where: Where | None = None,
        *,
        relationships: bool = False,
        order_by: str = "id",
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self._check_where(where)
        self._check_fields([order_by])
        rows = await get_store().select(self.name, where, limit=limit, order_by=order_by)
        if not relationships:
            return [dict(row) for row in rows]
        return [await self._resolve(dict(row)) for row in rows]

    async def put(self, row: Mapping[str, Any], *, scope: Where | None = None) -> PutResult:
        """
        Validate, then update by id (when given) or insert.

        Ids are assigned by the store: an id that matches no row raises
        NotFoundError instead of being inserted. `scope` narrows which rows an
        update may touch, e.g. {"badgeId": 7} keeps a criterion from moving
        to another badge.
        """
        errors = self.validate(row)
        if errors:
            raise ValidationError(errors, table=self.name)

        values = self.coerce(row)
        store = get_store()
        row_id = values.pop("id", None)
        if row_id is not None:
            self._check_where(scope)
            updated = await store.update(self.name, row_id, values, where=scope)
            if updated is None:
                raise NotFoundError(self.name, {**(scope or {}), "id": row_id})
            return PutResult(row_id=updated["id"], row=dict(updated), created=False)

        # Unset columns fall back to the store's defaults on insert.
        values = {k: v for k, v in values.items() if v is not None}
        inserted = await store.insert(self.name, values)
        return PutResult(row_id=inserted["id"], row=dict(inserted), created=True)

    async def delete(self, where: Where) -> int:
        """
        Delete the rows matching `where`; returns how many went.

        An empty filter is refused rather than clearing the table.
        """
        if not normalize_where(where):
            raise ValueError(f"Refusing to delete from {self.name} without a filter.")
        self._check_where(where)
        return await get_store().delete(self.name, where)

    async def write_many(self, rows: Iterable[Mapping[str, Any]]) -> list[WriteResult]:
        """
        Persist rows one by one, in order.

        Every item is validated and written independently; a failing item is
        reported in its result and does not stop the items after it.
        """
        results: list[WriteResult] = []
        for index, row in enumerate(rows):
            try:
                put = await self.put(row)
            except (ValidationError, StoreError) as exc:
                logger.warning(
                    "batch_item_failed table=%s index=%s error=%s", self.name, index, exc
                )
                results.append(WriteResult(index=index, error=exc))
                continue
            results.append(WriteResult(index=index, row=put.row))
        return results

    async def _resolve(self, row: dict[str, Any]) -> dict[str, Any]:
        for rel_name, rel in self.relationships.items():
            target = lookup_table(rel.table)
            local_value = row.get(rel.local)

            if isinstance(rel, HasMany):
                row[rel_name] = await target.get_all({rel.key: local_value}, order_by=rel.order_by)
                continue

            if local_value is None:
                if not rel.optional:
                    raise NotFoundError(rel.table, {rel.key: None})
                continue

            related = await target.find_one({rel.key: local_value})
            if related is None:
                if not rel.optional:
                    raise NotFoundError(rel.table, {rel.key: local_value})
                continue
            row[rel_name] = related
        return row
