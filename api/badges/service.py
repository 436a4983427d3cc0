"""
Badge aggregate orchestration.

The procedures here keep a badge's child collections in line with a desired
state supplied by the caller. They span several tables and run without a
cross-table transaction:

- set_criteria:   upsert desired criteria (bounded fan-out) -> delete stale
                  criteria -> re-read the badge
- set_categories: delete all categories -> write desired values in order
- set_tags:       same as categories, accepting {"value": ...} items
- delete_badge:   delete criteria -> categories -> tags -> badge (fail-fast)

A failure between steps leaves the aggregate with fewer child rows than
asked for until the call is retried; nothing is rolled back. Failures after
an earlier step committed surface as PartialFailureError.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from core import settings
from core.concurrency import run_bounded
from core.errors import DataError, PartialFailureError, ValidationError
from core.store import not_any
from core.table import PutResult, Table, WriteResult
from core.validation import FieldError

from .tables import badges, categories, criteria, tags

logger = logging.getLogger(__name__)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _unique_values(values: Sequence[Any]) -> list[Any]:
    """
    Drop falsy values and repeats; the first occurrence keeps its position.
    """
    kept: list[Any] = []
    for value in values:
        if not value or value in kept:
            continue
        kept.append(value)
    return kept


async def get_badge(badge_id: int) -> dict[str, Any]:
    return await badges.get_one({"id": badge_id}, relationships=True)


async def get_badge_by_slug(slug: str) -> dict[str, Any]:
    return await badges.get_one({"slug": slug}, relationships=True)


async def list_badges(*, archived: bool | None = None) -> list[dict[str, Any]]:
    where = {} if archived is None else {"archived": archived}
    return await badges.get_all(where, relationships=True)


async def save_badge(payload: Mapping[str, Any]) -> dict[str, Any]:
    result = await badges.put(payload)
    logger.info("badge_saved badge_id=%s created=%s", result.row_id, result.created)
    return await get_badge(result.row_id)


async def set_criteria(
    badge_id: int,
    desired: Sequence[Mapping[str, Any]],
    *,
    concurrency: int | None = None,
) -> dict[str, Any]:
    """
    Make the badge's criteria exactly the rows produced from `desired`.

    Items carrying an `id` update that criterion of this badge (NotFoundError
    when there is none); the others are inserted.
    Every item is validated before anything is written. Upserts run with at
    most `concurrency` store calls in flight (BADGE_WRITE_CONCURRENCY when
    omitted) and all finish before stale criteria are deleted.

    Returns the badge with relationships resolved.
    """
    limit = concurrency or settings.write_concurrency()
    rows = [{**dict(item), "badgeId": badge_id} for item in _as_list(desired)]

    errors: list[FieldError] = []
    for index, row in enumerate(rows):
        for error in criteria.validate(row) or []:
            errors.append(FieldError(f"criteria[{index}].{error.field}", error.rule, error.message))
    if errors:
        raise ValidationError(errors, table=criteria.name)

    committed: list[Any] = []

    async def upsert(row: dict[str, Any]) -> PutResult:
        result = await criteria.put(row, scope={"badgeId": badge_id})
        committed.append(result.row_id)
        return result

    try:
        results = await run_bounded(rows, upsert, limit=limit)
    except DataError as exc:
        if not committed:
            raise
        raise PartialFailureError(
            "upsert_criteria",
            f"{len(committed)} of {len(rows)} criteria were written before: {exc}",
            committed=committed,
        ) from exc

    kept_ids: list[Any] = []
    for result in results:
        if result.row_id not in kept_ids:
            kept_ids.append(result.row_id)

    stale: dict[str, Any] = {"badgeId": badge_id}
    if kept_ids:
        stale["id"] = not_any(kept_ids)
    try:
        removed = await criteria.delete(stale)
    except DataError as exc:
        if not kept_ids:
            raise
        raise PartialFailureError(
            "delete_stale_criteria",
            f"criteria were written but stale ones remain: {exc}",
            committed=kept_ids,
        ) from exc

    logger.info(
        "criteria_set badge_id=%s kept=%s removed=%s concurrency=%s",
        badge_id,
        len(kept_ids),
        removed,
        limit,
    )
    return await get_badge(badge_id)


async def _replace_values(table: Table, badge_id: int, values: Sequence[Any]) -> list[dict[str, Any]]:
    removed = await table.delete({"badgeId": badge_id})

    wanted = _unique_values(values)
    results: list[WriteResult] = await table.write_many(
        {"badgeId": badge_id, "value": value} for value in wanted
    )
    failed = [r for r in results if not r.ok]
    if failed:
        logger.warning(
            "values_partially_set table=%s badge_id=%s removed=%s written=%s failed=%s",
            table.name,
            badge_id,
            removed,
            len(results) - len(failed),
            len(failed),
        )
        raise PartialFailureError(
            f"write_{table.name}",
            f"{len(failed)} of {len(results)} {table.name} could not be written: {failed[0].error}",
            committed=[r.row["id"] for r in results if r.ok and r.row is not None],
            results=results,
        ) from failed[0].error

    logger.info(
        "values_set table=%s badge_id=%s removed=%s written=%s",
        table.name,
        badge_id,
        removed,
        len(results),
    )
    return [r.row for r in results if r.row is not None]


async def set_categories(badge_id: int, desired: Any) -> list[dict[str, Any]]:
    """
    Replace the badge's categories with the non-empty, distinct values of
    `desired` (a list or a single value), keeping input order.
    """
    return await _replace_values(categories, badge_id, _as_list(desired))


async def set_tags(badge_id: int, desired: Any) -> list[dict[str, Any]]:
    """
    Like set_categories; items may also be {"value": ...} mappings.
    """
    values = [
        item.get("value") if isinstance(item, Mapping) else item
        for item in _as_list(desired)
    ]
    return await _replace_values(tags, badge_id, values)


async def delete_badge(badge_id: int) -> dict[str, int]:
    """
    Delete the badge's criteria, categories and tags, then the badge.

    Stops at the first failing step; the badge row is never deleted while
    child rows could not be removed.
    """
    steps: list[tuple[str, Table, dict[str, Any]]] = [
        ("criteria", criteria, {"badgeId": badge_id}),
        ("categories", categories, {"badgeId": badge_id}),
        ("tags", tags, {"badgeId": badge_id}),
        ("badge", badges, {"id": badge_id}),
    ]
    counts: dict[str, int] = {}
    for step, table, where in steps:
        try:
            counts[step] = await table.delete(where)
        except DataError as exc:
            if not counts:
                raise
            raise PartialFailureError(
                f"delete_{step}",
                f"badge {badge_id} was partly deleted: {exc}",
            ) from exc

    logger.info("badge_deleted badge_id=%s counts=%s", badge_id, counts)
    return counts
