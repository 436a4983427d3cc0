import pytest

from core import db
from core.errors import StoreError
from core.store import (
    Comparison,
    PostgresStore,
    compile_where,
    normalize_where,
    not_any,
    quote_ident,
    row_matches,
)


def test_compile_where_equality_and_null():
    sql, args = compile_where({"badgeId": 7, "imageId": None})

    assert sql == '"badgeId" = $1 AND "imageId" IS NULL'
    assert args == [7]


def test_compile_where_exclusion_is_a_conjunction():
    sql, args = compile_where({"badgeId": 7, "id": not_any([3, 4])})

    assert sql == '"badgeId" = $1 AND "id" != $2 AND "id" != $3'
    assert args == [7, 3, 4]


def test_compile_where_empty_matches_everything():
    assert compile_where({}) == ("TRUE", [])
    assert compile_where(None) == ("TRUE", [])


def test_compile_where_numbers_from_start():
    sql, args = compile_where({"id": Comparison(">=", 10)}, start=3)

    assert sql == '"id" >= $3'
    assert args == [10]


def test_not_null_comparison():
    sql, args = compile_where({"imageId": Comparison("!=", None)})

    assert sql == '"imageId" IS NOT NULL'
    assert args == []


def test_unsupported_operator_is_rejected():
    with pytest.raises(ValueError):
        Comparison("LIKE", "a%")


def test_filter_lists_must_hold_comparisons():
    with pytest.raises(ValueError):
        normalize_where({"id": [1, 2]})


def test_row_matches_conjoins_every_comparison():
    where = {"badgeId": 1, "id": not_any([1, 2])}

    assert row_matches({"id": 3, "badgeId": 1}, where)
    assert not row_matches({"id": 1, "badgeId": 1}, where)
    assert not row_matches({"id": 2, "badgeId": 1}, where)
    assert not row_matches({"id": 3, "badgeId": 2}, where)


def test_quote_ident_handles_reserved_words_and_quotes():
    assert quote_ident("limit") == '"limit"'
    assert quote_ident('we"ird') == '"we""ird"'


@pytest.mark.asyncio
async def test_postgres_delete_runs_parameterized_sql(monkeypatch):
    seen = {}

    async def fake_execute(sql, *args):
        seen["sql"] = sql
        seen["args"] = args
        return "DELETE 2"

    monkeypatch.setattr(db, "execute", fake_execute)

    removed = await PostgresStore().delete("criteria", {"badgeId": 5, "id": not_any([9])})

    assert removed == 2
    assert seen["sql"] == 'DELETE FROM "criteria" WHERE "badgeId" = $1 AND "id" != $2'
    assert seen["args"] == (5, 9)


@pytest.mark.asyncio
async def test_postgres_insert_quotes_columns(monkeypatch):
    seen = {}

    async def fake_fetch_one(sql, *args):
        seen["sql"] = sql
        seen["args"] = args
        return {"id": 1, "limit": 3, "unique": True}

    monkeypatch.setattr(db, "fetch_one", fake_fetch_one)

    row = await PostgresStore().insert("badges", {"limit": 3, "unique": True})

    assert row["id"] == 1
    assert seen["sql"] == 'INSERT INTO "badges" ("limit", "unique") VALUES ($1, $2) RETURNING *'
    assert seen["args"] == (3, True)


@pytest.mark.asyncio
async def test_postgres_update_targets_id(monkeypatch):
    seen = {}

    async def fake_fetch_one(sql, *args):
        seen["sql"] = sql
        seen["args"] = args
        return None

    monkeypatch.setattr(db, "fetch_one", fake_fetch_one)

    row = await PostgresStore().update("badges", 4, {"name": "New"})

    assert row is None
    assert seen["sql"] == 'UPDATE "badges" SET "name" = $1 WHERE "id" = $2 RETURNING *'
    assert seen["args"] == ("New", 4)


@pytest.mark.asyncio
async def test_postgres_update_within_scope(monkeypatch):
    seen = {}

    async def fake_fetch_one(sql, *args):
        seen["sql"] = sql
        seen["args"] = args
        return {"id": 4, "badgeId": 7, "description": "d"}

    monkeypatch.setattr(db, "fetch_one", fake_fetch_one)

    await PostgresStore().update("criteria", 4, {"description": "d"}, where={"badgeId": 7})

    assert seen["sql"] == (
        'UPDATE "criteria" SET "description" = $1 '
        'WHERE "badgeId" = $2 AND "id" = $3 RETURNING *'
    )
    assert seen["args"] == ("d", 7, 4)


@pytest.mark.asyncio
async def test_postgres_select_with_limit(monkeypatch):
    seen = {}

    async def fake_fetch_all(sql, *args):
        seen["sql"] = sql
        seen["args"] = args
        return []

    monkeypatch.setattr(db, "fetch_all", fake_fetch_all)

    await PostgresStore().select("tags", {"badgeId": 1}, limit=1)

    assert seen["sql"] == 'SELECT * FROM "tags" WHERE "badgeId" = $1 ORDER BY "id" LIMIT $2'
    assert seen["args"] == (1, 1)


@pytest.mark.asyncio
async def test_postgres_driver_errors_become_store_errors(monkeypatch):
    async def broken_fetch_all(sql, *args):
        raise ConnectionResetError("connection reset by peer")

    monkeypatch.setattr(db, "fetch_all", broken_fetch_all)

    with pytest.raises(StoreError) as excinfo:
        await PostgresStore().select("badges", {"id": 1})

    assert isinstance(excinfo.value.__cause__, ConnectionResetError)


@pytest.mark.asyncio
async def test_postgres_store_requires_initialized_pool():
    with pytest.raises(RuntimeError):
        await PostgresStore().select("badges", {"id": 1})
