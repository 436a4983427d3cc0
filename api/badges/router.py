"""
Badge API endpoints.

Thin glue over `badges.service`: error kinds raised by the data layer are
mapped to status codes here and nowhere else.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query, Request, status

from core.errors import DataError, NotFoundError, ValidationError

from . import responses, schemas, service
from .tables import badges as badges_table

router = APIRouter()


def _http_error(exc: DataError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid badge data.", "errors": exc.to_list()},
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{exc.table} not found.")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _badge_out(request: Request, row: dict) -> dict:
    return responses.badge_response(row, base_url=str(request.base_url))


@router.get("/badges")
async def list_badges(request: Request, archived: bool | None = Query(default=None)) -> dict:
    try:
        rows = await service.list_badges(archived=archived)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"badges": [_badge_out(request, row) for row in rows], "count": len(rows)}


@router.get("/badges/{badge_id}")
async def get_badge(badge_id: int, request: Request) -> dict:
    try:
        row = await service.get_badge(badge_id)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"badge": _badge_out(request, row)}


@router.post("/badges", status_code=status.HTTP_201_CREATED)
async def create_badge(request: Request, payload: dict[str, Any] = Body(...)) -> dict:
    payload = {k: v for k, v in payload.items() if k != "id"}
    try:
        row = await service.save_badge(payload)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"badge": _badge_out(request, row)}


@router.put("/badges/{badge_id}")
async def update_badge(badge_id: int, request: Request, payload: dict[str, Any] = Body(...)) -> dict:
    try:
        current = await service.get_badge(badge_id)
        merged = {name: current.get(name) for name in badges_table.fields}
        merged.update(payload)
        merged["id"] = badge_id
        row = await service.save_badge(merged)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"badge": _badge_out(request, row)}


@router.put("/badges/{badge_id}/criteria")
async def set_criteria(badge_id: int, body: schemas.SetCriteriaRequest, request: Request) -> dict:
    try:
        await service.get_badge(badge_id)
        row = await service.set_criteria(badge_id, body.criteria)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"badge": _badge_out(request, row)}


@router.put("/badges/{badge_id}/categories")
async def set_categories(badge_id: int, body: schemas.SetCategoriesRequest, request: Request) -> dict:
    try:
        await service.get_badge(badge_id)
        await service.set_categories(badge_id, body.categories)
        row = await service.get_badge(badge_id)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"badge": _badge_out(request, row)}


@router.put("/badges/{badge_id}/tags")
async def set_tags(badge_id: int, body: schemas.SetTagsRequest, request: Request) -> dict:
    try:
        await service.get_badge(badge_id)
        await service.set_tags(badge_id, body.values())
        row = await service.get_badge(badge_id)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"badge": _badge_out(request, row)}


@router.delete("/badges/{badge_id}")
async def delete_badge(badge_id: int) -> dict:
    try:
        await service.get_badge(badge_id)
        counts = await service.delete_badge(badge_id)
    except DataError as exc:
        raise _http_error(exc) from exc
    return {"ok": True, "badge_id": badge_id, "deleted": counts}
