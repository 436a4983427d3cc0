"""
External JSON shapes for badge rows.

Rows come from `badges.service` with relationships resolved. Optional
one-to-one relations (image, system, issuer, program) are only emitted when
resolved to a row with an id; the key is left out otherwise. One-to-many
relations always come out as lists.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any


def _has_identity(related: Any) -> bool:
    return isinstance(related, Mapping) and related.get("id") is not None


def image_url(image: Mapping[str, Any], base_url: str | None = None) -> str:
    url = image.get("url")
    if url:
        return str(url)
    path = f"/images/{image.get('slug') or image.get('id')}"
    if not base_url:
        return path
    return base_url.rstrip("/") + path


def criterion_response(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row.get("id"),
        "description": row.get("description"),
        "required": bool(row.get("required")),
        "note": row.get("note"),
    }


def category_response(row: Mapping[str, Any]) -> str:
    return row.get("value")


def tag_response(row: Mapping[str, Any]) -> dict[str, Any]:
    return {"id": row.get("id"), "value": row.get("value")}


def system_response(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row.get("id"),
        "slug": row.get("slug"),
        "url": row.get("url"),
        "name": row.get("name"),
        "email": row.get("email"),
    }


def issuer_response(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row.get("id"),
        "slug": row.get("slug"),
        "url": row.get("url"),
        "name": row.get("name"),
        "description": row.get("description"),
        "email": row.get("email"),
    }


# Programs carry the same public fields as issuers.
program_response = issuer_response


def _many(rows: Any, project: Callable[[Mapping[str, Any]], Any]) -> list[Any]:
    return [project(row) for row in (rows or [])]


def badge_response(row: Mapping[str, Any], *, base_url: str | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": row.get("id"),
        "slug": row.get("slug"),
        "name": row.get("name"),
        "strapline": row.get("strapline"),
        "earnerDescription": row.get("earnerDescription"),
        "consumerDescription": row.get("consumerDescription"),
        "issuerUrl": row.get("issuerUrl"),
        "rubricUrl": row.get("rubricUrl"),
        "timeValue": row.get("timeValue"),
        "timeUnits": row.get("timeUnits"),
        "limit": row.get("limit"),
        "unique": row.get("unique"),
        "created": row.get("created"),
    }
    if _has_identity(row.get("image")):
        out["imageUrl"] = image_url(row["image"], base_url)
    out["type"] = row.get("type")
    out["archived"] = bool(row.get("archived"))

    for name, project in (
        ("system", system_response),
        ("issuer", issuer_response),
        ("program", program_response),
    ):
        if _has_identity(row.get(name)):
            out[name] = project(row[name])

    out["criteriaUrl"] = row.get("criteriaUrl")
    out["criteria"] = _many(row.get("criteria"), criterion_response)
    out["categories"] = _many(row.get("categories"), category_response)
    out["tags"] = _many(row.get("tags"), tag_response)
    return out
