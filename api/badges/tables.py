"""
Badge entity tables.

`badges` owns `criteria`, `categories` and `tags` through their `badgeId`
column; `images`, `systems`, `issuers` and `programs` are referenced through
nullable foreign keys and live independently of any badge.
"""

from __future__ import annotations

from datetime import datetime

from core.table import Field, HasMany, HasOne, Table
from core.validation import make_validator, optional, required

TIME_UNITS = ["minutes", "hours", "days", "weeks"]
BOOLEAN_VALUES = ["0", "1", "true", "false"]

images = Table(
    "images",
    fields=[
        Field("id", int),
        Field("slug"),
        Field("url"),
        Field("mimetype"),
        Field("created", datetime),
    ],
)

systems = Table(
    "systems",
    fields=[
        Field("id", int),
        Field("slug"),
        Field("url"),
        Field("name"),
        Field("email"),
        Field("imageId", int),
    ],
)

issuers = Table(
    "issuers",
    fields=[
        Field("id", int),
        Field("slug"),
        Field("url"),
        Field("name"),
        Field("description"),
        Field("email"),
        Field("imageId", int),
        Field("systemId", int),
    ],
)

programs = Table(
    "programs",
    fields=[
        Field("id", int),
        Field("slug"),
        Field("url"),
        Field("name"),
        Field("description"),
        Field("email"),
        Field("imageId", int),
        Field("issuerId", int),
    ],
)

criteria = Table(
    "criteria",
    fields=[
        Field("id", int),
        Field("badgeId", int),
        Field("description"),
        Field("required", bool),
        Field("note"),
    ],
    validator=make_validator({
        "id": optional("is_int"),
        "badgeId": required("is_int"),
        "description": required("length", 1),
        "required": optional("is_in", BOOLEAN_VALUES),
        "note": optional("length", 0),
    }),
)

categories = Table(
    "categories",
    fields=[Field("id", int), Field("badgeId", int), Field("value")],
    validator=make_validator({
        "badgeId": required("is_int"),
        "value": required("length", 1, 255),
    }),
)

tags = Table(
    "tags",
    fields=[Field("id", int), Field("badgeId", int), Field("value")],
    validator=make_validator({
        "badgeId": required("is_int"),
        "value": required("length", 1, 255),
    }),
)

badges = Table(
    "badges",
    fields=[
        Field("id", int),
        Field("slug"),
        Field("name"),
        Field("strapline"),
        Field("earnerDescription"),
        Field("consumerDescription"),
        Field("issuerUrl"),
        Field("rubricUrl"),
        Field("criteriaUrl"),
        Field("timeValue", int),
        Field("timeUnits"),
        Field("limit", int),
        Field("unique", bool),
        Field("created", datetime),
        Field("archived", bool),
        Field("imageId", int),
        Field("systemId", int),
        Field("issuerId", int),
        Field("programId", int),
        Field("type"),
    ],
    relationships={
        "image": HasOne(local="imageId", table="images", optional=True),
        "system": HasOne(local="systemId", table="systems", optional=True),
        "issuer": HasOne(local="issuerId", table="issuers", optional=True),
        "program": HasOne(local="programId", table="programs", optional=True),
        "criteria": HasMany(local="id", table="criteria", key="badgeId"),
        "categories": HasMany(local="id", table="categories", key="badgeId"),
        "tags": HasMany(local="id", table="tags", key="badgeId"),
    },
    validator=make_validator({
        "id": optional("is_int"),
        "slug": required("length", 1, 255),
        "name": required("length", 1, 255),
        "strapline": optional("length", 0, 140),
        "earnerDescription": required("length", 1),
        "consumerDescription": required("length", 1),
        "timeValue": optional("is_int"),
        "timeUnits": optional("is_in", TIME_UNITS),
        "limit": optional("is_int"),
        "unique": required("is_in", BOOLEAN_VALUES),
        "criteriaUrl": required("is_url"),
        "imageId": optional("is_int"),
        "programId": optional("is_int"),
        "issuerId": optional("is_int"),
        "systemId": optional("is_int"),
    }),
)
