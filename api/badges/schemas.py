"""
Pydantic schemas for badge endpoints.

Field-level rules for badge rows live in `badges/tables.py`; these models only
describe the envelope of each request body.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class TagValue(BaseModel):
    value: str | None = None


class SetCriteriaRequest(BaseModel):
    criteria: list[dict[str, Any]] = Field(default_factory=list)


class SetCategoriesRequest(BaseModel):
    categories: list[str] | str | None = None


class SetTagsRequest(BaseModel):
    tags: list[TagValue | str] | TagValue | str | None = None

    def values(self) -> list[Any]:
        items = self.tags if isinstance(self.tags, list) else [self.tags]
        return [item.value if isinstance(item, TagValue) else item for item in items]
