"""
Error kinds reported by the data-access layer.

Callers (the HTTP layer) map these to responses:
- ValidationError -> 400
- NotFoundError   -> 404
- anything else   -> 500
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any


class DataError(Exception):
    pass


class ValidationError(DataError):
    """
    Raised before any store mutation when a row breaks its table's schema.
    """

    def __init__(self, errors: Sequence[Any], *, table: str | None = None) -> None:
        self.errors = list(errors)
        self.table = table
        fields = ", ".join(str(getattr(e, "field", e)) for e in self.errors)
        prefix = f"Invalid {table} row" if table else "Invalid row"
        super().__init__(f"{prefix}: {fields}")

    def to_list(self) -> list[dict[str, str]]:
        return [
            {"field": e.field, "rule": e.rule, "message": e.message}
            for e in self.errors
        ]


class NotFoundError(DataError):
    def __init__(self, table: str, where: Mapping[str, Any] | None = None) -> None:
        self.table = table
        self.where = dict(where or {})
        super().__init__(f"No {table} row matches {self.where!r}")


class StoreError(DataError):
    """
    Failure of the underlying storage backend (I/O, constraint, driver).
    """


class PartialFailureError(DataError):
    """
    A multi-step procedure failed after earlier steps had already committed.

    Nothing is rolled back. `committed` lists ids written before the failure;
    `results` holds per-item outcomes for batch writes. The triggering error
    is chained as `__cause__`.
    """

    def __init__(
        self,
        step: str,
        message: str,
        *,
        committed: Sequence[Any] = (),
        results: Sequence[Any] = (),
    ) -> None:
        self.step = step
        self.committed = list(committed)
        self.results = list(results)
        super().__init__(f"{step}: {message}")
