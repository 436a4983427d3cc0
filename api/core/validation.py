"""
Declarative per-field row validation.

A schema maps field names to checks built with `required(...)` or
`optional(...)`; each check names a rule from `RULES` plus its arguments:

    validate = make_validator({
        "slug": required("length", 1, 255),
        "limit": optional("is_int"),
    })
    errors = validate(row)  # None when valid

Rules are pure functions of the value, so the result for a row only depends
on its current field values.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

_INT_RE = re.compile(r"^[-+]?\d+$")
_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


@dataclass(frozen=True)
class FieldError:
    field: str
    rule: str
    message: str


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return bool(_INT_RE.match(_as_text(value).strip()))


def length(value: Any, min_len: int = 0, max_len: int | None = None) -> bool:
    size = len(_as_text(value))
    if size < min_len:
        return False
    return max_len is None or size <= max_len


def is_in(value: Any, options: list[Any]) -> bool:
    return _as_text(value) in {_as_text(option) for option in options}


def is_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        _URL_ADAPTER.validate_python(value.strip())
    except PydanticValidationError:
        return False
    return True


RULES: dict[str, Callable[..., bool]] = {
    "is_int": is_int,
    "length": length,
    "is_in": is_in,
    "is_url": is_url,
}


def _describe(rule: str, args: tuple[Any, ...]) -> str:
    if rule == "is_int":
        return "must be an integer"
    if rule == "is_url":
        return "must be a valid URL"
    if rule == "is_in":
        return "must be one of: " + ", ".join(_as_text(o) for o in args[0])
    if rule == "length":
        min_len = args[0] if args else 0
        max_len = args[1] if len(args) > 1 else None
        if max_len is None:
            return f"must be at least {min_len} characters"
        return f"must be between {min_len} and {max_len} characters"
    return f"failed {rule}"


class Check:
    """
    One field check: a named rule, its arguments and a presence policy.
    """

    def __init__(self, rule: str, args: tuple[Any, ...], *, is_required: bool) -> None:
        if rule not in RULES:
            raise KeyError(f"Unknown validation rule: {rule}")
        self.rule = rule
        self.args = args
        self.is_required = is_required

    def __call__(self, field: str, row: Mapping[str, Any]) -> FieldError | None:
        value = row.get(field)
        if value is None or (self.is_required and value == ""):
            if self.is_required:
                return FieldError(field, "required", "is required")
            return None

        if RULES[self.rule](value, *self.args):
            return None
        return FieldError(field, self.rule, _describe(self.rule, self.args))


def required(rule: str, *args: Any) -> Check:
    return Check(rule, args, is_required=True)


def optional(rule: str, *args: Any) -> Check:
    return Check(rule, args, is_required=False)


Validator = Callable[[Mapping[str, Any]], "list[FieldError] | None"]


def make_validator(schema: Mapping[str, Check]) -> Validator:
    checks = dict(schema)

    def validate(row: Mapping[str, Any]) -> list[FieldError] | None:
        errors: list[FieldError] = []
        for field, check in checks.items():
            error = check(field, row)
            if error is not None:
                errors.append(error)
        return errors or None

    return validate
