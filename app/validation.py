"""Parsing helpers for identifiers and form input."""

from __future__ import annotations

import re
from dataclasses import dataclass

from bson import ObjectId
from bson.errors import InvalidId

from .models import UserFields

_AGE_PATTERN = re.compile(r"[+-]?[0-9]+")

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class InvalidUserId(ValueError):
    """Raised when a path identifier is not a valid ObjectId."""


class InvalidAge(ValueError):
    """Raised when the submitted age is not an integer."""


def parse_user_id(value: str) -> ObjectId:
    """Convert a 24 character hexadecimal identifier into an :class:`ObjectId`."""

    if not isinstance(value, str) or len(value) != 24:
        raise InvalidUserId(f"Invalid ID: {value!r}")
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise InvalidUserId(f"Invalid ID: {value!r}") from exc


def parse_age(value: str) -> int:
    """Parse an optionally signed run of ASCII digits into an int64 age."""

    if not isinstance(value, str) or not _AGE_PATTERN.fullmatch(value):
        raise InvalidAge(f"Invalid age: {value!r}")
    age = int(value)
    if age < _INT64_MIN or age > _INT64_MAX:
        raise InvalidAge(f"Invalid age: {value!r}")
    return age


@dataclass(frozen=True)
class UserForm:
    """Raw create/update form input as submitted by the browser."""

    name: str = ""
    email: str = ""
    age: str = ""

    def parse(self) -> UserFields:
        return UserFields(name=self.name, email=self.email, age=parse_age(self.age))


__all__ = ["InvalidAge", "InvalidUserId", "UserForm", "parse_age", "parse_user_id"]
