"""Domain models for the user directory."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class UserFields:
    """The mutable fields of a user; written together on create and update."""

    name: str
    email: str
    age: int

    def to_document(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email, "age": self.age}


@dataclass(frozen=True)
class User:
    """Represents a user document stored in the ``users`` collection."""

    id: str
    name: str
    email: str
    age: int

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "User":
        """Build a :class:`User` from a raw MongoDB document.

        Missing fields decode to empty values rather than failing the request.
        """

        return cls(
            id=str(document.get("_id", "")),
            name=str(document.get("name") or ""),
            email=str(document.get("email") or ""),
            age=int(document.get("age") or 0),
        )


__all__ = ["User", "UserFields"]
