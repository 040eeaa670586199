"""Repository operations over the ``users`` collection.

Every public coroutine issues exactly one collection call and bounds it by the
configured timeout. Driver failures are wrapped in :class:`StoreError` so the
HTTP layer can report them without knowing about pymongo.
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import suppress
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from bson import ObjectId
from pymongo.errors import PyMongoError

from .config import DEFAULT_STORE_TIMEOUT
from .models import User, UserFields

logger = logging.getLogger("crudapp.repository")

T = TypeVar("T")


class StoreError(Exception):
    """Raised when a MongoDB operation fails."""


class StoreTimeoutError(StoreError):
    """Raised when a MongoDB operation exceeds the configured timeout."""


def build_search_filter(query: str) -> Dict[str, Any]:
    """Match ``query`` as a case-insensitive substring of name or email."""

    pattern = {"$regex": re.escape(query), "$options": "i"}
    return {"$or": [{"name": pattern}, {"email": pattern}]}


class UserRepository:
    """Thin wrapper around the users collection."""

    def __init__(self, collection: Any, *, timeout: float = DEFAULT_STORE_TIMEOUT) -> None:
        self._collection = collection
        self._timeout = timeout

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("MongoDB %s timed out after %gs", operation, self._timeout)
            raise StoreTimeoutError(
                f"{operation} did not complete within {self._timeout:g} seconds"
            ) from exc
        except PyMongoError as exc:
            logger.error("MongoDB %s failed: %s", operation, exc)
            raise StoreError(f"{operation} failed: {exc}") from exc

    async def _find(self, operation: str, filter_dict: Dict[str, Any]) -> List[User]:
        cursor = self._collection.find(filter_dict)
        try:
            documents = await self._run(operation, cursor.to_list(length=None))
        finally:
            with suppress(Exception):
                await asyncio.wait_for(cursor.close(), timeout=self._timeout)
        return [User.from_document(document) for document in documents]

    async def list_users(self) -> List[User]:
        """Return every user in the collection's natural order."""
        return await self._find("find", {})

    async def get_user(self, user_id: ObjectId) -> Optional[User]:
        document = await self._run("find_one", self._collection.find_one({"_id": user_id}))
        if document is None:
            return None
        return User.from_document(document)

    async def create_user(self, fields: UserFields) -> User:
        """Insert a new document and return it with the identifier MongoDB assigned."""

        document = fields.to_document()
        result = await self._run("insert_one", self._collection.insert_one(document))
        user_id = result.inserted_id
        logger.info("Created user %s", user_id)
        return User(id=str(user_id), name=fields.name, email=fields.email, age=fields.age)

    async def update_user(self, user_id: ObjectId, fields: UserFields) -> bool:
        """Overwrite all fields of one user.

        Returns ``False`` when no document matched; that is not an error.
        """

        result = await self._run(
            "update_one",
            self._collection.update_one({"_id": user_id}, {"$set": fields.to_document()}),
        )
        matched = bool(result.matched_count)
        if not matched:
            logger.info("Update matched no user with id %s", user_id)
        return matched

    async def delete_user(self, user_id: ObjectId) -> bool:
        """Delete one user; deleting a missing identifier is a no-op."""

        result = await self._run("delete_one", self._collection.delete_one({"_id": user_id}))
        deleted = bool(result.deleted_count)
        if deleted:
            logger.info("Deleted user %s", user_id)
        return deleted

    async def search_users(self, query: str) -> List[User]:
        """Return users whose name or email contains ``query``, ignoring case.

        An empty query matches nothing and never reaches the store.
        """

        if not query:
            return []
        return await self._find("search", build_search_filter(query))


__all__ = [
    "StoreError",
    "StoreTimeoutError",
    "UserRepository",
    "build_search_filter",
]
