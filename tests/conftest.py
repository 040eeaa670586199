"""Shared fixtures: an in-process stand-in for a motor collection."""

from __future__ import annotations

import asyncio
import copy
import re
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.application import create_application
from app.config import Settings
from app.repository import UserRepository


def _matches(document: Dict[str, Any], filter_dict: Dict[str, Any]) -> bool:
    for key, condition in filter_dict.items():
        if key == "$or":
            if not any(_matches(document, branch) for branch in condition):
                return False
            continue
        value = document.get(key)
        if isinstance(condition, dict) and "$regex" in condition:
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(condition["$regex"], value, flags):
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, collection: "FakeCollection", filter_dict: Dict[str, Any]) -> None:
        self._collection = collection
        self._filter = filter_dict
        self.closed = False

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        await self._collection._before("find", self._filter)
        found = [
            copy.deepcopy(document)
            for document in self._collection.documents
            if _matches(document, self._filter)
        ]
        return found if length is None else found[:length]

    async def close(self) -> None:
        self.closed = True


class FakeCollection:
    """Implements the slice of ``AsyncIOMotorCollection`` the repository uses.

    Every operation is recorded in :attr:`calls`. Set :attr:`delay` to make
    operations slow or :attr:`error` to make them fail.
    """

    def __init__(self) -> None:
        self.documents: List[Dict[str, Any]] = []
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.delay: float = 0.0
        self.error: Optional[Exception] = None
        self.cursors: List[FakeCursor] = []

    async def _before(self, operation: str, filter_dict: Dict[str, Any]) -> None:
        self.calls.append((operation, filter_dict))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    def find(self, filter_dict: Dict[str, Any]) -> FakeCursor:
        cursor = FakeCursor(self, filter_dict)
        self.cursors.append(cursor)
        return cursor

    async def find_one(self, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        await self._before("find_one", filter_dict)
        for document in self.documents:
            if _matches(document, filter_dict):
                return copy.deepcopy(document)
        return None

    async def insert_one(self, document: Dict[str, Any]) -> SimpleNamespace:
        await self._before("insert_one", document)
        document.setdefault("_id", ObjectId())
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"], acknowledged=True)

    async def update_one(
        self, filter_dict: Dict[str, Any], update: Dict[str, Any]
    ) -> SimpleNamespace:
        await self._before("update_one", filter_dict)
        for document in self.documents:
            if _matches(document, filter_dict):
                changes = update["$set"]
                modified = any(document.get(key) != value for key, value in changes.items())
                document.update(changes)
                return SimpleNamespace(matched_count=1, modified_count=int(modified))
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, filter_dict: Dict[str, Any]) -> SimpleNamespace:
        await self._before("delete_one", filter_dict)
        for index, document in enumerate(self.documents):
            if _matches(document, filter_dict):
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    def add(self, name: str, email: str, age: int) -> str:
        object_id = ObjectId()
        self.documents.append({"_id": object_id, "name": name, "email": email, "age": age})
        return str(object_id)


class FakeStore:
    """Stands in for :class:`app.store.MongoStore` in application tests."""

    def __init__(self, collection: FakeCollection, *, ping_error: Optional[Exception] = None) -> None:
        self.users = collection
        self.ping_error = ping_error
        self.pinged = False
        self.closed = False

    async def ping(self) -> None:
        self.pinged = True
        if self.ping_error is not None:
            raise self.ping_error

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture()
def repository(collection: FakeCollection) -> UserRepository:
    return UserRepository(collection, timeout=1.0)


@pytest.fixture()
def app_factory(collection: FakeCollection):
    """Build the combined application with settings overrides."""

    def _factory(*, ping_error: Optional[Exception] = None, **overrides: Any):
        values: Dict[str, Any] = {"session_secret": "tests-secret-key", "store_timeout": 1.0}
        values.update(overrides)
        fake_store = FakeStore(collection, ping_error=ping_error)
        return create_application(settings=Settings(**values), store=fake_store), fake_store

    return _factory


@pytest.fixture()
def client(app_factory):
    app, _ = app_factory()
    with TestClient(app) as test_client:
        yield test_client
