"""Connection handling for the MongoDB document store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from .config import Settings

logger = logging.getLogger("crudapp.store")


class StoreConnectionError(RuntimeError):
    """Raised when the MongoDB deployment cannot be reached at startup."""


class MongoStore:
    """Long-lived handle on the MongoDB client shared by every request.

    The underlying motor client maintains its own connection pool and is safe
    to use from concurrent requests. It connects lazily, so :meth:`ping`
    should be awaited once during startup to verify the deployment.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[AsyncIOMotorClient[Dict[str, Any]]] = None,
    ) -> None:
        self._settings = settings
        if client is None:
            timeout_ms = int(settings.store_timeout * 1000)
            client = AsyncIOMotorClient(
                settings.mongodb_uri,
                serverSelectionTimeoutMS=timeout_ms,
            )
        self._client = client
        self._db = self._client[settings.database_name]
        self._users = self._db[settings.collection_name]

    @property
    def users(self) -> AsyncIOMotorCollection[Dict[str, Any]]:
        """Collection holding the user documents."""
        return self._users

    async def ping(self) -> None:
        """Verify the deployment answers within the configured timeout."""

        try:
            await asyncio.wait_for(
                self._client.admin.command("ping"),
                timeout=self._settings.store_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise StoreConnectionError(
                f"MongoDB did not answer a ping within {self._settings.store_timeout:g}s"
            ) from exc
        except PyMongoError as exc:
            raise StoreConnectionError(f"Unable to connect to MongoDB: {exc}") from exc

        logger.info(
            "Connected to MongoDB (database=%s, collection=%s)",
            self._settings.database_name,
            self._settings.collection_name,
        )

    def close(self) -> None:
        self._client.close()
        logger.info("Closed MongoDB connection")


__all__ = ["MongoStore", "StoreConnectionError"]
