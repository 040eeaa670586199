"""Application factory that serves both the API and the HTML pages."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from .api import create_app as create_api_app
from .config import Settings, load_settings
from .repository import UserRepository
from .store import MongoStore, StoreConnectionError
from .web import create_app as create_web_app

logger = logging.getLogger("crudapp.application")


def create_application(
    *,
    settings: Optional[Settings] = None,
    store: Optional[MongoStore] = None,
) -> FastAPI:
    """Create the combined ASGI application.

    The store is pinged during startup; if MongoDB cannot be reached the
    lifespan raises and the server refuses to start.
    """

    if settings is None:
        settings = load_settings()
    if store is None:
        store = MongoStore(settings)

    repository = UserRepository(store.users, timeout=settings.store_timeout)

    api_app = create_api_app(repository=repository)
    web_app = create_web_app(
        repository=repository,
        session_secret=settings.resolved_session_secret(),
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            await store.ping()
        except StoreConnectionError as exc:
            logger.critical("%s", exc)
            store.close()
            raise
        try:
            yield
        finally:
            store.close()

    app = FastAPI(
        title="User Directory",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.repository = repository
    app.state.api = api_app
    app.state.web = web_app

    app.mount("/api", api_app)
    app.mount("/", web_app)

    return app


__all__ = ["create_application"]
