"""JSON API mirroring the listing and search pages."""
from __future__ import annotations

import logging
from typing import List

from fastapi import FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .models import User
from .repository import StoreError, StoreTimeoutError, UserRepository

logger = logging.getLogger("crudapp.api")


class UserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str
    email: str
    age: int

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, name=user.name, email=user.email, age=user.age)


def create_app(*, repository: UserRepository) -> FastAPI:
    """Create the API application; mount it under ``/api``."""

    app = FastAPI(
        title="User Directory API",
        docs_url=None,
        redoc_url=None,
    )
    app.state.repository = repository

    @app.get("/users", response_model=List[UserResponse])
    async def list_users():
        users = await repository.list_users()
        return [UserResponse.from_user(user) for user in users]

    @app.get("/search", response_model=List[UserResponse])
    async def search_users(q: str = Query("")):
        if not q:
            return []
        users = await repository.search_users(q)
        return [UserResponse.from_user(user) for user in users]

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
        if isinstance(exc, StoreTimeoutError):
            return JSONResponse(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT, content={"detail": str(exc)}
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)}
        )

    return app


__all__ = ["UserResponse", "create_app"]
