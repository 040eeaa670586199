"""Browser interface for listing and editing users."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import FastAPI, Form, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from .repository import StoreError, StoreTimeoutError, UserRepository
from .validation import InvalidAge, InvalidUserId, UserForm, parse_user_id

logger = logging.getLogger("crudapp.web")

BASE_DIR = Path(__file__).resolve().parent
TEMPLATE_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

SESSION_COOKIE_NAME = "crudapp_session"


def _bad_request(exc: ValueError) -> HTTPException:
    detail = "Invalid ID" if isinstance(exc, InvalidUserId) else "Invalid age"
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def create_app(
    *,
    repository: UserRepository,
    session_secret: str,
    static_dir: Optional[Path] = None,
) -> FastAPI:
    """Create the HTML application serving the user pages."""

    app = FastAPI(
        title="User Directory",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.repository = repository

    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        same_site="lax",
    )

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

    static_root = static_dir or STATIC_DIR
    if static_root.exists():
        app.mount("/static", StaticFiles(directory=str(static_root)), name="static")

    def _flash(request: Request, message: str, *, category: str = "success") -> None:
        messages = request.session.get("flash_messages")
        if not isinstance(messages, list):
            messages = []
        messages.append({"message": message, "category": category})
        request.session["flash_messages"] = messages

    def _consume_flash(request: Request) -> List[Dict[str, str]]:
        messages = request.session.pop("flash_messages", [])
        if isinstance(messages, list):
            return messages
        return []

    def _redirect_to_index(request: Request) -> RedirectResponse:
        return RedirectResponse(
            request.url_for("index"),
            status_code=status.HTTP_303_SEE_OTHER,
        )

    @app.get("/", response_class=HTMLResponse, name="index")
    async def index(request: Request):
        users = await repository.list_users()
        return templates.TemplateResponse(
            request,
            "index.html",
            {"users": users, "messages": _consume_flash(request)},
        )

    @app.get("/create", response_class=HTMLResponse, name="create_form")
    async def create_form(request: Request):
        return templates.TemplateResponse(request, "create.html", {})

    @app.post("/create", name="create_user")
    async def create_user(
        request: Request,
        name: str = Form(""),
        email: str = Form(""),
        age: str = Form(""),
    ):
        try:
            fields = UserForm(name=name, email=email, age=age).parse()
        except InvalidAge as exc:
            raise _bad_request(exc) from exc

        user = await repository.create_user(fields)
        _flash(request, f"Created user {user.name}.")
        return _redirect_to_index(request)

    @app.get("/edit/{user_id}", response_class=HTMLResponse, name="edit_form")
    async def edit_form(request: Request, user_id: str):
        try:
            object_id = parse_user_id(user_id)
        except InvalidUserId as exc:
            raise _bad_request(exc) from exc

        user = await repository.get_user(object_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return templates.TemplateResponse(request, "edit.html", {"user": user})

    @app.post("/update/{user_id}", name="update_user")
    async def update_user(
        request: Request,
        user_id: str,
        name: str = Form(""),
        email: str = Form(""),
        age: str = Form(""),
    ):
        try:
            object_id = parse_user_id(user_id)
            fields = UserForm(name=name, email=email, age=age).parse()
        except (InvalidUserId, InvalidAge) as exc:
            raise _bad_request(exc) from exc

        # A missing id is a no-op, unlike /edit which answers 404.
        if await repository.update_user(object_id, fields):
            _flash(request, f"Updated user {fields.name}.")
        return _redirect_to_index(request)

    @app.get("/delete/{user_id}", name="delete_user")
    async def delete_user(request: Request, user_id: str):
        try:
            object_id = parse_user_id(user_id)
        except InvalidUserId as exc:
            raise _bad_request(exc) from exc

        if await repository.delete_user(object_id):
            _flash(request, "Deleted user.")
        return _redirect_to_index(request)

    @app.get("/search", response_class=HTMLResponse, name="search")
    async def search(request: Request, q: str = Query("")):
        if not q:
            return _redirect_to_index(request)

        users = await repository.search_users(q)
        return templates.TemplateResponse(
            request,
            "search.html",
            {"users": users, "query": q, "count": len(users)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        return PlainTextResponse(
            str(exc.detail),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
        code = (
            status.HTTP_504_GATEWAY_TIMEOUT
            if isinstance(exc, StoreTimeoutError)
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return PlainTextResponse(str(exc), status_code=code)

    return app


__all__ = ["create_app"]
