"""
revtrail.runtime  ──  A thin façade for applications.

Usage pattern in user code
--------------------------
    from revtrail.runtime import Revtrail

    app = Revtrail.create_app(
        database_url="postgresql://...",
        user_for_request=lambda request: request.headers.get("x-user-id"),
        info_for_request=lambda request: {"ip": request.client.host},
    )

Every request handled by ``app`` then runs inside its own
``RequestContext``: revisions written while serving it carry the user as
``whodunnit`` and the info as extra revision columns.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, ClassVar, Dict, Optional, Union

from fastapi import FastAPI, Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .bootstrap import init_revtrail
from .context import request_context
from .settings import get_settings

logger = logging.getLogger(__name__)

RequestHook = Callable[[Request], Union[Any, Awaitable[Any]]]


async def _call(hook: Optional[RequestHook], request: Request, default: Any) -> Any:
    if hook is None:
        return default
    result = hook(request)
    if inspect.isawaitable(result):
        result = await result
    return result


class RevisionContextMiddleware:
    """ASGI middleware: one ``RequestContext`` per HTTP request.

    Args:
        user_for_request: ``fn(request)`` ➜ actor stored as ``whodunnit``.
        info_for_request: ``fn(request)`` ➜ dict of extra revision columns.
        enabled_for_request: ``fn(request)`` ➜ False to capture nothing
            while serving this request.
    """

    def __init__(
        self,
        app,
        user_for_request: Optional[RequestHook] = None,
        info_for_request: Optional[RequestHook] = None,
        enabled_for_request: Optional[RequestHook] = None,
    ) -> None:
        self.app = app
        self.user_for_request = user_for_request
        self.info_for_request = info_for_request
        self.enabled_for_request = enabled_for_request

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        request = Request(scope, receive)
        whodunnit = await _call(self.user_for_request, request, None)
        info: Dict[str, Any] = await _call(self.info_for_request, request, {}) or {}
        enabled = bool(await _call(self.enabled_for_request, request, True))
        with request_context(whodunnit=whodunnit, info=info, enabled=enabled):
            await self.app(scope, receive, send)


class Revtrail:
    """Process-wide engine holder plus app factory."""

    _engine: ClassVar[Optional[Engine]] = None

    # ---------- one-shot initialiser ----------
    @classmethod
    def init(cls, database_url: Optional[str] = None, **engine_kw: Any) -> Engine:
        if cls._engine is None:
            settings = get_settings()
            url = database_url or settings.database_url
            engine_kw.setdefault("echo", settings.echo_sql)
            cls._engine = create_engine(url, pool_pre_ping=True, **engine_kw)
            init_revtrail(cls._engine)  # tables + lifecycle listeners
            logger.info("revtrail initialised on %s", cls._engine.url)
        return cls._engine

    # ---------- convenience helpers ----------
    @classmethod
    def engine(cls) -> Engine:
        if cls._engine is None:
            raise RuntimeError("Revtrail.init() has not been called")
        return cls._engine

    @classmethod
    def reset(cls) -> None:
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None

    @classmethod
    def create_app(
        cls,
        *,
        database_url: Optional[str] = None,
        engine_kw: Optional[Dict[str, Any]] = None,
        user_for_request: Optional[RequestHook] = None,
        info_for_request: Optional[RequestHook] = None,
        enabled_for_request: Optional[RequestHook] = None,
        **fastapi_kwargs: Any,
    ) -> FastAPI:
        """
        One-liner for web apps:
            app = Revtrail.create_app(database_url=URL, user_for_request=...)
        """
        cls.init(database_url, **(engine_kw or {}))
        app = FastAPI(**fastapi_kwargs)
        app.add_middleware(
            RevisionContextMiddleware,
            user_for_request=user_for_request,
            info_for_request=info_for_request,
            enabled_for_request=enabled_for_request,
        )
        return app
