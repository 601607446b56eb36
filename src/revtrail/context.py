"""
Ambient state read by every capture decision.

* ``RequestContext`` – who is acting, extra request info (ip, user agent …)
  and a per-request enable flag. Lives in a ContextVar, so each request,
  thread or task sees its own value.
* Global switch – one process-wide flag behind a lock.
* Per-type switch – the set of suspended type names, also a ContextVar, so
  ``without_revisions()`` in one request never leaks into another.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, FrozenSet, Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .settings import get_settings


class RequestContext(BaseModel):
    """Actor identity and request metadata attached to captured revisions."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    whodunnit: Optional[Any] = None
    info: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


_EMPTY = RequestContext()
_request: ContextVar[RequestContext] = ContextVar("revtrail_request", default=_EMPTY)
_suspended: ContextVar[FrozenSet[str]] = ContextVar(
    "revtrail_suspended_types", default=frozenset()
)


def current_context() -> RequestContext:
    return _request.get()


def current_whodunnit() -> Optional[str]:
    who = _request.get().whodunnit
    return None if who is None else str(who)


def set_whodunnit(whodunnit: Any) -> None:
    """Set the actor for the rest of the current context."""
    _request.set(_request.get().model_copy(update={"whodunnit": whodunnit}))


@contextmanager
def request_context(
    whodunnit: Any = None,
    info: Optional[Mapping[str, Any]] = None,
    enabled: bool = True,
) -> Iterator[RequestContext]:
    """Run a block of work on behalf of ``whodunnit``.

    The previous context is restored on exit, also when the block raises.
    """
    ctx = RequestContext(whodunnit=whodunnit, info=dict(info or {}), enabled=enabled)
    token = _request.set(ctx)
    try:
        yield ctx
    finally:
        _request.reset(token)


# ------------------------------------------------------------------ #
# global switch
# ------------------------------------------------------------------ #
_lock = threading.Lock()
_globally_enabled: Optional[bool] = None  # None → fall back to settings


def set_enabled(value: bool) -> None:
    global _globally_enabled
    with _lock:
        _globally_enabled = bool(value)


def reset_enabled() -> None:
    """Forget ``set_enabled``; the switch follows ``Settings.enabled`` again."""
    global _globally_enabled
    with _lock:
        _globally_enabled = None


def is_enabled() -> bool:
    with _lock:
        if _globally_enabled is None:
            return get_settings().enabled
        return _globally_enabled


# ------------------------------------------------------------------ #
# per-type switch
# ------------------------------------------------------------------ #
def suspend_type(type_name: str) -> None:
    _suspended.set(_suspended.get() | {type_name})


def resume_type(type_name: str) -> None:
    _suspended.set(_suspended.get() - {type_name})


def type_enabled(type_name: str) -> bool:
    return type_name not in _suspended.get()


@contextmanager
def suspended(type_name: str) -> Iterator[None]:
    """Disable capture for ``type_name`` inside the block, then restore."""
    token = _suspended.set(_suspended.get() | {type_name})
    try:
        yield
    finally:
        _suspended.reset(token)


def switched_on(*type_names: str) -> bool:
    """True when the global, per-request and per-type switches all allow capture."""
    if not (is_enabled() and _request.get().enabled):
        return False
    return all(type_enabled(name) for name in type_names)
