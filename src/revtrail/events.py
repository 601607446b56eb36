"""
revtrail.events  ──  SQLAlchemy lifecycle hooks for Versioned records

Listens on every mapper; objects that are not ``Versioned`` are ignored.

    after_insert   ➜ capture.on_create
    before_update  ➜ capture.on_before_update
    before_delete  ➜ capture.on_destroy

The destroy hook runs before the DELETE so the final state can still be
loaded if it was expired; both statements share one transaction.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from sqlalchemy import event
from sqlalchemy.orm import Mapper

from . import capture
from .core.record import Versioned


def emit_create(mapper: Mapper, connection, target: Any) -> None:
    if isinstance(target, Versioned):
        capture.on_create(target, connection)


def emit_update(mapper: Mapper, connection, target: Any) -> None:
    if isinstance(target, Versioned):
        capture.on_before_update(target, connection)


def emit_destroy(mapper: Mapper, connection, target: Any) -> None:
    # only fires for rows that were persisted
    if isinstance(target, Versioned):
        capture.on_destroy(target, connection, persisted=True)


_LISTENERS: Dict[str, Callable[..., None]] = {
    "after_insert": emit_create,
    "before_update": emit_update,
    "before_delete": emit_destroy,
}


def install() -> None:
    """Attach the hooks (idempotent)."""
    for name, fn in _LISTENERS.items():
        if not event.contains(Mapper, name, fn):
            event.listen(Mapper, name, fn)


def uninstall() -> None:
    for name, fn in _LISTENERS.items():
        if event.contains(Mapper, name, fn):
            event.remove(Mapper, name, fn)


def installed() -> bool:
    return all(event.contains(Mapper, name, fn) for name, fn in _LISTENERS.items())
