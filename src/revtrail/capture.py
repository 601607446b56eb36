"""
Capture engine – lifecycle event ➜ Revision row.

The three hooks run inside the host's flush and write through the same
connection, so a revision commits or rolls back with the change it
describes. Failures propagate; nothing is retried or deferred.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Connection

from . import context
from .core.changes import should_capture
from .core.metadata import merge
from .persistence import codec
from .persistence.models import now_utc

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# attribute helpers
# ------------------------------------------------------------------ #
def current_attributes(record: Any) -> Dict[str, Any]:
    """Column attributes of ``record`` keyed by attribute name."""
    mapper = sa_inspect(type(record))
    return {attr.key: getattr(record, attr.key) for attr in mapper.column_attrs}


def pending_changes(record: Any) -> Dict[str, Tuple[Any, Any]]:
    """``{name: (before, after)}`` for column attributes changed since load."""
    state = sa_inspect(record)
    changes: Dict[str, Tuple[Any, Any]] = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if not history.has_changes():
            continue
        before = history.deleted[0] if history.deleted else None
        after = history.added[0] if history.added else None
        if before != after:
            changes[attr.key] = (before, after)
    return changes


def state_before_change(
    record: Any, changes: Mapping[str, Tuple[Any, Any]]
) -> Dict[str, Any]:
    """Duplicate of the live attributes with each change rolled back."""
    attrs = current_attributes(record)
    for name, (before, _after) in changes.items():
        attrs[name] = before
    return attrs


# ------------------------------------------------------------------ #
# write path
# ------------------------------------------------------------------ #
def _switched_on(record: Any) -> bool:
    return context.switched_on(*type(record)._switch_names())


def _append(
    record: Any,
    connection: Connection,
    event: str,
    obj: Optional[bytes] = None,
    changes: Optional[Mapping[str, Tuple[Any, Any]]] = None,
) -> bool:
    cls = type(record)
    revision_class = cls.revision_class()
    store = revision_class.store()
    if event != "create" and store.closed(connection, cls.item_type(), record.item_id()):
        # e.g. a reused key whose create was not captured
        logger.warning(
            "%s %s already has a destroy revision; %s not captured",
            cls.item_type(),
            record.item_id(),
            event,
        )
        return False
    base: Dict[str, Any] = {
        "item_type": cls.item_type(),
        "item_id": record.item_id(),
        "event": event,
        "object": obj,
        "whodunnit": context.current_whodunnit(),
        revision_class.__timestamp_field__: now_utc(),
    }
    if changes is not None and revision_class.has_changeset_column():
        base["object_changes"] = codec.encode_changes(changes)

    ctx = context.current_context()
    data = merge(base, cls.__revisions__.meta, record, ctx.info)

    columns = revision_class.__table__.c
    dropped = sorted(k for k in data if k not in columns)
    if dropped:
        logger.debug("%s has no column for %s; not stored", revision_class.__name__, dropped)
        data = {k: v for k, v in data.items() if k in columns}

    store.append(connection, data)
    logger.debug("captured %s of %s %s", event, base["item_type"], base["item_id"])
    return True


def on_create(record: Any, connection: Connection) -> bool:
    """Capture a ``create`` revision (no snapshot: there is no prior state)."""
    options = type(record).__revisions__
    if not _switched_on(record):
        return False
    capture, _ = should_capture("create", (), options, record)
    if not capture:
        return False
    return _append(record, connection, "create")


def on_before_update(
    record: Any,
    connection: Connection,
    changes: Optional[Mapping[str, Tuple[Any, Any]]] = None,
) -> bool:
    """Capture an ``update`` revision holding the pre-update state.

    ``changes`` defaults to the record's pending attribute history.
    """
    options = type(record).__revisions__
    if not _switched_on(record):
        return False
    if changes is None:
        changes = pending_changes(record)
    capture, notable = should_capture("update", changes.keys(), options, record)
    if not capture:
        return False
    before = state_before_change(record, changes)
    return _append(
        record,
        connection,
        "update",
        obj=codec.encode(before, options.skip),
        changes={name: changes[name] for name in notable},
    )


def on_destroy(record: Any, connection: Connection, persisted: bool = True) -> bool:
    """Capture a ``destroy`` revision holding the final live state."""
    options = type(record).__revisions__
    if not persisted or not _switched_on(record):
        return False
    capture, _ = should_capture("destroy", (), options, record)
    if not capture:
        return False
    return _append(
        record,
        connection,
        "destroy",
        obj=codec.encode(current_attributes(record), options.skip),
    )
