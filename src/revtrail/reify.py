"""
Reification – rebuild a typed, historical record from a Revision.

The result is a new, transient instance of the concrete class the snapshot
was taken from. It never enters the Session's identity map and is never
flushed, but it can lazy-load its relationships (they show the *live*
related rows) unless ``has_one`` asks for one-to-one associations to be
rolled back too.

``has_one`` lookback
--------------------
Which changes to a parent and its child belong "together" (one form
submission touching both, say) is not recorded anywhere, so there is no
exact cut-off for the child's state. Instead the child is taken as it was
``L`` seconds before the parent's revision. This is a heuristic, not a
guarantee: pick ``L`` to match how far apart related writes usually are.
"""

from __future__ import annotations

import datetime as dt
import logging
import warnings
from typing import Any, Dict, Optional, Type

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.orm import Session, object_session
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.interfaces import ONETOMANY

from .core.record import TimeTraversable
from .core.registry import registry
from .exceptions import DecodeError, MissingFieldWarning
from .persistence import codec
from .settings import get_settings

logger = logging.getLogger(__name__)


def lookback_seconds(has_one: bool | float | None) -> Optional[float]:
    """``False``/``None`` ➜ off, ``True`` ➜ configured default, number ➜ itself."""
    if has_one is None or has_one is False:
        return None
    if has_one is True:
        return get_settings().has_one_lookback
    return float(has_one)


def resolve_class(item_type: str, attrs: Dict[str, Any]) -> Type:
    """Concrete class for a snapshot of ``item_type``.

    A single-table hierarchy stores the subclass in its discriminator
    column: a value there picks the subclass, a blank or missing one means
    the base class itself.
    """
    base = registry.resolve(item_type)
    mapper = sa_inspect(base)
    if mapper.polymorphic_on is None:
        return base
    key = mapper.get_property_by_column(mapper.polymorphic_on).key
    value = attrs.get(key)
    if value is None or value == "":
        return base
    sub = mapper.polymorphic_map.get(value)
    if sub is not None:
        return sub.class_
    return registry.resolve(str(value))


def _new_instance(cls: Type) -> Any:
    # bypasses __init__, which may require arguments
    return sa_inspect(cls).class_manager.new_instance()


def _column_value(mapper, key: str, value: Any) -> Any:
    """Turn a stored enum value back into the member its column expects."""
    enum_class = getattr(mapper.column_attrs[key].columns[0].type, "enum_class", None)
    if enum_class is None or value is None or isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except ValueError as exc:
        raise DecodeError(f"{value!r} is not a member of {enum_class.__name__}") from exc


def _detached_copy(record: Any) -> Any:
    copy = _new_instance(type(record))
    for attr in sa_inspect(type(record)).column_attrs:
        setattr(copy, attr.key, getattr(record, attr.key))
    return copy


def _load_live(session: Session, model: Any, rel) -> Any:
    """The row currently on the far side of one-to-one ``rel`` of ``model``."""
    parent = sa_inspect(type(model))
    criteria = []
    for local, remote in rel.local_remote_pairs:
        value = getattr(model, parent.get_property_by_column(local).key)
        criteria.append(remote == value)
    return session.scalars(select(rel.mapper.class_).where(*criteria).limit(1)).first()


def reify_has_ones(model: Any, revision: Any, lookback: float, session: Session) -> None:
    """Roll ``model``'s one-to-one associations back to ``timestamp - lookback``."""
    at: dt.datetime = revision.timestamp - dt.timedelta(seconds=lookback)
    for rel in sa_inspect(type(model)).relationships:
        if rel.uselist or rel.direction is not ONETOMANY:
            continue
        if not issubclass(rel.mapper.class_, TimeTraversable):
            continue
        live_child = _load_live(session, model, rel)
        if live_child is None:
            continue
        as_it_was = live_child.revision_at(at)
        if as_it_was is None:
            # the child did not exist yet
            set_committed_value(model, rel.key, None)
            continue
        child = _detached_copy(live_child)
        if as_it_was is not live_child:
            for key, value in sa_inspect(as_it_was).dict.items():
                if key in sa_inspect(type(child)).column_attrs:
                    setattr(child, key, value)
            child.source_revision = as_it_was.source_revision
        set_committed_value(model, rel.key, child)


def reify(
    revision: Any,
    has_one: bool | float = False,
    session: Optional[Session] = None,
) -> Any:
    """Rebuild the item as it was before ``revision``'s event.

    Returns ``None`` for a ``create`` revision. Raises ``DecodeError`` for an
    unreadable snapshot and ``TypeResolutionError`` for an unknown type.
    """
    if revision.object is None:
        return None
    session = session or object_session(revision)

    attrs = codec.decode(revision.object)
    cls = resolve_class(revision.item_type, attrs)
    # fields skipped today are stripped from older snapshots too
    for name in cls.__revisions__.skip:
        attrs.pop(name, None)
    mapper = sa_inspect(cls)
    writable = {attr.key for attr in mapper.column_attrs}

    model = _new_instance(cls)
    for key, value in attrs.items():
        if key in writable:
            setattr(model, key, _column_value(mapper, key, value))
        else:
            logger.warning(
                "Attribute %s does not exist on %s (Revision id: %s).",
                key,
                revision.item_type,
                revision.id,
            )
            warnings.warn(
                f"{revision.item_type} has no attribute {key!r}; dropped from "
                f"revision {revision.id}",
                MissingFieldWarning,
                stacklevel=2,
            )
    model.source_revision = revision

    if session is not None:
        session.enable_relationship_loading(model)
        lookback = lookback_seconds(has_one)
        if lookback is not None:
            reify_has_ones(model, revision, lookback, session)
    return model
