"""
Versioned record kernel.

* Mix ``Versioned`` into a SQLAlchemy declarative class ➜ every insert,
  update and delete of it is captured as a ``Revision`` (once
  ``init_revtrail(engine)`` has installed the lifecycle listeners).
* ``__revisions__ = TrackingOptions(...)`` tunes what counts as a change.
* Options are checked and the class registered for reification at
  class-creation time.
"""

from __future__ import annotations

import datetime as dt
from contextlib import contextmanager
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    FrozenSet,
    Iterator,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import object_session

from .. import context
from ..exceptions import DetachedRecordError
from ..persistence.store import EVENTS, RevisionStore
from .changes import check_options
from .metadata import coerce
from .registry import registry


class TrackingOptions(BaseModel):
    """Per-class tracking configuration.

    Attributes:
        on: Events to capture (default: all of create, update, destroy).
        ignore: Fields whose change alone never warrants a revision. They are
            still stored in snapshots.
        skip: Like ``ignore``, and also stripped from every snapshot.
        only: When non-empty, the exclusive list of fields that count.
        if_: ``fn(record) -> bool``; capture only when true. Alias ``if``.
        unless: ``fn(record) -> bool``; capture only when false.
        meta: Extra revision columns, see :mod:`revtrail.core.metadata`.
        revision_class: Dedicated revision class (default ``Revision``).
        revisions_name: Extra name under which ``revisions`` is exposed.
    """

    model_config = ConfigDict(
        frozen=True, arbitrary_types_allowed=True, populate_by_name=True
    )

    on: FrozenSet[str] = frozenset(EVENTS)
    ignore: FrozenSet[str] = frozenset()
    skip: FrozenSet[str] = frozenset()
    only: FrozenSet[str] = frozenset()
    if_: Optional[Callable[[Any], bool]] = Field(default=None, alias="if")
    unless: Optional[Callable[[Any], bool]] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    revision_class: Optional[type] = None
    revisions_name: str = "revisions"

    @field_validator("on", "ignore", "skip", "only", mode="before")
    @classmethod
    def _names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return frozenset([value])
        return frozenset(value or ())

    @field_validator("meta", mode="after")
    @classmethod
    def _meta(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        return {column: coerce(v) for column, v in value.items()}


@runtime_checkable
class TimeTraversable(Protocol):
    """Capability: the type can answer "what did you look like at time T?".

    Reification only rebuilds one-to-one associations whose target class
    satisfies this. ``Versioned`` classes do.
    """

    def revision_at(self, timestamp: dt.datetime, has_one: bool | float = False) -> Any:
        ...


def _keep_old_value(target: Any, value: Any, oldvalue: Any, initiator: Any) -> None:
    """No-op; registering it with ``active_history=True`` is what matters."""


def _default_revision_class():
    from ..persistence.models import Revision

    return Revision


class Versioned:
    """Mixin for declarative classes whose changes are kept as revisions."""

    __revisions__: ClassVar[TrackingOptions] = TrackingOptions()

    # the revision this instance was reified from; None for live records
    source_revision = None

    def __init_subclass__(cls, **kw: Any) -> None:
        super().__init_subclass__(**kw)
        options = cls.__revisions__
        check_options(options, options.revision_class or _default_revision_class(), cls.__name__)
        registry.register(cls.__name__, cls)
        if options.revisions_name != "revisions":
            setattr(cls, options.revisions_name, Versioned.revisions)

    @classmethod
    def __declare_last__(cls) -> None:
        # load the old value on every column write so the attribute history
        # still knows it when the record was expired (e.g. after a commit);
        # propagate covers single-table subclasses, which skip this hook
        for prop in sa_inspect(cls).column_attrs:
            attr = getattr(cls, prop.key)
            if not event.contains(attr, "set", _keep_old_value):
                event.listen(
                    attr, "set", _keep_old_value, active_history=True, propagate=True
                )

    # ------------------------------------------------------------------ #
    # class helpers
    # ------------------------------------------------------------------ #
    @classmethod
    def revision_class(cls):
        return cls.__revisions__.revision_class or _default_revision_class()

    @classmethod
    def revision_store(cls) -> RevisionStore:
        return RevisionStore(cls.revision_class())

    @classmethod
    def item_type(cls) -> str:
        """Name stored in ``Revision.item_type``: the hierarchy's base class."""
        return sa_inspect(cls).base_mapper.class_.__name__

    @classmethod
    def _switch_names(cls) -> List[str]:
        return [
            c.__name__
            for c in cls.__mro__
            if issubclass(c, Versioned) and c is not Versioned
        ]

    @classmethod
    def revisions_off(cls) -> None:
        """Stop capturing this class in the current context."""
        context.suspend_type(cls.__name__)

    @classmethod
    def revisions_on(cls) -> None:
        context.resume_type(cls.__name__)

    @classmethod
    def revisions_enabled(cls) -> bool:
        return all(context.type_enabled(name) for name in cls._switch_names())

    @classmethod
    @contextmanager
    def without_revisions(cls) -> Iterator[None]:
        """Run the block with capture off for this class.

        The previous on/off state comes back on exit, also on error. Other
        threads and requests are unaffected.
        """
        with context.suspended(cls.__name__):
            yield

    # ------------------------------------------------------------------ #
    # identity
    # ------------------------------------------------------------------ #
    def item_id(self) -> str:
        values = sa_inspect(type(self)).primary_key_from_instance(self)
        return ",".join(str(v) for v in values)

    @property
    def live(self) -> bool:
        """False for instances rebuilt from a revision."""
        return self.source_revision is None

    def _revision_session(self):
        session = object_session(self)
        if session is None and self.source_revision is not None:
            session = object_session(self.source_revision)
        if session is None:
            raise DetachedRecordError(
                f"{type(self).__name__} {self.item_id()} is not attached to a session"
            )
        return session

    # ------------------------------------------------------------------ #
    # queries
    # ------------------------------------------------------------------ #
    @property
    def revisions(self) -> List[Any]:
        """Every revision of this item, oldest first. Re-queried on access."""
        if self.source_revision is None and sa_inspect(self).identity is None:
            return []  # never flushed
        return self.revision_store().by_item(
            self._revision_session(), self.item_type(), self.item_id()
        )

    def originator(self) -> Optional[str]:
        """Who put the item into its current state."""
        last = self.revision_store().latest(
            self._revision_session(), self.item_type(), self.item_id()
        )
        return last.whodunnit if last is not None else None

    def revision_at(self, timestamp: dt.datetime, has_one: bool | float = False):
        """The item as it was at ``timestamp``.

        ``None`` if it did not exist yet; ``self`` if nothing changed since.
        """
        following = self.revision_store().following(
            self._revision_session(), self.item_type(), self.item_id(), timestamp
        )
        if not following:
            return self
        return following[0].reify(has_one=has_one)

    def revisions_between(
        self, start: dt.datetime, end: dt.datetime, has_one: bool | float = False
    ) -> List[Any]:
        """The item's states at each revision stamped strictly between the bounds."""
        found = self.revision_store().between(
            self._revision_session(), self.item_type(), self.item_id(), start, end
        )
        return [self.revision_at(r.timestamp, has_one=has_one) for r in found]

    def previous_revision(self):
        """The item as it was one revision back, or None."""
        if self.source_revision is not None:
            preceding = self.source_revision.previous
        else:
            preceding = self.revision_store().latest(
                self._revision_session(), self.item_type(), self.item_id()
            )
        return preceding.reify() if preceding is not None else None

    def next_revision(self):
        """The item as it became next, or None (always None for a live record)."""
        if self.source_revision is None:
            return None
        subsequent = self.source_revision.next
        return subsequent.reify() if subsequent is not None else None
