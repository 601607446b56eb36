"""
Revision tables: every tracked change of every versioned record lives here.

``Revision`` is the default table. A model may opt into a dedicated class
built from the same mixins (extra metadata columns, a custom ordering
column via ``__timestamp_field__``, or no ``object_changes`` column).
"""

from __future__ import annotations

import datetime as dt
from typing import Any, ClassVar, Dict, List, Optional

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String
from sqlalchemy.orm import declarative_base, object_session

from ..exceptions import DetachedRecordError
from . import codec
from .store import RevisionStore

Base = declarative_base()


def now_utc() -> dt.datetime:  # compact timezone‑aware timestamp
    return dt.datetime.now(tz=dt.timezone.utc)


class RevisionMixin:
    """Columns and behaviour shared by every revision class."""

    __timestamp_field__: ClassVar[str] = "created_at"

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_type = Column(String(255), nullable=False, index=True)
    item_id = Column(String(255), nullable=False, index=True)
    event = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    object = Column(LargeBinary, nullable=True)
    whodunnit = Column(String(255), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.id} {self.event} "
            f"{self.item_type}#{self.item_id}>"
        )

    # ---- plumbing -------------------------------------------------------
    @classmethod
    def store(cls) -> RevisionStore:
        return RevisionStore(cls)

    @classmethod
    def has_changeset_column(cls) -> bool:
        return "object_changes" in cls.__table__.c

    def _session(self):
        session = object_session(self)
        if session is None:
            raise DetachedRecordError(f"{self!r} is not attached to a session")
        return session

    @property
    def timestamp(self) -> dt.datetime:
        return getattr(self, self.__timestamp_field__)

    # ---- content --------------------------------------------------------
    def reify(self, has_one: bool | float = False):
        """Return the item as it was *before* this revision's event.

        ``None`` for a ``create`` revision. See :func:`revtrail.reify.reify`.
        """
        from ..reify import reify

        return reify(self, has_one=has_one)

    def snapshot(self) -> Optional[Dict[str, Any]]:
        """Decoded ``object`` minus the fields the item type currently skips."""
        if self.object is None:
            return None
        from ..core.registry import registry

        attrs = codec.decode(self.object)
        cls = registry.get(self.item_type)
        if cls is not None:
            for name in cls.__revisions__.skip:
                attrs.pop(name, None)
        return attrs

    @property
    def changeset(self) -> Optional[Dict[str, List[Any]]]:
        """``{name: [old, new]}`` for an update, ``{}`` otherwise.

        ``None`` when this revision class has no ``object_changes`` column.
        """
        if not self.has_changeset_column():
            return None
        return codec.decode_changes(self.object_changes)

    # ---- actors ---------------------------------------------------------
    @property
    def originator(self) -> Optional[str]:
        """Who put the item into the state stored here."""
        prev = self.previous
        return prev.whodunnit if prev is not None else None

    @property
    def terminator(self) -> Optional[str]:
        """Who changed the item away from the state stored here."""
        return self.whodunnit

    # ---- siblings -------------------------------------------------------
    @property
    def sibling_revisions(self) -> List[Any]:
        return self.store().by_item(self._session(), self.item_type, self.item_id)

    @property
    def next(self):
        found = self.store().subsequent(self._session(), self)
        return found[0] if found else None

    @property
    def previous(self):
        found = self.store().preceding(self._session(), self)
        return found[0] if found else None

    @property
    def index(self) -> int:
        return self.store().index(self._session(), self)


class ChangesetMixin:
    """Adds the optional ``object_changes`` column."""

    object_changes = Column(LargeBinary, nullable=True)


class Revision(RevisionMixin, ChangesetMixin, Base):
    """Default revision table shared by all versioned models."""

    __tablename__ = "revisions"
