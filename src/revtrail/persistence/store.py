"""
Thin data-access layer around a revision table.

Writes go through the *flushing* connection handed to the lifecycle hooks so
they share the host transaction; reads go through the caller's Session.
Every query over an item's trail is ordered ``(timestamp, id)`` ascending
unless stated otherwise.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from sqlalchemy import Select, and_, insert, or_, select
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from ..exceptions import TrailClosedError

EVENTS = ("create", "update", "destroy")


class RevisionStore:
    """Queries and appends for one revision class."""

    def __init__(self, revision_class: Type[Any]):
        self.revision_class = revision_class

    # ---- helpers --------------------------------------------------------
    @property
    def _ts(self):
        return getattr(self.revision_class, self.revision_class.__timestamp_field__)

    @property
    def _id(self):
        return self.revision_class.id

    def _ordered(self, q: Select, descending: bool = False) -> Select:
        if descending:
            return q.order_by(self._ts.desc(), self._id.desc())
        return q.order_by(self._ts.asc(), self._id.asc())

    def _item(self, item_type: str, item_id: str) -> Select:
        rc = self.revision_class
        return select(rc).where(rc.item_type == item_type, rc.item_id == str(item_id))

    # ---- writes ---------------------------------------------------------
    def closed(self, connection: Connection, item_type: str, item_id: str) -> bool:
        """True when the item's latest revision is a ``destroy``."""
        rc = self.revision_class
        last = connection.execute(
            self._ordered(
                select(rc.event).where(rc.item_type == item_type, rc.item_id == item_id),
                descending=True,
            ).limit(1)
        ).scalar()
        return last == "destroy"

    def append(self, connection: Connection, values: Dict[str, Any]) -> None:
        """Insert one revision row.

        Refuses to write past a ``destroy`` revision of the same item, except
        for a ``create``: a new row that reuses the key starts a new trail.
        """
        rc = self.revision_class
        if values["event"] != "create" and self.closed(
            connection, values["item_type"], values["item_id"]
        ):
            raise TrailClosedError(
                f"{values['item_type']} {values['item_id']} was destroyed; "
                f"its trail accepts no further revisions"
            )
        connection.execute(insert(rc.__table__).values(**values))

    # ---- reads ----------------------------------------------------------
    def by_item(self, session: Session, item_type: str, item_id: str) -> List[Any]:
        """All revisions of one item, oldest → newest."""
        return list(session.scalars(self._ordered(self._item(item_type, item_id))))

    def latest(self, session: Session, item_type: str, item_id: str) -> Optional[Any]:
        q = self._ordered(self._item(item_type, item_id), descending=True).limit(1)
        return session.scalars(q).first()

    def with_events(self, session: Session, events: Iterable[str]) -> List[Any]:
        """Revisions of every item whose event is one of ``events``."""
        q = select(self.revision_class).where(
            self.revision_class.event.in_(list(events))
        )
        return list(session.scalars(self._ordered(q)))

    def creates(self, session: Session) -> List[Any]:
        return self.with_events(session, ["create"])

    def updates(self, session: Session) -> List[Any]:
        return self.with_events(session, ["update"])

    def destroys(self, session: Session) -> List[Any]:
        return self.with_events(session, ["destroy"])

    def subsequent(self, session: Session, revision: Any) -> List[Any]:
        """Siblings strictly after ``revision``, ascending."""
        ts = getattr(revision, revision.__timestamp_field__)
        q = self._item(revision.item_type, revision.item_id).where(
            or_(self._ts > ts, and_(self._ts == ts, self._id > revision.id))
        )
        return list(session.scalars(self._ordered(q)))

    def preceding(self, session: Session, revision: Any) -> List[Any]:
        """Siblings strictly before ``revision``, *descending*."""
        ts = getattr(revision, revision.__timestamp_field__)
        q = self._item(revision.item_type, revision.item_id).where(
            or_(self._ts < ts, and_(self._ts == ts, self._id < revision.id))
        )
        return list(session.scalars(self._ordered(q, descending=True)))

    def following(
        self, session: Session, item_type: str, item_id: str, timestamp: dt.datetime
    ) -> List[Any]:
        """Revisions stamped strictly after ``timestamp``.

        A revision stores the state *before* its event, so the first one
        after T holds the state as of T.
        """
        q = self._item(item_type, item_id).where(self._ts > timestamp)
        return list(session.scalars(self._ordered(q)))

    def between(
        self,
        session: Session,
        item_type: str,
        item_id: str,
        start: dt.datetime,
        end: dt.datetime,
    ) -> List[Any]:
        """Revisions with start < timestamp < end."""
        q = self._item(item_type, item_id).where(self._ts > start, self._ts < end)
        return list(session.scalars(self._ordered(q)))

    def index(self, session: Session, revision: Any) -> int:
        """Zero-based position of ``revision`` among its siblings, by id."""
        rc = self.revision_class
        ids: Sequence[int] = session.scalars(
            select(rc.id)
            .where(rc.item_type == revision.item_type, rc.item_id == revision.item_id)
            .order_by(rc.id.asc())
        ).all()
        return list(ids).index(revision.id)
