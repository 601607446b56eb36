"""
Single entry-point that wires revtrail into a SQLAlchemy engine.
Call once at application start-up, before the first flush.
"""

from typing import Iterable, Optional

from sqlalchemy.engine import Engine

from . import events
from .persistence.models import Base


def init_revtrail(engine: Engine, revision_classes: Optional[Iterable[type]] = None) -> None:
    """
    Create the revision tables and install the lifecycle listeners.

    ``revision_classes`` are dedicated revision classes declared on another
    metadata; their tables are created too.
    """
    Base.metadata.create_all(engine)  # ← default `revisions` table
    for revision_class in revision_classes or ():
        revision_class.__table__.create(engine, checkfirst=True)
    events.install()
