"""
Public surface for revtrail.
Importing this module does **not** touch the database; call
``revtrail.init_revtrail(engine)`` during application start-up.
"""

from .bootstrap import init_revtrail
from .context import (
    current_context,
    is_enabled,
    request_context,
    reset_enabled,
    set_enabled,
    set_whodunnit,
)
from .core.metadata import Accessor, FromRecord, Literal
from .core.record import TimeTraversable, TrackingOptions, Versioned
from .exceptions import (
    ConfigurationError,
    DecodeError,
    DetachedRecordError,
    MissingFieldWarning,
    RevtrailError,
    TrailClosedError,
    TypeResolutionError,
)
from .persistence.models import ChangesetMixin, Revision, RevisionMixin
from .reify import reify

__all__ = [
    "Accessor",
    "ChangesetMixin",
    "ConfigurationError",
    "DecodeError",
    "DetachedRecordError",
    "FromRecord",
    "Literal",
    "MissingFieldWarning",
    "Revision",
    "RevisionMixin",
    "RevtrailError",
    "TimeTraversable",
    "TrackingOptions",
    "TrailClosedError",
    "TypeResolutionError",
    "Versioned",
    "current_context",
    "init_revtrail",
    "is_enabled",
    "reify",
    "request_context",
    "reset_enabled",
    "set_enabled",
    "set_whodunnit",
]
