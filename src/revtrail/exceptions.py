"""
Error taxonomy for revtrail.

Nothing here is retried by the library; every error reaches the caller of
the lifecycle event or query that raised it.
"""


class RevtrailError(Exception):
    """Base class for all revtrail errors."""


class DecodeError(RevtrailError):
    """A stored snapshot could not be read back."""


class TypeResolutionError(RevtrailError):
    """A stored type name or discriminator does not map to a known class."""


class ConfigurationError(RevtrailError):
    """Tracking options are contradictory. Raised at class set-up."""


class TrailClosedError(RevtrailError):
    """An item's trail already ends with a ``destroy`` revision."""


class DetachedRecordError(RevtrailError):
    """A query was made on a record that is not bound to any session."""


class MissingFieldWarning(UserWarning):
    """A snapshot attribute has no writable counterpart on the target class."""
