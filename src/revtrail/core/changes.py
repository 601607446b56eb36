"""
Change filter – is this change worth a revision, and which fields count?

``ignore`` and ``skip`` always beat ``only``. ``if_``/``unless`` gate every
event; the notable-field test applies to updates alone.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Tuple

from ..exceptions import ConfigurationError
from ..persistence.store import EVENTS

logger = logging.getLogger(__name__)


def notably_changed(changed: Iterable[str], options) -> List[str]:
    """Changed names minus ignore/skip, narrowed to ``only`` when given."""
    excluded = options.ignore | options.skip
    notable = [name for name in changed if name not in excluded]
    if options.only:
        notable = [name for name in notable if name in options.only]
    return notable


def passes_gates(record: Any, options) -> bool:
    if options.if_ is not None and not options.if_(record):
        return False
    if options.unless is not None and options.unless(record):
        return False
    return True


def should_capture(
    event: str, changed: Iterable[str], options, record: Any
) -> Tuple[bool, List[str]]:
    """Return ``(capture?, notable field names)`` for one lifecycle event."""
    if event not in options.on:
        return False, []
    notable: List[str] = []
    if event == "update":
        notable = notably_changed(changed, options)
        if not notable:
            return False, []
    return passes_gates(record, options), notable


def check_options(options, revision_class, type_name: str) -> None:
    """Reject contradictory tracking options at class set-up time."""
    unknown = set(options.on) - set(EVENTS)
    if unknown:
        raise ConfigurationError(
            f"{type_name}: unknown events {sorted(unknown)}; expected a subset of {EVENTS}"
        )
    if options.only and "update" in options.on:
        trackable = options.only - options.ignore - options.skip
        if not trackable:
            raise ConfigurationError(
                f"{type_name}: every 'only' field is also ignored or skipped, "
                f"so no update could ever be captured"
            )
    table = getattr(revision_class, "__table__", None)
    if table is not None:
        missing = [column for column in options.meta if column not in table.c]
        if missing:
            raise ConfigurationError(
                f"{type_name}: revision class {revision_class.__name__} has no "
                f"column for meta field(s) {missing}"
            )
    logger.debug("tracking options for %s: %r", type_name, options)
