"""Test fixtures for revtrail.

Provides:
- engine: an in-memory SQLite engine with every sample table and the
  revtrail lifecycle listeners installed
- session: a Session bound to that engine
- clean_context: resets actor context and capture switches around each test
- at: turns an offset in seconds into a fixed, naive UTC datetime
"""

import datetime as dt
from typing import Callable, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from revtrail import context, init_revtrail, reset_enabled, set_enabled
from revtrail.settings import get_settings

from .models import Base

BASE_TIME = dt.datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture()
def engine() -> Iterator[Engine]:
    """Create a fresh in-memory database for one test.

    Yields:
        An Engine whose single connection is shared across threads.
    """
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    init_revtrail(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine: Engine) -> Iterator[Session]:
    """Open a Session on the test engine.

    Yields:
        A Session, closed after the test.
    """
    with Session(engine) as session:
        yield session


@pytest.fixture(autouse=True)
def clean_context() -> Iterator[None]:
    """Start every test with capture on, no actor and no suspended types."""
    request_token = context._request.set(context.RequestContext())
    suspended_token = context._suspended.set(frozenset())
    set_enabled(True)
    get_settings.cache_clear()
    yield
    reset_enabled()
    context._suspended.reset(suspended_token)
    context._request.reset(request_token)
    get_settings.cache_clear()


@pytest.fixture()
def at() -> Callable[[float], dt.datetime]:
    """Return a helper mapping a second offset to a fixed timestamp.

    Returns:
        ``at(-5)`` is five seconds before the reference time.
    """

    def _at(seconds: float) -> dt.datetime:
        return BASE_TIME + dt.timedelta(seconds=seconds)

    return _at
