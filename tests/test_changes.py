"""Tests for change filtering and option checking (revtrail.core.changes)."""

import pytest

from revtrail import ConfigurationError, Revision, TrackingOptions
from revtrail.core.changes import check_options, notably_changed, should_capture

from .models import ArticleRevision, GadgetRevision


class Rec:
    def __init__(self, **kw):
        self.__dict__.update(kw)


# ---------------------------------------------------------------------------
# Notable fields
# ---------------------------------------------------------------------------


def test_every_change_counts_without_options():
    assert notably_changed(["a", "b"], TrackingOptions()) == ["a", "b"]


def test_ignore_and_skip_remove_fields():
    options = TrackingOptions(ignore={"a"}, skip="b")

    assert notably_changed(["a", "b", "c"], options) == ["c"]


def test_only_narrows_notable_fields():
    options = TrackingOptions(only={"content"})

    assert notably_changed(["title", "content"], options) == ["content"]
    assert notably_changed(["title"], options) == []


def test_ignore_beats_only():
    options = TrackingOptions(only={"a", "b"}, ignore={"a"})

    assert notably_changed(["a"], options) == []
    assert notably_changed(["a", "b"], options) == ["b"]


# ---------------------------------------------------------------------------
# should_capture
# ---------------------------------------------------------------------------


def test_update_without_notable_change_is_not_captured():
    options = TrackingOptions(ignore={"title"})

    assert should_capture("update", ["title"], options, Rec()) == (False, [])


def test_events_outside_on_are_not_captured():
    options = TrackingOptions(on={"create"})

    assert should_capture("destroy", [], options, Rec()) == (False, [])
    assert should_capture("create", [], options, Rec()) == (True, [])


def test_gates_apply_to_every_event():
    options = TrackingOptions(**{"if": lambda r: r.ok, "unless": lambda r: r.draft})

    assert should_capture("create", [], options, Rec(ok=True, draft=False))[0]
    assert not should_capture("create", [], options, Rec(ok=False, draft=False))[0]
    assert not should_capture("destroy", [], options, Rec(ok=True, draft=True))[0]
    assert should_capture("update", ["x"], options, Rec(ok=True, draft=False)) == (
        True,
        ["x"],
    )


def test_if_can_be_passed_by_field_name():
    options = TrackingOptions(if_=lambda r: False)

    assert not should_capture("create", [], options, Rec())[0]


# ---------------------------------------------------------------------------
# check_options
# ---------------------------------------------------------------------------


def test_unknown_event_is_rejected():
    with pytest.raises(ConfigurationError, match="unknown events"):
        check_options(TrackingOptions(on={"create", "touch"}), Revision, "Thing")


def test_only_entirely_ignored_is_rejected():
    options = TrackingOptions(only={"a"}, ignore={"a"})

    with pytest.raises(ConfigurationError, match="only"):
        check_options(options, Revision, "Thing")


def test_only_entirely_ignored_is_fine_when_updates_are_not_tracked():
    options = TrackingOptions(on={"create"}, only={"a"}, skip={"a"})

    check_options(options, Revision, "Thing")


def test_meta_without_revision_column_is_rejected():
    options = TrackingOptions(meta={"answer": 42})

    with pytest.raises(ConfigurationError, match="answer"):
        check_options(options, GadgetRevision, "Thing")
    check_options(options, ArticleRevision, "Thing")


def test_contradictory_options_fail_at_class_definition():
    from sqlalchemy import Column, Integer
    from sqlalchemy.orm import declarative_base

    from revtrail import Versioned

    Scratch = declarative_base()

    with pytest.raises(ConfigurationError):

        class Broken(Versioned, Scratch):
            __tablename__ = "broken"
            __revisions__ = TrackingOptions(only={"a"}, ignore={"a"})

            id = Column(Integer, primary_key=True)
