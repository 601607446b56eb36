"""Tests for extra revision column resolution (revtrail.core.metadata)."""

from revtrail import Accessor, FromRecord, Literal
from revtrail.core.metadata import coerce, merge


class Post:
    id = 7
    title = "Hello"

    def slug(self):
        return f"post-{self.id}"


# ---------------------------------------------------------------------------
# Value kinds
# ---------------------------------------------------------------------------


def test_literal_is_stored_as_is():
    assert Literal(42).resolve(Post()) == 42


def test_from_record_calls_with_the_record():
    assert FromRecord(lambda post: post.id * 2).resolve(Post()) == 14


def test_accessor_reads_attributes_and_calls_methods():
    assert Accessor("title").resolve(Post()) == "Hello"
    assert Accessor("slug").resolve(Post()) == "post-7"


def test_plain_values_are_coerced():
    assert isinstance(coerce(42), Literal)
    assert isinstance(coerce(len), FromRecord)
    accessor = Accessor("title")
    assert coerce(accessor) is accessor


# ---------------------------------------------------------------------------
# Merge order
# ---------------------------------------------------------------------------


def test_meta_overrides_base_and_ambient_wins():
    base = {"event": "update", "whodunnit": "alice", "ip": None}
    meta = {"whodunnit": Literal("system"), "slug": Accessor("slug")}
    ambient = {"ip": "10.0.0.1", "slug": "from-request"}

    data = merge(base, meta, Post(), ambient)

    assert data == {
        "event": "update",
        "whodunnit": "system",
        "ip": "10.0.0.1",
        "slug": "from-request",
    }


def test_merge_leaves_base_untouched():
    base = {"event": "create"}

    merge(base, {"answer": Literal(1)}, Post(), None)

    assert base == {"event": "create"}
