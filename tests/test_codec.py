"""Tests for the snapshot codec (revtrail.persistence.codec).

Covers:
- Typed values surviving encode/decode
- Skipped names never reaching the payload
- Unknown keys kept on decode
- DecodeError for garbage, wrong versions and unknown tags
- Changeset encoding
"""

import datetime as dt
import enum
import json
import uuid
from decimal import Decimal

import pytest

from revtrail.exceptions import DecodeError
from revtrail.persistence import codec


# ---------------------------------------------------------------------------
# Typed values
# ---------------------------------------------------------------------------


def test_mixed_attributes_come_back_with_their_types():
    """Every column type a model typically uses decodes to an equal value."""
    attributes = {
        "name": "Henry",
        "an_integer": 2,
        "a_float": 153.01,
        "a_boolean": True,
        "a_text": None,
        "a_datetime": dt.datetime(2024, 3, 1, 9, 30, 15, 120000),
        "an_aware_datetime": dt.datetime(2024, 3, 1, 9, 30, tzinfo=dt.timezone.utc),
        "a_date": dt.date(2024, 3, 1),
        "a_time": dt.time(14, 5, 6),
        "a_duration": dt.timedelta(hours=1, seconds=3),
        "a_decimal": Decimal("12.50"),
        "a_uuid": uuid.UUID("12345678-1234-5678-1234-567812345678"),
        "a_blob": b"\x00\xffbinary",
        "tags": ["a", "b"],
    }

    decoded = codec.decode(codec.encode(attributes))

    assert decoded.keys() == attributes.keys()
    assert decoded["a_float"] == pytest.approx(153.01, abs=1e-5)
    for key in attributes:
        if key != "a_float":
            assert decoded[key] == attributes[key], key
            assert type(decoded[key]) is type(attributes[key]), key


def test_datetime_is_not_confused_with_date():
    decoded = codec.decode(codec.encode({"at": dt.datetime(2024, 1, 2, 3, 4, 5)}))

    assert isinstance(decoded["at"], dt.datetime)


def test_payload_is_a_versioned_json_envelope():
    payload = json.loads(codec.encode({"born": dt.date(2020, 1, 2)}))

    assert payload == {
        "v": codec.FORMAT_VERSION,
        "attributes": {"born": {"__type__": "date", "value": "2020-01-02"}},
    }


class Size(enum.Enum):
    SMALL = 1
    LARGE = 2


def test_enum_member_is_stored_by_value():
    payload = json.loads(codec.encode({"size": Size.LARGE}))

    assert payload["attributes"] == {"size": 2}
    assert codec.decode(codec.encode({"size": Size.SMALL})) == {"size": 1}


def test_unsupported_value_type_is_rejected_on_encode():
    with pytest.raises(TypeError):
        codec.encode({"thing": object()})


# ---------------------------------------------------------------------------
# Skip / unknown keys
# ---------------------------------------------------------------------------


def test_skipped_names_are_not_stored():
    data = codec.encode({"title": "t", "file_upload": "big"}, skip={"file_upload"})

    assert b"file_upload" not in data
    assert codec.decode(data) == {"title": "t"}


def test_unknown_keys_are_kept_on_decode():
    """Deciding what to do with stale attributes is left to reification."""
    data = json.dumps({"v": 1, "attributes": {"id": 1, "removed_column": "x"}})

    assert codec.decode(data.encode()) == {"id": 1, "removed_column": "x"}


# ---------------------------------------------------------------------------
# Decode failures
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "data",
    [
        b"not json at all",
        b"\xff\xfe\xfd",
        b"[1, 2, 3]",
        b'{"v": 1}',
        b'{"v": 1, "attributes": [1]}',
    ],
)
def test_garbage_raises_decode_error(data):
    with pytest.raises(DecodeError):
        codec.decode(data)


def test_unsupported_version_raises_decode_error():
    with pytest.raises(DecodeError, match="version"):
        codec.decode(b'{"v": 99, "attributes": {}}')


def test_unknown_tag_raises_decode_error():
    data = b'{"v": 1, "attributes": {"x": {"__type__": "frobnicator", "value": "1"}}}'

    with pytest.raises(DecodeError, match="frobnicator"):
        codec.decode(data)


def test_malformed_tagged_value_raises_decode_error():
    data = b'{"v": 1, "attributes": {"x": {"__type__": "date", "value": "yesterday"}}}'

    with pytest.raises(DecodeError):
        codec.decode(data)


# ---------------------------------------------------------------------------
# Changesets
# ---------------------------------------------------------------------------


def test_changeset_pairs_decode_as_lists():
    data = codec.encode_changes({"name": ("A", "B"), "a_date": (None, dt.date(2024, 1, 1))})

    assert codec.decode_changes(data) == {
        "name": ["A", "B"],
        "a_date": [None, dt.date(2024, 1, 1)],
    }


def test_missing_changeset_decodes_empty():
    assert codec.decode_changes(None) == {}


def test_changeset_entry_must_be_a_pair():
    with pytest.raises(DecodeError, match="pair"):
        codec.decode_changes(b'{"v": 1, "attributes": {"name": ["only-one"]}}')
