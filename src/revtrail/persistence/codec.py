"""
Snapshot codec – attribute map ⇄ bytes.

The payload is UTF-8 JSON wrapped in a versioned envelope::

    {"v": 1, "attributes": {"name": "A", "born": {"__type__": "date", "value": "2020-01-02"}}}

Values JSON cannot carry natively are tagged so they decode to the same
Python type; enum members are stored by their value. Unknown attribute
keys are kept as-is on decode; deciding what to do with them is the
reifier's job.
"""

from __future__ import annotations

import base64
import datetime as dt
import enum
import json
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..exceptions import DecodeError

FORMAT_VERSION = 1
_TAG = "__type__"


# encoders/decoders per tag – order matters: datetime is a subclass of date
_ENCODERS: List[Tuple[type, str, Callable[[Any], str]]] = [
    (dt.datetime, "datetime", lambda v: v.isoformat()),
    (dt.date, "date", lambda v: v.isoformat()),
    (dt.time, "time", lambda v: v.isoformat()),
    (dt.timedelta, "timedelta", lambda v: repr(v.total_seconds())),
    (Decimal, "decimal", str),
    (uuid.UUID, "uuid", str),
    (bytes, "bytes", lambda v: base64.b64encode(v).decode("ascii")),
]

_DECODERS: Dict[str, Callable[[str], Any]] = {
    "datetime": dt.datetime.fromisoformat,
    "date": dt.date.fromisoformat,
    "time": dt.time.fromisoformat,
    "timedelta": lambda s: dt.timedelta(seconds=float(s)),
    "decimal": Decimal,
    "uuid": uuid.UUID,
    "bytes": lambda s: base64.b64decode(s.encode("ascii")),
}


def _tag(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        # stored by value; reify turns it back into the member
        return value.value
    for typ, name, fn in _ENCODERS:
        if isinstance(value, typ):
            return {_TAG: name, "value": fn(value)}
    raise TypeError(f"cannot snapshot value of type {type(value).__name__}")


def _untag(obj: Dict[str, Any]) -> Any:
    if len(obj) == 2 and _TAG in obj and "value" in obj:
        try:
            return _DECODERS[obj[_TAG]](obj["value"])
        except KeyError:
            raise DecodeError(f"unknown value tag {obj[_TAG]!r}") from None
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"bad {obj[_TAG]} value {obj['value']!r}: {exc}") from exc
    return obj


def _dumps(payload: Any) -> bytes:
    return json.dumps(payload, default=_tag, separators=(",", ":")).encode("utf-8")


def _loads(data: bytes | str) -> Any:
    try:
        if isinstance(data, (bytes, bytearray, memoryview)):
            data = bytes(data).decode("utf-8")
        return json.loads(data, object_hook=_untag)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"unreadable snapshot: {exc}") from exc


def _envelope(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict) or not isinstance(payload.get("attributes"), dict):
        raise DecodeError("snapshot envelope is missing 'attributes'")
    if payload.get("v") != FORMAT_VERSION:
        raise DecodeError(f"unsupported snapshot version {payload.get('v')!r}")
    return payload["attributes"]


# ------------------------------------------------------------------ #
# public api
# ------------------------------------------------------------------ #
def encode(attributes: Mapping[str, Any], skip: Iterable[str] = ()) -> bytes:
    """Serialize ``attributes`` minus every name in ``skip``."""
    skip = set(skip)
    attrs = {k: v for k, v in attributes.items() if k not in skip}
    return _dumps({"v": FORMAT_VERSION, "attributes": attrs})


def decode(data: bytes | str) -> Dict[str, Any]:
    """Inverse of :func:`encode`. Raises :class:`DecodeError` on bad input."""
    return dict(_envelope(_loads(data)))


def encode_changes(changes: Mapping[str, Tuple[Any, Any]]) -> bytes:
    """Serialize a ``{name: (old, new)}`` changeset."""
    return _dumps(
        {"v": FORMAT_VERSION, "attributes": {k: list(v) for k, v in changes.items()}}
    )


def decode_changes(data: Optional[bytes | str]) -> Dict[str, List[Any]]:
    if data is None:
        return {}
    changes = _envelope(_loads(data))
    for name, pair in changes.items():
        if not isinstance(pair, list) or len(pair) != 2:
            raise DecodeError(f"changeset entry {name!r} is not an [old, new] pair")
    return dict(changes)
