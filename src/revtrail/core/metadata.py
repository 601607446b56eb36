"""
Extra revision columns, resolved per capture.

A model's ``meta`` maps a revision column to one of three value kinds:

* ``Literal(value)``   – stored as-is
* ``FromRecord(fn)``   – ``fn(record)``
* ``Accessor(name)``   – ``getattr(record, name)``, called if it is a method

Plain callables given in ``meta`` become ``FromRecord``; any other plain
value becomes ``Literal``. Ambient request info is merged last and wins.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import BaseModel


class _MetaValue(BaseModel):
    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    def resolve(self, record: Any) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError


class Literal(_MetaValue):
    value: Any = None

    def __init__(self, value: Any = None, **kw: Any) -> None:
        super().__init__(value=value, **kw)

    def resolve(self, record: Any) -> Any:
        return self.value


class FromRecord(_MetaValue):
    fn: Callable[[Any], Any]

    def __init__(self, fn: Callable[[Any], Any], **kw: Any) -> None:
        super().__init__(fn=fn, **kw)

    def resolve(self, record: Any) -> Any:
        return self.fn(record)


class Accessor(_MetaValue):
    name: str

    def __init__(self, name: str, **kw: Any) -> None:
        super().__init__(name=name, **kw)

    def resolve(self, record: Any) -> Any:
        attr = getattr(record, self.name)
        return attr() if callable(attr) else attr


MetaValue = Union[Literal, FromRecord, Accessor]


def coerce(value: Any) -> MetaValue:
    if isinstance(value, (Literal, FromRecord, Accessor)):
        return value
    if callable(value):
        return FromRecord(value)
    return Literal(value)


def merge(
    base: Mapping[str, Any],
    meta: Mapping[str, MetaValue],
    record: Any,
    ambient: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Revision column values: ``base`` ➜ model metadata ➜ ambient info."""
    data = dict(base)
    for column, value in meta.items():
        data[column] = coerce(value).resolve(record)
    if ambient:
        data.update(ambient)
    return data
