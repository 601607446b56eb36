"""
Type registry – stored type names ➜ versioned classes.

Filled as versioned classes are declared. Lookups fail closed: an unknown
name raises instead of quietly falling back to some other class.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from ..exceptions import TypeResolutionError

logger = logging.getLogger(__name__)


class TypeRegistry:
    def __init__(self) -> None:
        self._types: Dict[str, Type] = {}

    def register(self, name: str, cls: Type) -> None:
        previous = self._types.get(name)
        if previous is not None and previous is not cls:
            logger.warning(
                "Versioned type %r re-registered: %s replaces %s",
                name,
                cls.__qualname__,
                previous.__qualname__,
            )
        self._types[name] = cls

    def get(self, name: str) -> Optional[Type]:
        return self._types.get(name)

    def resolve(self, name: str) -> Type:
        try:
            return self._types[name]
        except KeyError:
            raise TypeResolutionError(f"no versioned type named {name!r}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._types


registry = TypeRegistry()
