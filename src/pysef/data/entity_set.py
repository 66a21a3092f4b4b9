# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Entity-set resolution by convention.

Given a backend context type and an entity type, find the context
attribute that backs the entity's concrete (nearest mapped) type:

1. Walk up the primary base chain until the next base is an entity root
   (``object``, a framework base, an abstract class). The last class
   reached is the concrete type ``C``.
2. Prefer an attribute declared as ``EntityQuery[C]``; fall back to one
   declared as ``EntitySet[C]``.

Results, and the add entry point for each pair, are cached for the life
of the process.
"""

from __future__ import annotations

import inspect
import threading
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from pysef.data.context import EntitySet, ObjectContext
from pysef.kernel.exceptions import EntitySetNotFoundError

logger = structlog.get_logger("pysef.data.entity_set")

_MISSING = object()


@dataclass(frozen=True)
class EntitySetDescriptor:
    """The context attribute backing an entity type."""

    name: str
    entity_type: type
    container: type


class EntitySetResolver:
    """Process-wide, lock-protected registry of entity-set resolutions."""

    _descriptors: dict[tuple[type, type], EntitySetDescriptor] = {}
    _add_methods: dict[tuple[type, type], str | None] = {}
    _lock = threading.Lock()

    @classmethod
    def resolve(cls, context_type: type[ObjectContext], entity_type: type) -> EntitySetDescriptor:
        """Return the entity set backing *entity_type* on *context_type*.

        Raises:
            EntitySetNotFoundError: If the context declares no matching set.
        """
        key = (context_type, entity_type)
        descriptor = cls._descriptors.get(key)
        if descriptor is not None:
            return descriptor
        descriptor = cls._find(context_type, entity_type)
        with cls._lock:
            cls._descriptors.setdefault(key, descriptor)
        logger.debug(
            "entity_set_resolved",
            context=context_type.__name__,
            entity_type=entity_type.__name__,
            entity_set=descriptor.name,
        )
        return descriptor

    @classmethod
    def concrete_type(cls, context_type: type[ObjectContext], entity_type: type) -> type:
        """The nearest ancestor of *entity_type* whose base is an entity root."""
        current = entity_type
        while True:
            base = current.__bases__[0] if current.__bases__ else object
            if context_type.is_entity_root(base):
                return current
            current = base

    @classmethod
    def add_method(cls, context_type: type[ObjectContext], entity_type: type) -> str | None:
        """Name of a context method ``add*(entity: C)`` for the concrete type, if any."""
        key = (context_type, entity_type)
        cached = cls._add_methods.get(key, _MISSING)
        if cached is not _MISSING:
            return cached  # type: ignore[return-value]
        concrete = cls.resolve(context_type, entity_type).entity_type
        found = None
        for name, function in inspect.getmembers(context_type, inspect.isfunction):
            if name.startswith("add") and name != "add_object" and _accepts_only(function, concrete):
                found = name
                break
        with cls._lock:
            cls._add_methods.setdefault(key, found)
        return found

    @classmethod
    def clear_cache(cls) -> None:
        with cls._lock:
            cls._descriptors.clear()
            cls._add_methods.clear()

    @classmethod
    def _find(cls, context_type: type[ObjectContext], entity_type: type) -> EntitySetDescriptor:
        concrete = cls.concrete_type(context_type, entity_type)
        declarations = [d for d in context_type.entity_set_declarations() if d[2] is concrete]
        query_style = [d for d in declarations if not issubclass(d[1], EntitySet)]
        for name, container, declared in query_style or declarations:
            return EntitySetDescriptor(name, declared, container)
        raise EntitySetNotFoundError(
            f"{context_type.__name__} declares no EntityQuery[{concrete.__name__}] "
            f"or EntitySet[{concrete.__name__}] for {entity_type.__name__}",
            code="ENTITY_SET_NOT_FOUND",
            context={"context": context_type.__name__, "entity_type": entity_type.__name__},
        )


def _accepts_only(function: Callable[..., Any], concrete: type) -> bool:
    parameters = list(inspect.signature(function).parameters.values())[1:]
    if len(parameters) != 1 or parameters[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        return False
    try:
        hints = typing.get_type_hints(function)
    except (NameError, TypeError):
        return False
    return hints.get(parameters[0].name) is concrete
