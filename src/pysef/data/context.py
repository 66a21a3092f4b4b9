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
"""Backend context base class and entity-set handles.

A backend context declares its entity sets as class annotations::

    class ShopContext(SqlAlchemyContext):
        orders: EntityQuery[Order]
        customers: EntitySet[Customer]

and binds a handle to each declared attribute when it is constructed. The
attribute name is the entity-set name.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar, get_args, get_origin

from pysef.data.shape import shape_members
from pysef.data.tracking import EntityState, RefreshMode

T = TypeVar("T")


class EntityQuery(Generic[T]):
    """Query-style handle for the entities of one set."""

    def __init__(self, context: ObjectContext, entity_type: type[T], name: str) -> None:
        self.context = context
        self.entity_type = entity_type
        self.name = name

    def query(self) -> Any:
        """A fresh backend query over this set."""
        return self.context.create_query(self.name, self.entity_type)

    def __repr__(self) -> str:
        return f"{type(self).__name__}[{self.entity_type.__name__}]({self.name!r})"


class EntitySet(EntityQuery[T]):
    """Set-style handle: a query handle that also accepts new entities."""

    def add(self, entity: T) -> None:
        self.context.add_object(self.name, entity)


@dataclass
class EntityEntry:
    """A context's tracking record for one entity."""

    entity: Any
    entity_set: str | None
    state: EntityState
    original_values: dict[str, Any] = field(default_factory=dict)


class ObjectContext(ABC):
    """Base class for backend contexts.

    Subclasses implement the change-tracking primitives of
    :class:`~pysef.data.ports.outbound.ObjectContextPort` and may extend
    ``entity_roots`` with framework base classes at which entity-type
    hierarchies stop.
    """

    entity_roots: ClassVar[tuple[type, ...]] = ()

    def __init__(self) -> None:
        for name, container, entity_type in self.entity_set_declarations():
            setattr(self, name, container(self, entity_type, name))

    @classmethod
    def entity_set_declarations(cls) -> list[tuple[str, type[EntityQuery[Any]], type]]:
        """``(name, handle class, entity type)`` for every declared entity set."""
        declarations = []
        for name, declared in shape_members(cls).items():
            origin = get_origin(declared.annotation)
            args = get_args(declared.annotation)
            if isinstance(origin, type) and issubclass(origin, EntityQuery) and len(args) == 1:
                declarations.append((name, origin, args[0]))
        return declarations

    @classmethod
    def is_entity_root(cls, entity_type: type) -> bool:
        """True when the hierarchy walk must stop below *entity_type*."""
        if entity_type is object or entity_type in cls.entity_roots:
            return True
        return inspect.isabstract(entity_type) or bool(vars(entity_type).get("__abstract__", False))

    def get_state(self, entity: Any) -> EntityState:
        entry = self.try_get_entry(entity)
        if entry is None or entry.entity is not entity:
            return EntityState.DETACHED
        return entry.state

    @property
    @abstractmethod
    def connection_string(self) -> str: ...

    @abstractmethod
    def create_query(self, entity_set: str, entity_type: type[T]) -> Any: ...

    @abstractmethod
    def add_object(self, entity_set: str, entity: Any) -> None: ...

    @abstractmethod
    def attach_to(self, entity_set: str, entity: Any) -> None: ...

    @abstractmethod
    def detach(self, entity: Any) -> None: ...

    @abstractmethod
    def delete_object(self, entity: Any) -> None: ...

    @abstractmethod
    def refresh(self, mode: RefreshMode, entity: Any) -> None: ...

    @abstractmethod
    def save_changes(self) -> int: ...

    @abstractmethod
    def try_get_entry(self, entity: Any) -> EntityEntry | None: ...

    @abstractmethod
    def change_state(self, entity: Any, state: EntityState) -> None: ...

    @abstractmethod
    def apply_current_values(self, entity_set: str, entity: Any) -> Any: ...

    @abstractmethod
    def pending_entries(self) -> list[EntityEntry]: ...

    @abstractmethod
    def create_object(self, entity_type: type[T]) -> T: ...

    @abstractmethod
    def clone(self) -> ObjectContext: ...

    @abstractmethod
    def close(self) -> None: ...
