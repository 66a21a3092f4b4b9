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
"""Outbound ports: backend query, backend context and repository interfaces."""

from __future__ import annotations

from typing import Any, Protocol, TypeVar, runtime_checkable

from pysef.data.context import EntityEntry
from pysef.data.predicate import Predicate
from pysef.data.specification import Direction, QuerySpecification
from pysef.data.tracking import EntityState, RefreshMode

T = TypeVar("T")


@runtime_checkable
class QueryPort(Protocol[T]):
    """An executable backend query; builder methods return the query."""

    def include(self, path: str) -> QueryPort[T]: ...

    def where(self, predicate: Predicate) -> QueryPort[T]: ...

    def order_by(self, field: str, direction: Direction) -> QueryPort[T]: ...

    def skip(self, count: int) -> QueryPort[T]: ...

    def take(self, count: int) -> QueryPort[T]: ...

    def no_tracking(self) -> QueryPort[T]: ...

    def to_list(self) -> list[T]: ...

    def count(self) -> int: ...


@runtime_checkable
class ObjectContextPort(Protocol):
    """Change-tracking primitives a backend context provides."""

    @property
    def connection_string(self) -> str: ...

    def create_query(self, entity_set: str, entity_type: type[T]) -> QueryPort[T]: ...

    def add_object(self, entity_set: str, entity: Any) -> None: ...

    def attach_to(self, entity_set: str, entity: Any) -> None: ...

    def detach(self, entity: Any) -> None: ...

    def delete_object(self, entity: Any) -> None: ...

    def refresh(self, mode: RefreshMode, entity: Any) -> None: ...

    def save_changes(self) -> int: ...

    def get_state(self, entity: Any) -> EntityState: ...

    def try_get_entry(self, entity: Any) -> EntityEntry | None: ...

    def change_state(self, entity: Any, state: EntityState) -> None: ...

    def apply_current_values(self, entity_set: str, entity: Any) -> Any: ...

    def pending_entries(self) -> list[EntityEntry]: ...

    def create_object(self, entity_type: type[T]) -> T: ...

    def clone(self) -> ObjectContextPort: ...

    def close(self) -> None: ...


@runtime_checkable
class RepositoryPort(Protocol):
    """Backend-independent repository surface."""

    def get(self, target: QuerySpecification[T] | type[T], *predicates: Any) -> list[T]: ...

    def count(self, target: QuerySpecification[Any] | type, *predicates: Any) -> int: ...

    def add(self, entity: Any) -> None: ...

    def remove(self, entity: Any) -> None: ...

    def attach(self, entity: Any) -> None: ...

    def refresh(self, entity: Any) -> None: ...

    def save(self) -> int: ...

    def detach(self, entity: Any) -> None: ...

    def create(self, entity_type: type[T]) -> T: ...

    def clone(self) -> RepositoryPort: ...

    def close(self) -> None: ...
