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
"""Query specifications: predicates, eager loads, ordering and pagination.

A :class:`QuerySpecification` is built per query call, mutated by its
owner before execution and discarded afterwards::

    spec = (
        QuerySpecification(Order)
        .where(lambda o: o.total > 100)
        .load_with(lambda o: o.customer)
        .order_by_descending("placed_at")
        .limit(skip=0, take=10)
    )
    orders = repository.get(spec)

The specification never touches a backend; the repository applies it.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pysef.data.composer import and_, convert_shape
from pysef.data.path import resolve_path
from pysef.data.predicate import MemberAccess, Predicate, Term, capture, member_path
from pysef.data.shape import NavigationMember, has_member, member_of

T = TypeVar("T")
U = TypeVar("U")


class Direction(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class OrderBy:
    """The single active sort key."""

    field: str
    direction: Direction = Direction.ASC


@dataclass(frozen=True)
class Limit:
    """Pagination window: skip ``skip`` rows, then take ``take`` (``None`` = unbounded)."""

    skip: int = 0
    take: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.skip, bool) or not isinstance(self.skip, int) or self.skip < 0:
            raise ValueError(f"skip must be a non-negative integer, got {self.skip!r}")
        if self.take is not None and (isinstance(self.take, bool) or not isinstance(self.take, int) or self.take < 0):
            raise ValueError(f"take must be a non-negative integer or None, got {self.take!r}")

    @property
    def is_default(self) -> bool:
        return self.skip == 0 and self.take is None


IncludeKey = NavigationMember | str


class QuerySpecification(Generic[T]):
    """Predicates, eager-load paths, ordering and pagination for one entity type."""

    def __init__(self, entity_type: type[T]) -> None:
        self._entity_type = entity_type
        self._predicates: list[Predicate] = []
        # Keys are members (resolved lazily against the root) or raw dotted paths.
        self._includes: dict[IncludeKey, None] = {}
        self._order: OrderBy | None = None
        self._pagination = Limit()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def entity_type(self) -> type[T]:
        return self._entity_type

    @property
    def predicates(self) -> tuple[Predicate, ...]:
        return tuple(self._predicates)

    @property
    def preload_paths(self) -> tuple[str, ...]:
        """Resolved eager-load paths, de-duplicated, in registration order."""
        paths: dict[str, None] = {}
        for key in self._includes:
            path = key if isinstance(key, str) else resolve_path(self._entity_type, key)
            paths.setdefault(path, None)
        return tuple(paths)

    @property
    def order(self) -> OrderBy | None:
        return self._order

    @property
    def pagination(self) -> Limit:
        return self._pagination

    def combined_predicate(self) -> Predicate | None:
        """AND of all registered predicates, or ``None`` when there are none."""
        if not self._predicates:
            return None
        return and_(*self._predicates)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def where(self, *predicates: Predicate | Callable[[Any], Any]) -> QuerySpecification[T]:
        """Append predicates; plain callables are captured over the entity type."""
        for predicate in predicates:
            if not isinstance(predicate, Predicate):
                predicate = Predicate.of(self._entity_type, predicate)
            if predicate.shape is not self._entity_type:
                raise TypeError(
                    f"Predicate over {predicate.shape.__name__} cannot filter {self._entity_type.__name__}"
                )
            self._predicates.append(predicate)
        return self

    def load_with(self, target: Any) -> QuerySpecification[T]:
        """Register an eager-load requirement; registering the same one twice is a no-op.

        *target* is a dotted path, a ``NavigationMember``, a SQLAlchemy
        attribute or a lambda selecting a member (``lambda o: o.customer``).
        """
        self._includes.setdefault(self._include_key(target), None)
        return self

    def order_by(self, field: Any, direction: Direction | str = Direction.ASC) -> QuerySpecification[T]:
        """Replace the active sort key."""
        self._order = OrderBy(self._field_name(field), Direction(direction))
        return self

    def order_by_descending(self, field: Any) -> QuerySpecification[T]:
        return self.order_by(field, Direction.DESC)

    def limit(self, skip: int | Limit = 0, take: int | None = None) -> QuerySpecification[T]:
        """Replace pagination with ``skip`` / ``take`` (or a ready-made :class:`Limit`)."""
        self._pagination = skip if isinstance(skip, Limit) else Limit(skip, take)
        return self

    def set_preloaded_paths(self, paths: Iterable[Any]) -> QuerySpecification[T]:
        """Replace every eager-load requirement with *paths*."""
        self._includes = {}
        for path in paths:
            self.load_with(path)
        return self

    def set_order(self, order: OrderBy | None) -> QuerySpecification[T]:
        self._order = order
        return self

    def create(self) -> QuerySpecification[T]:
        """A fresh, empty specification for the same entity type."""
        return QuerySpecification(self._entity_type)

    def copy_to(self, other: QuerySpecification[U]) -> QuerySpecification[U]:
        """Project this specification onto *other*, which may target another type.

        Pagination and order are copied verbatim, predicates are converted
        to the destination shape and member-based eager loads are
        re-resolved against the destination root. *other* ends up owning
        independent copies of everything.

        Raises:
            ShapeConversionError: If a predicate references a member the
                destination type lacks.
        """
        converted = [convert_shape(p, self._entity_type, other.entity_type) for p in self._predicates]
        other._predicates = converted
        other._includes = dict(self._includes)
        other._order = self._order
        other._pagination = self._pagination
        return other

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _include_key(self, target: Any) -> IncludeKey:
        if isinstance(target, str):
            return target
        if callable(target) and not hasattr(target, "class_") and not isinstance(target, NavigationMember):
            _, target = capture(self._entity_type, target)
        return member_of(target)

    def _field_name(self, field: Any) -> str:
        if isinstance(field, str):
            if "." not in field and not has_member(self._entity_type, field):
                raise AttributeError(f"{self._entity_type.__name__} has no member '{field}'")
            return field
        if isinstance(field, NavigationMember):
            return field.name
        if callable(field) and not hasattr(field, "class_"):
            _, term = capture(self._entity_type, field)
            node = term.node if isinstance(term, Term) else None
            if not isinstance(node, MemberAccess):
                raise TypeError("order_by lambda must select a member, e.g. lambda o: o.total")
            _, names = member_path(node)
            return ".".join(names)
        return member_of(field).name

    def __repr__(self) -> str:
        return (
            f"QuerySpecification({self._entity_type.__name__}, predicates={len(self._predicates)}, "
            f"preload={list(self.preload_paths)}, order={self._order}, pagination={self._pagination})"
        )
