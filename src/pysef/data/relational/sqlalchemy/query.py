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
"""SQLAlchemy query — the QueryPort implementation over ``select()``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import Select, func, inspect as sa_inspect, select
from sqlalchemy.orm import Session, selectinload

from pysef.data.predicate import Predicate
from pysef.data.relational.sqlalchemy.compiler import SqlAlchemyPredicateCompiler
from pysef.data.specification import Direction
from pysef.kernel.exceptions import InvalidIncludePathError, UnsupportedPredicateError

if TYPE_CHECKING:
    from pysef.data.relational.sqlalchemy.context import SqlAlchemyContext

T = TypeVar("T")


class SqlAlchemyQuery(Generic[T]):
    """Builds a ``Select`` for one entity type and runs it in the context's session.

    Includes become chained ``selectinload`` options. A no-tracking query
    runs in a short-lived session bound to the primary session's connection,
    so its results come back detached.
    """

    def __init__(self, context: SqlAlchemyContext, entity_type: type[T]) -> None:
        self._context = context
        self._entity_type = entity_type
        self._stmt: Select[Any] = select(entity_type)
        self._tracking = True

    @property
    def statement(self) -> Select[Any]:
        return self._stmt

    def include(self, path: str) -> SqlAlchemyQuery[T]:
        self._stmt = self._stmt.options(self._loader_option(path))
        return self

    def where(self, predicate: Predicate) -> SqlAlchemyQuery[T]:
        self._stmt = self._stmt.where(SqlAlchemyPredicateCompiler(self._entity_type).compile(predicate))
        return self

    def order_by(self, field: str, direction: Direction) -> SqlAlchemyQuery[T]:
        if "." in field:
            raise UnsupportedPredicateError(
                f"Ordering by nested member '{field}' is not supported", code="UNSUPPORTED_ORDER"
            )
        column = getattr(self._entity_type, field)
        self._stmt = self._stmt.order_by(column.desc() if direction is Direction.DESC else column.asc())
        return self

    def skip(self, count: int) -> SqlAlchemyQuery[T]:
        self._stmt = self._stmt.offset(count)
        return self

    def take(self, count: int) -> SqlAlchemyQuery[T]:
        self._stmt = self._stmt.limit(count)
        return self

    def no_tracking(self) -> SqlAlchemyQuery[T]:
        self._tracking = False
        return self

    def to_list(self) -> list[T]:
        session = self._context.session
        if self._tracking:
            return list(session.scalars(self._stmt).unique().all())
        with Session(bind=session.connection()) as detached:
            return list(detached.scalars(self._stmt).unique().all())

    def count(self) -> int:
        inner = self._stmt.order_by(None).limit(None).offset(None).subquery()
        total = self._context.session.scalar(select(func.count()).select_from(inner))
        return int(total or 0)

    def _loader_option(self, path: str) -> Any:
        current: type = self._entity_type
        option: Any = None
        for segment in path.split("."):
            relationships = sa_inspect(current).relationships
            if segment not in relationships:
                raise InvalidIncludePathError(
                    f"'{segment}' in include path '{path}' is not a relationship of {current.__name__}",
                    code="INVALID_INCLUDE_PATH",
                    context={"path": path, "entity_type": self._entity_type.__name__},
                )
            attribute = getattr(current, segment)
            option = selectinload(attribute) if option is None else option.selectinload(attribute)
            current = relationships[segment].mapper.class_
        return option
