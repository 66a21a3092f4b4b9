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
"""SQLAlchemy object context — change tracking over a synchronous ``Session``.

Subclass it and declare the entity sets::

    class ShopContext(SqlAlchemyContext):
        orders: EntityQuery[Order]
        customers: EntitySet[Customer]

    context = ShopContext("sqlite:///shop.db")
"""

from __future__ import annotations

from typing import Any, TypeVar

import structlog
from sqlalchemy import URL, Engine, create_engine, inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified

from pysef.data.context import EntityEntry, ObjectContext
from pysef.data.entity_set import EntitySetResolver
from pysef.data.relational.sqlalchemy.query import SqlAlchemyQuery
from pysef.data.tracking import EntityState, RefreshMode
from pysef.kernel.exceptions import (
    ArgumentError,
    EntityNotTrackedError,
    EntitySetNotFoundError,
    InvalidStateTransitionError,
)

T = TypeVar("T")

logger = structlog.get_logger("pysef.data.relational.sqlalchemy")


class SqlAlchemyContext(ObjectContext):
    """Object context owning one ``Engine`` and one ``Session``.

    Args:
        url: Database URL passed to ``create_engine``.
        echo: Log emitted SQL.
        engine_options: Extra keyword arguments for ``create_engine``.
    """

    def __init__(self, url: str | URL, *, echo: bool = False, engine_options: dict[str, Any] | None = None) -> None:
        super().__init__()
        self._url = url
        self._echo = echo
        self._engine_options = dict(engine_options or {})
        self._engine: Engine = create_engine(url, echo=echo, **self._engine_options)
        self._session = Session(self._engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def is_entity_root(cls, entity_type: type) -> bool:
        # Unmapped bases (the declarative base, mixins) end the hierarchy walk.
        return super().is_entity_root(entity_type) or sa_inspect(entity_type, raiseerr=False) is None

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def session(self) -> Session:
        return self._session

    @property
    def connection_string(self) -> str:
        if isinstance(self._url, URL):
            return self._url.render_as_string(hide_password=False)
        return str(self._url)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_query(self, entity_set: str, entity_type: type[T]) -> SqlAlchemyQuery[T]:
        return SqlAlchemyQuery(self, entity_type)

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def add_object(self, entity_set: str, entity: Any) -> None:
        self._session.add(entity)

    def attach_to(self, entity_set: str, entity: Any) -> None:
        state = sa_inspect(entity)
        if state.transient:
            if any(v is None for v in state.mapper.primary_key_from_instance(entity)):
                raise ArgumentError(
                    f"Cannot attach {type(entity).__name__} without a complete primary key",
                    code="MISSING_KEY",
                    context={"entity_set": entity_set},
                )
            # A keyed instance built by hand stands for an existing row.
            make_transient_to_detached(entity)
        self._session.add(entity)

    def detach(self, entity: Any) -> None:
        self._require_tracked(entity)
        self._session.expunge(entity)

    def delete_object(self, entity: Any) -> None:
        self._require_tracked(entity)
        if sa_inspect(entity).pending:
            self._session.expunge(entity)
        else:
            self._session.delete(entity)

    def refresh(self, mode: RefreshMode, entity: Any) -> None:
        self._require_tracked(entity)
        state = sa_inspect(entity)
        if state.key is None:
            raise EntityNotTrackedError(
                f"{type(entity).__name__} has not been persisted yet", code="ENTITY_NOT_PERSISTED"
            )
        if mode is RefreshMode.STORE_WINS:
            self._session.refresh(entity)
            return
        columns = state.mapper.column_attrs
        local_changes = {
            attr.key: attr.value for attr in state.attrs if attr.key in columns and attr.history.has_changes()
        }
        self._session.refresh(entity)
        for key, value in local_changes.items():
            setattr(entity, key, value)

    def save_changes(self) -> int:
        session = self._session
        written = len(session.new) + len(session.deleted) + sum(1 for e in session.dirty if session.is_modified(e))
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        return written

    def try_get_entry(self, entity: Any) -> EntityEntry | None:
        tracked = entity if entity in self._session else self._tracked_counterpart(entity)
        if tracked is None:
            return None
        return self._entry(tracked, self._state(tracked))

    def change_state(self, entity: Any, state: EntityState) -> None:
        self._require_tracked(entity)
        current = self._state(entity)
        if state is current and state is not EntityState.MODIFIED:
            return
        if state is EntityState.MODIFIED and current is EntityState.UNCHANGED:
            loaded = sa_inspect(entity).dict
            for column in sa_inspect(type(entity)).column_attrs:
                if column.key in loaded and not any(c.primary_key for c in column.columns):
                    flag_modified(entity, column.key)
            return
        if state is EntityState.DELETED:
            self.delete_object(entity)
            return
        if state is EntityState.DETACHED:
            self.detach(entity)
            return
        raise InvalidStateTransitionError(
            f"Cannot move {type(entity).__name__} from {current.value} to {state.value}",
            code="INVALID_STATE_TRANSITION",
            context={"from": current.value, "to": state.value},
        )

    def apply_current_values(self, entity_set: str, entity: Any) -> Any:
        if entity in self._session:
            return entity
        tracked = self._tracked_counterpart(entity)
        if tracked is None:
            raise EntityNotTrackedError(
                f"No tracked {type(entity).__name__} shares this entity's identity", code="ENTITY_NOT_TRACKED"
            )
        values = sa_inspect(entity).dict
        for column in sa_inspect(type(entity)).column_attrs:
            if column.key in values and not any(c.primary_key for c in column.columns):
                setattr(tracked, column.key, values[column.key])
        return tracked

    def pending_entries(self) -> list[EntityEntry]:
        session = self._session
        entries = [self._entry(e, EntityState.ADDED) for e in session.new]
        entries += [self._entry(e, EntityState.MODIFIED) for e in session.dirty if session.is_modified(e)]
        entries += [self._entry(e, EntityState.DELETED) for e in session.deleted]
        return entries

    def create_object(self, entity_type: type[T]) -> T:
        return entity_type()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clone(self) -> SqlAlchemyContext:
        return type(self)(self._url, echo=self._echo, engine_options=self._engine_options)

    def close(self) -> None:
        self._session.close()
        self._engine.dispose()
        logger.debug("context_closed", url=self._engine.url.render_as_string(hide_password=True))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_tracked(self, entity: Any) -> None:
        if entity not in self._session:
            raise EntityNotTrackedError(
                f"{type(entity).__name__} is not tracked by this context", code="ENTITY_NOT_TRACKED"
            )

    def _state(self, entity: Any) -> EntityState:
        if entity not in self._session:
            return EntityState.DETACHED
        state = sa_inspect(entity)
        if state.pending:
            return EntityState.ADDED
        if state.deleted or entity in self._session.deleted:
            return EntityState.DELETED
        if self._session.is_modified(entity):
            return EntityState.MODIFIED
        return EntityState.UNCHANGED

    def _tracked_counterpart(self, entity: Any) -> Any | None:
        mapper = sa_inspect(type(entity), raiseerr=False)
        if mapper is None:
            return None
        identity = mapper.primary_key_from_instance(entity)
        if any(value is None for value in identity):
            return None
        return self._session.identity_map.get(mapper.identity_key_from_primary_key(identity))

    def _entry(self, entity: Any, state: EntityState) -> EntityEntry:
        try:
            entity_set: str | None = EntitySetResolver.resolve(type(self), type(entity)).name
        except EntitySetNotFoundError:
            entity_set = None
        return EntityEntry(entity, entity_set, state, self._original_values(entity))

    @staticmethod
    def _original_values(entity: Any) -> dict[str, Any]:
        state = sa_inspect(entity)
        values: dict[str, Any] = {}
        for column in state.mapper.column_attrs:
            history = state.attrs[column.key].history
            if history.deleted:
                values[column.key] = history.deleted[0]
            elif history.unchanged:
                values[column.key] = history.unchanged[0]
        return values
