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
"""Backend-independent repository over an object context.

The repository is stateless orchestration: it holds the attached context
and the tracking options, resolves entity sets by convention, applies
query specifications and drives the context's change-tracking primitives.
One repository wraps one context and is not safe for concurrent use;
:meth:`Repository.clone` hands out an independent one.
"""

from __future__ import annotations

from typing import Any, TypeVar

import structlog

from pysef.data.entity_set import EntitySetResolver
from pysef.data.ports.outbound import ObjectContextPort, QueryPort
from pysef.data.specification import QuerySpecification
from pysef.data.tracking import EntityState, RefreshMode, TrackingPolicy
from pysef.kernel.exceptions import (
    ArgumentError,
    DisposedError,
    EntityNotTrackedError,
    ObjectStateError,
    OperationError,
)

T = TypeVar("T")

logger = structlog.get_logger("pysef.data.repository")


class Repository:
    """Query and change-tracking operations against one backend context.

    Args:
        context: The backend context (see :class:`~pysef.data.context.ObjectContext`).
        tracking: Tracking flags; ``REFRESH_AFTER_SAVE`` by default.
        refresh_mode: Conflict policy used when refreshing after a save.
        strict_refresh: Raise instead of logging when :meth:`refresh` is
            called for an untracked entity.
        auto_save_on_close: Save pending changes when the repository closes.

    Usage::

        with SqlAlchemyRepository(ShopContext("sqlite:///shop.db")) as repo:
            big = repo.get(QuerySpecification(Order).where(lambda o: o.total > 100))
    """

    def __init__(
        self,
        context: ObjectContextPort,
        tracking: TrackingPolicy | str = TrackingPolicy.REFRESH_AFTER_SAVE,
        *,
        refresh_mode: RefreshMode | str = RefreshMode.STORE_WINS,
        strict_refresh: bool = False,
        auto_save_on_close: bool = False,
    ) -> None:
        self._context = context
        self._tracking = TrackingPolicy.parse(tracking)
        self._refresh_mode = RefreshMode.parse(refresh_mode)
        self._strict_refresh = strict_refresh
        self._auto_save_on_close = auto_save_on_close
        self._closed = False

    @property
    def context(self) -> ObjectContextPort:
        return self._context

    @property
    def tracking(self) -> TrackingPolicy:
        return self._tracking

    @property
    def refresh_mode(self) -> RefreshMode:
        return self._refresh_mode

    @property
    def closed(self) -> bool:
        return self._closed

    def _require_open(self) -> ObjectContextPort:
        if self._closed:
            raise DisposedError(f"{type(self).__name__} has been closed", code="DISPOSED")
        return self._context

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, target: QuerySpecification[T] | type[T], *predicates: Any) -> list[T]:
        """Run a query and return the materialised results.

        *target* is a specification, or an entity type followed by
        predicates (``repo.get(Order, lambda o: o.total > 100)``).
        """
        spec = self._as_specification(target, predicates)
        rows = self._build_query(spec, for_count=False).to_list()
        logger.debug("query_executed", entity_type=spec.entity_type.__name__, rows=len(rows))
        return rows

    def count(self, target: QuerySpecification[Any] | type, *predicates: Any) -> int:
        """Count matching entities; ordering and pagination are ignored."""
        spec = self._as_specification(target, predicates)
        total = self._build_query(spec, for_count=True).count()
        logger.debug("query_counted", entity_type=spec.entity_type.__name__, count=total)
        return total

    def _build_query(self, spec: QuerySpecification[T], *, for_count: bool) -> QueryPort[T]:
        context = self._require_open()
        descriptor = EntitySetResolver.resolve(type(context), spec.entity_type)
        query = context.create_query(descriptor.name, spec.entity_type)

        if not for_count:
            for path in spec.preload_paths:
                query = query.include(path)

        predicate = spec.combined_predicate()
        if predicate is not None:
            query = query.where(predicate)

        if not for_count:
            if spec.order is not None:
                query = query.order_by(spec.order.field, spec.order.direction)
            if spec.pagination.skip:
                query = query.skip(spec.pagination.skip)
            if spec.pagination.take is not None:
                query = query.take(spec.pagination.take)

        if TrackingPolicy.NO_TRACKING in self._tracking:
            query = query.no_tracking()
        return query

    @staticmethod
    def _as_specification(target: Any, predicates: tuple[Any, ...]) -> QuerySpecification[Any]:
        if isinstance(target, QuerySpecification):
            if predicates:
                raise TypeError("Pass predicates either in the specification or as arguments, not both")
            return target
        if isinstance(target, type):
            return QuerySpecification(target).where(*predicates)
        raise TypeError(f"Expected a QuerySpecification or an entity type, got {type(target).__name__}")

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def add(self, entity: Any) -> None:
        """Register a new entity for insertion on the next save.

        The context's add entry point is found by convention: a method named
        ``add*`` taking exactly one parameter annotated with the concrete
        entity type, otherwise ``add_object(entity_set, entity)``.

        Raises:
            ArgumentError: If *entity* is ``None``.
            OperationError: If the context offers neither entry point.
        """
        _require_entity(entity, "add")
        context = self._require_open()
        entity_type = type(entity)
        descriptor = EntitySetResolver.resolve(type(context), entity_type)
        method_name = EntitySetResolver.add_method(type(context), entity_type)
        if method_name is not None:
            getattr(context, method_name)(entity)
        elif callable(getattr(context, "add_object", None)):
            context.add_object(descriptor.name, entity)
        else:
            raise OperationError(
                f"{type(context).__name__} has no add method for {descriptor.entity_type.__name__}",
                code="ADD_METHOD_NOT_FOUND",
                context={"entity_type": entity_type.__name__, "entity_set": descriptor.name},
            )

    def remove(self, entity: Any) -> None:
        """Mark *entity* for deletion; untracked entities are attached first under ``NO_TRACKING``."""
        _require_entity(entity, "remove")
        context = self._require_open()
        if TrackingPolicy.NO_TRACKING in self._tracking:
            descriptor = EntitySetResolver.resolve(type(context), type(entity))
            context.attach_to(descriptor.name, entity)
        context.delete_object(entity)

    def attach(self, entity: Any) -> None:
        """Attach *entity* as modified.

        If the backend refuses the transition to ``MODIFIED`` (the entity,
        or another instance with its identity, is already tracked in some
        other state) the entity's current values are applied onto the
        tracked counterpart instead.
        """
        _require_entity(entity, "attach")
        context = self._require_open()
        descriptor = EntitySetResolver.resolve(type(context), type(entity))
        entry = context.try_get_entry(entity)
        if entry is None or entry.state is EntityState.DETACHED:
            context.attach_to(descriptor.name, entity)
        try:
            context.change_state(entity, EntityState.MODIFIED)
        except ObjectStateError as exc:
            logger.debug(
                "attach_applied_current_values",
                entity_type=type(entity).__name__,
                entity_set=descriptor.name,
                reason=str(exc),
            )
            context.apply_current_values(descriptor.name, entity)

    def detach(self, entity: Any) -> None:
        """Stop tracking *entity* without deleting it."""
        _require_entity(entity, "detach")
        self._require_open().detach(entity)

    def refresh(self, entity: Any) -> None:
        """Reload *entity* from the store, store values winning.

        An untracked entity is logged and skipped unless ``strict_refresh``
        was requested, in which case :class:`EntityNotTrackedError` propagates.
        """
        _require_entity(entity, "refresh")
        context = self._require_open()
        try:
            context.refresh(RefreshMode.STORE_WINS, entity)
        except EntityNotTrackedError as exc:
            if self._strict_refresh:
                raise
            logger.warning("refresh_skipped_untracked", entity_type=type(entity).__name__, reason=str(exc))

    def save(self) -> int:
        """Commit pending changes and return the number of entries written.

        With ``REFRESH_AFTER_SAVE`` every added or modified entity is
        snapshotted before the commit and reloaded from the store after it,
        using the configured refresh mode.
        """
        context = self._require_open()
        if TrackingPolicy.REFRESH_AFTER_SAVE not in self._tracking:
            saved = context.save_changes()
            logger.info("changes_saved", entries=saved)
            return saved

        snapshot = [
            entry.entity
            for entry in context.pending_entries()
            if entry.state in (EntityState.ADDED, EntityState.MODIFIED)
        ]
        saved = context.save_changes()
        for entity in snapshot:
            context.refresh(self._refresh_mode, entity)
        logger.info("changes_saved", entries=saved)
        logger.debug("refreshed_after_save", entries=len(snapshot), mode=self._refresh_mode.value)
        return saved

    def create(self, entity_type: type[T]) -> T:
        """A new, untracked instance of *entity_type* suited to the backend."""
        return self._require_open().create_object(entity_type)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clone(self) -> Repository:
        """A repository of the same class over a fresh context with the same options."""
        context = self._require_open().clone()
        logger.debug("repository_cloned", repository=type(self).__name__, connection=context.connection_string)
        return type(self)(
            context,
            self._tracking,
            refresh_mode=self._refresh_mode,
            strict_refresh=self._strict_refresh,
            auto_save_on_close=self._auto_save_on_close,
        )

    def close(self) -> None:
        """Release the context, saving first when ``auto_save_on_close`` is set. Idempotent."""
        if self._closed:
            return
        try:
            if self._auto_save_on_close:
                self.save()
        finally:
            self._closed = True
            self._context.close()
            logger.debug("repository_closed", repository=type(self).__name__)

    def __enter__(self) -> Repository:
        self._require_open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _require_entity(entity: Any, operation: str) -> None:
    if entity is None:
        raise ArgumentError(f"{operation}() requires an entity, got None", code="ARGUMENT_NULL")
