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
"""Remote entity-collection context over a synchronous ``httpx.Client``.

The context tracks entities itself: an identity map keyed by
``(entity set, key)`` and a snapshot of each entry's original values.
Pending changes are sent on :meth:`DataServiceContext.save_changes` as
``POST`` (added), ``PUT`` (modified, replace-on-update) and ``DELETE``
requests, in registration order.
"""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel

from pysef.data.context import EntityEntry, ObjectContext
from pysef.data.entity_set import EntitySetResolver
from pysef.data.remote.odata.compiler import format_literal
from pysef.data.remote.odata.entity import (
    RemoteEntity,
    key_name,
    key_of,
    navigation_fields,
    request_body,
    row_type,
    scalar_values,
    type_name,
)
from pysef.data.remote.odata.query import DataServiceQuery
from pysef.data.tracking import EntityState, RefreshMode
from pysef.kernel.exceptions import (
    ArgumentError,
    DataServiceRequestError,
    EntityNotTrackedError,
    InvalidStateTransitionError,
    ObjectStateError,
)

T = TypeVar("T")

logger = structlog.get_logger("pysef.data.remote.odata")


class DataServiceContext(ObjectContext):
    """Object context for an OData-style entity-collection service.

    Args:
        base_url: Service root, e.g. ``https://example.com/odata``.
        timeout: Request timeout in seconds.
        headers: Headers sent with every request.
        transport: Optional ``httpx`` transport (``httpx.MockTransport`` in tests).
    """

    entity_roots = (RemoteEntity, BaseModel)

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._transport = transport
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=timeout,
            headers=self._headers,
            transport=transport,
        )
        self._entries: dict[int, EntityEntry] = {}
        self._identity: dict[tuple[str, Any], Any] = {}

    @property
    def client(self) -> httpx.Client:
        return self._client

    @property
    def connection_string(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Issue a request; HTTP and transport failures become DataServiceRequestError."""
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DataServiceRequestError(
                f"{method} {url} failed with status {exc.response.status_code}",
                code="DATA_SERVICE_REQUEST",
                context={"method": method, "url": url, "status": exc.response.status_code},
            ) from exc
        except httpx.HTTPError as exc:
            raise DataServiceRequestError(
                f"{method} {url} failed: {exc}",
                code="DATA_SERVICE_REQUEST",
                context={"method": method, "url": url},
            ) from exc
        logger.debug("data_service_request", method=method, url=url, status=response.status_code)
        return response

    def materialize(self, entity_set: str, entity_type: type[T], row: dict[str, Any], *, track: bool) -> T:
        """Build an entity from a response row; tracked queries reuse known instances.

        Rows annotated with ``@odata.type`` materialise as the named subclass
        of *entity_type*. A known instance of a less derived type is replaced
        when it is unchanged; with pending changes it is a conflict.
        """
        entity = row_type(entity_type, row).model_validate(row)  # type: ignore[attr-defined]
        if not track:
            return entity
        key = key_of(entity)
        known = self._identity.get((entity_set, key)) if key is not None else None
        if known is not None:
            if isinstance(known, type(entity)):
                return known
            entry = self._entries[id(known)]
            if self._current_state(entry) is not EntityState.UNCHANGED:
                raise ObjectStateError(
                    f"{type(known).__name__} with key {key!r} has pending changes and cannot be read as "
                    f"{type(entity).__name__}",
                    code="DUPLICATE_IDENTITY",
                    context={"entity_set": entity_set, "key": key},
                )
            self._untrack(entry)
        self._track(entity_set, entity, EntityState.UNCHANGED)
        return entity

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_query(self, entity_set: str, entity_type: type[T]) -> DataServiceQuery[T]:
        # Derived types are read through a type-cast segment: /products/DiscountedProduct.
        mapped = EntitySetResolver.concrete_type(type(self), entity_type)
        cast = type_name(entity_type) if entity_type is not mapped else None
        return DataServiceQuery(self, entity_set, entity_type, cast=cast)

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    def add_object(self, entity_set: str, entity: Any) -> None:
        entry = self._entries.get(id(entity))
        if entry is not None:
            raise InvalidStateTransitionError(
                f"{type(entity).__name__} is already tracked as {entry.state.value}",
                code="INVALID_STATE_TRANSITION",
            )
        self._track(entity_set, entity, EntityState.ADDED)

    def attach_to(self, entity_set: str, entity: Any) -> None:
        if id(entity) in self._entries:
            return
        key = key_of(entity)
        if key is None:
            raise ArgumentError(
                f"Cannot attach {type(entity).__name__} without a value for '{key_name(type(entity))}'",
                code="MISSING_KEY",
            )
        if (entity_set, key) in self._identity:
            raise ObjectStateError(
                f"Another {type(entity).__name__} with key {key!r} is already tracked",
                code="DUPLICATE_IDENTITY",
                context={"entity_set": entity_set, "key": key},
            )
        self._track(entity_set, entity, EntityState.UNCHANGED)

    def detach(self, entity: Any) -> None:
        entry = self._require_entry(entity)
        self._untrack(entry)

    def delete_object(self, entity: Any) -> None:
        entry = self._require_entry(entity)
        if entry.state is EntityState.ADDED:
            self._untrack(entry)
        else:
            entry.state = EntityState.DELETED

    def refresh(self, mode: RefreshMode, entity: Any) -> None:
        entry = self._require_entry(entity)
        key = key_of(entity)
        if entry.state is EntityState.ADDED or key is None:
            raise EntityNotTrackedError(
                f"{type(entity).__name__} has not been saved to the service yet", code="ENTITY_NOT_PERSISTED"
            )
        response = self.send("GET", self._entity_url(entry.entity_set, key))
        store = type(entity).model_validate(response.json())
        current = scalar_values(entity)
        keep = set()
        if mode is RefreshMode.CLIENT_WINS:
            keep = {name for name, value in current.items() if entry.original_values.get(name) != value}
        for name in scalar_values(store):
            if name not in keep:
                setattr(entity, name, getattr(store, name))
        entry.original_values = scalar_values(store)
        entry.state = EntityState.MODIFIED if keep else EntityState.UNCHANGED

    def save_changes(self) -> int:
        written = 0
        for entry in list(self._entries.values()):
            state = self._current_state(entry)
            entity = entry.entity
            if state is EntityState.ADDED:
                response = self.send(
                    "POST", f"/{entry.entity_set}", json=request_body(entity, include_key=key_of(entity) is not None)
                )
                self._apply_response(entity, response)
                entry.state = EntityState.UNCHANGED
                entry.original_values = scalar_values(entity)
                if key_of(entity) is not None:
                    self._identity[(entry.entity_set, key_of(entity))] = entity
            elif state is EntityState.MODIFIED:
                url = self._entity_url(entry.entity_set, key_of(entity))
                response = self.send("PUT", url, json=request_body(entity, include_key=True))
                self._apply_response(entity, response)
                entry.state = EntityState.UNCHANGED
                entry.original_values = scalar_values(entity)
            elif state is EntityState.DELETED:
                self.send("DELETE", self._entity_url(entry.entity_set, key_of(entity)))
                self._untrack(entry)
            else:
                continue
            written += 1
        return written

    def try_get_entry(self, entity: Any) -> EntityEntry | None:
        entry = self._entries.get(id(entity))
        if entry is None:
            key = key_of(entity)
            if key is None:
                return None
            entity_set = EntitySetResolver.resolve(type(self), type(entity)).name
            tracked = self._identity.get((entity_set, key))
            entry = self._entries.get(id(tracked)) if tracked is not None else None
        if entry is not None:
            entry.state = self._current_state(entry)
        return entry

    def change_state(self, entity: Any, state: EntityState) -> None:
        entry = self._require_entry(entity)
        current = self._current_state(entry)
        if state is current and state is not EntityState.MODIFIED:
            return
        if state is EntityState.MODIFIED and current is EntityState.UNCHANGED:
            entry.state = EntityState.MODIFIED
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
        if id(entity) in self._entries:
            return entity
        tracked = self._identity.get((entity_set, key_of(entity)))
        if tracked is None:
            raise EntityNotTrackedError(
                f"No tracked {type(entity).__name__} shares this entity's key", code="ENTITY_NOT_TRACKED"
            )
        key = key_name(type(entity))
        for name, value in scalar_values(entity).items():
            if name != key:
                setattr(tracked, name, value)
        return tracked

    def pending_entries(self) -> list[EntityEntry]:
        pending = []
        for entry in self._entries.values():
            entry.state = self._current_state(entry)
            if entry.state in (EntityState.ADDED, EntityState.MODIFIED, EntityState.DELETED):
                pending.append(entry)
        return pending

    def create_object(self, entity_type: type[T]) -> T:
        return entity_type.model_construct()  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clone(self) -> DataServiceContext:
        return type(self)(self._base_url, timeout=self._timeout, headers=self._headers, transport=self._transport)

    def close(self) -> None:
        self._client.close()
        self._entries.clear()
        self._identity.clear()
        logger.debug("context_closed", base_url=self._base_url)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _track(self, entity_set: str, entity: Any, state: EntityState) -> None:
        self._entries[id(entity)] = EntityEntry(entity, entity_set, state, scalar_values(entity))
        key = key_of(entity)
        if key is not None and state is not EntityState.ADDED:
            self._identity[(entity_set, key)] = entity

    def _untrack(self, entry: EntityEntry) -> None:
        self._entries.pop(id(entry.entity), None)
        key = key_of(entry.entity)
        if self._identity.get((entry.entity_set, key)) is entry.entity:
            del self._identity[(entry.entity_set, key)]

    def _require_entry(self, entity: Any) -> EntityEntry:
        entry = self._entries.get(id(entity))
        if entry is None:
            raise EntityNotTrackedError(
                f"{type(entity).__name__} is not tracked by this context", code="ENTITY_NOT_TRACKED"
            )
        return entry

    @staticmethod
    def _current_state(entry: EntityEntry) -> EntityState:
        if entry.state is EntityState.UNCHANGED and scalar_values(entry.entity) != entry.original_values:
            return EntityState.MODIFIED
        return entry.state

    @staticmethod
    def _entity_url(entity_set: str | None, key: Any) -> str:
        return f"/{entity_set}({format_literal(key)})"

    @staticmethod
    def _apply_response(entity: Any, response: httpx.Response) -> None:
        if not response.content:
            return
        store = type(entity).model_validate(response.json())
        skip = navigation_fields(type(entity))
        for name in type(entity).model_fields:
            if name not in skip and name in store.model_fields_set:
                setattr(entity, name, getattr(store, name))
