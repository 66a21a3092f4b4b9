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
"""Remote entity query — builds OData query options and materialises results."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pysef.data.predicate import Predicate
from pysef.data.remote.odata.compiler import ODataFilterCompiler
from pysef.data.remote.odata.entity import wire_path
from pysef.data.specification import Direction

if TYPE_CHECKING:
    from pysef.data.remote.odata.context import DataServiceContext

T = TypeVar("T")


class DataServiceQuery(Generic[T]):
    """``GET /{set}`` with ``$filter``, ``$expand``, ``$orderby``, ``$skip`` and ``$top``.

    With *cast* set the query reads ``/{set}/{cast}``, the members of the
    set that are of the derived type *cast*.
    """

    def __init__(
        self, context: DataServiceContext, entity_set: str, entity_type: type[T], *, cast: str | None = None
    ) -> None:
        self._context = context
        self._entity_set = entity_set
        self._path = f"/{entity_set}" if cast is None else f"/{entity_set}/{cast}"
        self._entity_type = entity_type
        self._filters: list[str] = []
        self._expand: list[str] = []
        self._order: str | None = None
        self._skip: int | None = None
        self._top: int | None = None
        self._tracking = True

    def include(self, path: str) -> DataServiceQuery[T]:
        expanded = wire_path(self._entity_type, path.split("."))
        if expanded not in self._expand:
            self._expand.append(expanded)
        return self

    def where(self, predicate: Predicate) -> DataServiceQuery[T]:
        self._filters.append(ODataFilterCompiler(self._entity_type).compile(predicate))
        return self

    def order_by(self, field: str, direction: Direction) -> DataServiceQuery[T]:
        self._order = f"{wire_path(self._entity_type, field.split('.'))} {direction.value}"
        return self

    def skip(self, count: int) -> DataServiceQuery[T]:
        self._skip = count
        return self

    def take(self, count: int) -> DataServiceQuery[T]:
        self._top = count
        return self

    def no_tracking(self) -> DataServiceQuery[T]:
        self._tracking = False
        return self

    @property
    def params(self) -> dict[str, str]:
        """The OData system query options this query sends."""
        params: dict[str, str] = {}
        if self._filters:
            params["$filter"] = (
                self._filters[0] if len(self._filters) == 1 else " and ".join(f"({f})" for f in self._filters)
            )
        if self._expand:
            params["$expand"] = ",".join(self._expand)
        if self._order is not None:
            params["$orderby"] = self._order
        if self._skip is not None:
            params["$skip"] = str(self._skip)
        if self._top is not None:
            params["$top"] = str(self._top)
        return params

    def to_list(self) -> list[T]:
        payload: Any = self._context.send("GET", self._path, params=self.params).json()
        rows = payload.get("value", []) if isinstance(payload, dict) else payload
        return [
            self._context.materialize(self._entity_set, self._entity_type, row, track=self._tracking) for row in rows
        ]

    def count(self) -> int:
        params = {"$filter": self.params["$filter"]} if self._filters else {}
        response = self._context.send("GET", f"{self._path}/$count", params=params)
        return int(response.text.strip())
