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
"""Remote entity shapes: pydantic models exchanged with the entity service."""

from __future__ import annotations

import functools
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict

from pysef.data.shape import navigation_target

T = TypeVar("T")


class RemoteEntity(BaseModel):
    """Base class for entities served by a remote entity-collection service.

    Field aliases are the wire names. ``__key__`` names the key field.

    Usage::

        class Product(RemoteEntity):
            id: int | None = None
            name: str = Field("", alias="Name")
            category: Category | None = None   # navigation, never sent on writes
    """

    model_config = ConfigDict(populate_by_name=True)

    __key__ = "id"
    # Service-side type name; the class name when unset.
    __type_name__: ClassVar[str | None] = None


def key_name(entity_type: type) -> str:
    return getattr(entity_type, "__key__", "id")


def key_of(entity: Any) -> Any:
    return getattr(entity, key_name(type(entity)), None)


def type_name(entity_type: type) -> str:
    return vars(entity_type).get("__type_name__") or entity_type.__name__


def row_type(entity_type: type[T], row: dict[str, Any]) -> type[T]:
    """The subclass of *entity_type* named by the row's ``@odata.type`` annotation.

    ``#Shop.DiscountedProduct`` and ``#DiscountedProduct`` both name a
    subclass whose type name is ``DiscountedProduct``. Rows without an
    annotation, or naming an unknown type, materialise as *entity_type*.
    """
    annotation = row.get("@odata.type")
    if not isinstance(annotation, str):
        return entity_type
    name = annotation.lstrip("#")
    pending = [entity_type]
    while pending:
        candidate = pending.pop(0)
        declared = type_name(candidate)
        if name == declared or name.endswith(f".{declared}"):
            return candidate
        pending.extend(candidate.__subclasses__())
    return entity_type


@functools.lru_cache(maxsize=None)
def navigation_fields(entity_type: type[BaseModel]) -> frozenset[str]:
    """Fields whose type (or element type) is another model."""
    names = set()
    for name, info in entity_type.model_fields.items():
        target = navigation_target(info.annotation)
        if target is not None and issubclass(target, BaseModel):
            names.add(name)
    return frozenset(names)


def field_shape(entity_type: type, name: str) -> type | None:
    """The model reached through field *name*, if it is a navigation."""
    fields = getattr(entity_type, "model_fields", {})
    info = fields.get(name)
    if info is None:
        return None
    target = navigation_target(info.annotation)
    return target if target is not None and issubclass(target, BaseModel) else None


def wire_name(entity_type: type, name: str) -> str:
    """The alias of field *name* on *entity_type*, or the name itself."""
    info = getattr(entity_type, "model_fields", {}).get(name)
    if info is not None and info.alias:
        return info.alias
    return name


def wire_path(entity_type: type, names: list[str], separator: str = "/") -> str:
    """Translate ``["category", "name"]`` into ``Category/Name`` using each shape's aliases."""
    parts = []
    current: type | None = entity_type
    for name in names:
        parts.append(wire_name(current, name) if current is not None else name)
        current = field_shape(current, name) if current is not None else None
    return separator.join(parts)


def scalar_values(entity: BaseModel) -> dict[str, Any]:
    """Field values excluding navigations, keyed by field name."""
    return entity.model_dump(exclude=set(navigation_fields(type(entity))))


def request_body(entity: BaseModel, *, include_key: bool) -> dict[str, Any]:
    """JSON body for POST/PUT: wire names, navigations excluded."""
    exclude = set(navigation_fields(type(entity)))
    if not include_key:
        exclude.add(key_name(type(entity)))
    return entity.model_dump(mode="json", by_alias=True, exclude=exclude)
