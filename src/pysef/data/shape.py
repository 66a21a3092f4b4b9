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
"""Entity shapes: structural members discovered from class annotations.

An entity shape is any Python class. Its members are the public names
annotated on the class or one of its bases (base classes first, then
declaration order), plus annotated properties. ``ClassVar`` annotations and
names starting with ``_`` are not members.

A :class:`NavigationMember` identifies a member by the class that declares
it and its name, so ``member(SpecialOrder, "total")`` and
``member(Order, "total")`` are the same member when ``total`` is declared on
``Order``.
"""

from __future__ import annotations

import collections.abc
import functools
import inspect
import types
import typing
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin

from pydantic import BaseModel
from sqlalchemy.orm import DeclarativeBase, DynamicMapped, Mapped, WriteOnlyMapped

_MAPPED_WRAPPERS = (Mapped, WriteOnlyMapped, DynamicMapped)

# Model framework bases contribute no members of their own.
_FRAMEWORK_BASES = frozenset(BaseModel.__mro__) | frozenset(DeclarativeBase.__mro__)


@dataclass(frozen=True)
class NavigationMember:
    """A structural member: (declaring class, member name).

    Equality and hashing use the declaring class identity and the name;
    the resolved annotation is carried along for convenience only.
    """

    declaring_type: type
    name: str
    annotation: Any = field(default=None, compare=False, repr=False)

    @property
    def member_type(self) -> Any:
        """The member's annotation with ``Mapped`` and ``Optional`` removed."""
        return unwrap_annotation(self.annotation)

    @property
    def target_shape(self) -> type | None:
        """The shape reached by navigating this member (element type for collections)."""
        return navigation_target(self.annotation)

    def __str__(self) -> str:
        return f"{self.declaring_type.__name__}.{self.name}"


def unwrap_annotation(annotation: Any) -> Any:
    """Strip ``Annotated``, ``Mapped[...]`` and ``Optional[...]`` wrappers."""
    while True:
        origin = get_origin(annotation)
        if origin is Annotated or origin in _MAPPED_WRAPPERS:
            annotation = get_args(annotation)[0]
        elif origin is Union or origin is types.UnionType:
            args = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(args) != 1:
                return annotation
            annotation = args[0]
        else:
            return annotation


def element_type(annotation: Any) -> Any | None:
    """Return ``X`` for a single-argument container such as ``list[X]``, else ``None``."""
    annotation = unwrap_annotation(annotation)
    origin = get_origin(annotation)
    args = get_args(annotation)
    if origin is None or len(args) != 1 or not isinstance(origin, type):
        return None
    if issubclass(origin, (str, bytes, collections.abc.Mapping)):
        return None
    if not issubclass(origin, collections.abc.Iterable):
        return None
    return args[0]


def navigation_target(annotation: Any) -> type | None:
    """The class a member navigates to: the member type itself or its element type."""
    target = element_type(annotation)
    if target is None:
        target = unwrap_annotation(annotation)
    return target if isinstance(target, type) else None


def _own_hints(klass: type) -> dict[str, Any]:
    raw = inspect.get_annotations(klass)
    if not raw:
        return {}
    # Resolve only this class's annotations so an unresolvable base does not poison its subclasses.
    holder = type(klass.__name__, (), {"__annotations__": dict(raw), "__module__": klass.__module__})
    try:
        return typing.get_type_hints(holder)
    except (NameError, TypeError, AttributeError):
        return dict(raw)


def _property_hint(prop: property) -> Any:
    if prop.fget is None:
        return None
    try:
        return typing.get_type_hints(prop.fget).get("return")
    except (NameError, TypeError):
        return inspect.get_annotations(prop.fget).get("return")


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or get_origin(annotation) is ClassVar


@functools.lru_cache(maxsize=None)
def _members(shape: type) -> types.MappingProxyType[str, NavigationMember]:
    members: dict[str, NavigationMember] = {}
    for klass in reversed(shape.__mro__):
        if klass is object or klass in _FRAMEWORK_BASES:
            continue
        for name, annotation in _own_hints(klass).items():
            if name.startswith("_") or _is_class_var(annotation):
                continue
            members[name] = NavigationMember(klass, name, annotation)
        for name, value in vars(klass).items():
            if name.startswith("_") or not isinstance(value, property):
                continue
            hint = _property_hint(value)
            if hint is not None:
                members[name] = NavigationMember(klass, name, hint)
    return types.MappingProxyType(members)


def shape_members(shape: type) -> types.MappingProxyType[str, NavigationMember]:
    """All members of *shape* keyed by name, in resolution order."""
    return _members(shape)


def find_member(shape: type, name: str) -> NavigationMember | None:
    """The member *name* of *shape*, or ``None``."""
    return _members(shape).get(name)


def has_member(shape: type, name: str) -> bool:
    """True when *shape* declares *name* or exposes it as a class attribute.

    Attributes inherited from model framework bases such as
    ``BaseModel.model_extra`` are not members.
    """
    if find_member(shape, name) is not None:
        return True
    if name.startswith("_") or not hasattr(shape, name):
        return False
    return _declaring_class(shape, name) not in _FRAMEWORK_BASES


def member(shape: type, name: str) -> NavigationMember:
    """Build the :class:`NavigationMember` for ``shape.name``.

    Raises:
        AttributeError: If *shape* has no member called *name*.
    """
    found = find_member(shape, name)
    if found is not None:
        return found
    if has_member(shape, name):
        return NavigationMember(_declaring_class(shape, name), name)
    raise AttributeError(f"{shape.__name__} has no member '{name}'")


def _declaring_class(shape: type, name: str) -> type:
    for klass in shape.__mro__:
        if name in vars(klass):
            return klass
    return shape


def member_of(target: Any) -> NavigationMember:
    """Normalise *target* into a :class:`NavigationMember`.

    Accepts a ``NavigationMember``, a captured member access (see
    :mod:`pysef.data.predicate`) or a SQLAlchemy instrumented attribute
    such as ``Order.customer``.
    """
    if isinstance(target, NavigationMember):
        return target
    hook = getattr(type(target), "__navigation_member__", None)
    if hook is not None:
        return hook(target)
    owner = getattr(target, "class_", None)
    key = getattr(target, "key", None)
    if isinstance(owner, type) and isinstance(key, str):
        return member(owner, key)
    raise TypeError(f"Cannot identify a member from {target!r}")
