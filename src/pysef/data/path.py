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
"""Navigation-path resolution for eager loading.

Given a root shape and a member declared on some other shape, produce the
dotted path that reaches the member from a value of the root shape.
Members declared on the root or one of its bases resolve to their bare
name. The search is two levels deep only; when nothing matches, the bare
member name is returned. When several properties lead to the target shape,
the first one in member order wins.
"""

from __future__ import annotations

import functools
from typing import Any

from pysef.data.shape import member_of, navigation_target, shape_members


def _navigation_to(root: type, target: type) -> str | None:
    """Name of the first member of *root* whose type (or element type) is exactly *target*."""
    for candidate in shape_members(root).values():
        if navigation_target(candidate.annotation) is target:
            return candidate.name
    return None


@functools.lru_cache(maxsize=1024)
def _resolve(root: type, declaring_type: type, name: str) -> str:
    # Inherited members are reachable from the root directly.
    if issubclass(root, declaring_type):
        return name

    direct = _navigation_to(root, declaring_type)
    if direct is not None:
        return f"{direct}.{name}"

    for prop in shape_members(root).values():
        nested_root = navigation_target(prop.annotation)
        if nested_root is None:
            continue
        nested = _navigation_to(nested_root, declaring_type)
        if nested is not None:
            return f"{prop.name}.{nested}.{name}"

    return name


class PathResolver:
    """Resolves members to navigation paths relative to a root shape.

    Resolution is a pure function of the root shape and the member, and is
    memoised per ``(root, declaring type, name)``.
    """

    def resolve(self, root: type, target: Any) -> str:
        """Return the dotted path from *root* to *target*.

        Args:
            root: The shape the path starts from.
            target: A ``NavigationMember``, SQLAlchemy attribute or captured
                member access identifying the member to reach.
        """
        nav = member_of(target)
        return _resolve(root, nav.declaring_type, nav.name)


_default_resolver = PathResolver()


def resolve_path(root: type, target: Any) -> str:
    """Module-level shortcut for :meth:`PathResolver.resolve`."""
    return _default_resolver.resolve(root, target)
