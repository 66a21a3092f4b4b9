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
"""Tracking policy flags, refresh modes and entity states."""

from __future__ import annotations

import enum
from collections.abc import Iterable


def _normalise(name: str) -> str:
    return name.strip().replace("-", "_").upper()


class TrackingPolicy(enum.Flag):
    """Independent flags governing change tracking around queries and saves.

    ``REFRESH_AFTER_SAVE`` reloads every added or modified entity from the
    store once a save commits. ``NO_TRACKING`` asks the backend not to track
    query results. The flags may be combined.
    """

    NONE = 0
    REFRESH_AFTER_SAVE = 1
    NO_TRACKING = 4

    @classmethod
    def parse(cls, value: TrackingPolicy | str | Iterable[str] | None) -> TrackingPolicy:
        """Parse ``"refresh-after-save,no-tracking"`` or a list of flag names."""
        if isinstance(value, TrackingPolicy):
            return value
        if value is None:
            return cls.NONE
        names = value.split(",") if isinstance(value, str) else list(value)
        policy = cls.NONE
        for name in names:
            key = _normalise(name)
            if not key:
                continue
            try:
                policy |= cls[key]
            except KeyError:
                raise ValueError(f"Unknown tracking flag '{name}'") from None
        return policy


class RefreshMode(str, enum.Enum):
    """Conflict policy when reloading an entity from the store."""

    STORE_WINS = "store-wins"
    CLIENT_WINS = "client-wins"

    @classmethod
    def parse(cls, value: RefreshMode | str) -> RefreshMode:
        if isinstance(value, RefreshMode):
            return value
        try:
            return cls[_normalise(value)]
        except KeyError:
            raise ValueError(f"Unknown refresh mode '{value}'") from None


class EntityState(str, enum.Enum):
    DETACHED = "detached"
    UNCHANGED = "unchanged"
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
