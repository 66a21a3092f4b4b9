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
"""Data access configuration properties."""

from __future__ import annotations

from dataclasses import dataclass, field

from pysef.core.config import config_properties


@config_properties(prefix="pysef.data.repository")
@dataclass
class RepositoryProperties:
    """Configuration shared by every repository variant (pysef.data.repository.*).

    ``tracking`` lists flag names (``refresh-after-save``, ``no-tracking``) or
    holds them comma-separated in a single string.
    """

    tracking: list[str] | str = field(default_factory=lambda: ["refresh-after-save"])
    refresh_mode: str = "store-wins"
    strict_refresh: bool = False
    auto_save_on_close: bool = False


@config_properties(prefix="pysef.data.relational")
@dataclass
class RelationalProperties:
    """Configuration for the SQLAlchemy backend (pysef.data.relational.*)."""

    url: str = "sqlite:///:memory:"
    echo: bool = False


@config_properties(prefix="pysef.data.remote")
@dataclass
class DataServiceProperties:
    """Configuration for the remote entity-collection backend (pysef.data.remote.*)."""

    base_url: str = "http://localhost:8080/odata"
    timeout: float = 30.0
    headers: dict[str, str] = field(default_factory=dict)
