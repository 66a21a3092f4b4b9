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
"""Configuration-driven repository construction."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from pysef.config.properties.data import DataServiceProperties, RelationalProperties, RepositoryProperties
from pysef.core.config import Config
from pysef.data.context import ObjectContext
from pysef.data.relational.sqlalchemy.context import SqlAlchemyContext
from pysef.data.relational.sqlalchemy.repository import SqlAlchemyRepository
from pysef.data.remote.odata.context import DataServiceContext
from pysef.data.remote.odata.repository import DataServiceRepository
from pysef.data.repository import Repository
from pysef.data.tracking import RefreshMode, TrackingPolicy
from pysef.kernel.exceptions import ConfigurationException

logger = structlog.get_logger("pysef.data.factory")


def repository_options(config: Config) -> dict[str, Any]:
    """Tracking policy and repository keyword options from ``pysef.data.repository``."""
    properties = config.bind(RepositoryProperties)
    return {
        "tracking": TrackingPolicy.parse(properties.tracking),
        "refresh_mode": RefreshMode.parse(properties.refresh_mode),
        "strict_refresh": properties.strict_refresh,
        "auto_save_on_close": properties.auto_save_on_close,
    }


def create_repository(
    config: Config,
    context_type: type[ObjectContext],
    *,
    transport: httpx.BaseTransport | None = None,
) -> Repository:
    """Build the repository variant matching *context_type* from configuration.

    SQLAlchemy contexts read ``pysef.data.relational``; remote contexts read
    ``pysef.data.remote`` (*transport* is forwarded to ``httpx``).

    Raises:
        ConfigurationException: If *context_type* belongs to no known backend.
    """
    options = repository_options(config)
    tracking = options.pop("tracking")

    if issubclass(context_type, SqlAlchemyContext):
        relational = config.bind(RelationalProperties)
        logger.info("repository_configured", backend="sqlalchemy", context=context_type.__name__)
        return SqlAlchemyRepository(context_type(relational.url, echo=relational.echo), tracking, **options)

    if issubclass(context_type, DataServiceContext):
        remote = config.bind(DataServiceProperties)
        context = context_type(remote.base_url, timeout=remote.timeout, headers=remote.headers, transport=transport)
        logger.info("repository_configured", backend="remote", context=context_type.__name__)
        return DataServiceRepository(context, tracking, **options)

    raise ConfigurationException(
        f"No repository backend for context type {context_type.__name__}",
        code="UNKNOWN_BACKEND",
        context={"context_type": context_type.__name__},
    )
