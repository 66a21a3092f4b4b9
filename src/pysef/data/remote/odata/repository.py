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
"""Repository over the remote entity-collection context."""

from __future__ import annotations

from typing import Any

import httpx

from pysef.data.remote.odata.context import DataServiceContext
from pysef.data.repository import Repository
from pysef.data.tracking import TrackingPolicy


class DataServiceRepository(Repository):
    """Repository bound to a :class:`DataServiceContext`.

    Usage::

        repo = DataServiceRepository.from_url(CatalogContext, "https://example.com/odata")
        cheap = repo.get(Product, lambda p: p.price < 10)
    """

    def __init__(
        self,
        context: DataServiceContext,
        tracking: TrackingPolicy | str = TrackingPolicy.REFRESH_AFTER_SAVE,
        **options: Any,
    ) -> None:
        if not isinstance(context, DataServiceContext):
            raise TypeError(f"DataServiceRepository requires a DataServiceContext, got {type(context).__name__}")
        super().__init__(context, tracking, **options)

    @classmethod
    def from_url(
        cls,
        context_type: type[DataServiceContext],
        base_url: str,
        tracking: TrackingPolicy | str = TrackingPolicy.REFRESH_AFTER_SAVE,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        **options: Any,
    ) -> DataServiceRepository:
        """Build the context and the repository in one call."""
        context = context_type(base_url, timeout=timeout, headers=headers, transport=transport)
        return cls(context, tracking, **options)

    @property
    def client(self) -> httpx.Client:
        """The context's ``httpx.Client``."""
        context = self._require_open()
        assert isinstance(context, DataServiceContext)
        return context.client
