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
"""Repository over the SQLAlchemy object context."""

from __future__ import annotations

from typing import Any

from sqlalchemy import URL, Engine
from sqlalchemy.orm import Session

from pysef.data.relational.sqlalchemy.context import SqlAlchemyContext
from pysef.data.repository import Repository
from pysef.data.tracking import TrackingPolicy


class SqlAlchemyRepository(Repository):
    """Repository bound to a :class:`SqlAlchemyContext`.

    Usage::

        repo = SqlAlchemyRepository.from_url(ShopContext, "sqlite:///shop.db")
        repo.add(Order(total=120))
        repo.save()
    """

    def __init__(
        self,
        context: SqlAlchemyContext,
        tracking: TrackingPolicy | str = TrackingPolicy.REFRESH_AFTER_SAVE,
        **options: Any,
    ) -> None:
        if not isinstance(context, SqlAlchemyContext):
            raise TypeError(f"SqlAlchemyRepository requires a SqlAlchemyContext, got {type(context).__name__}")
        super().__init__(context, tracking, **options)

    @classmethod
    def from_url(
        cls,
        context_type: type[SqlAlchemyContext],
        url: str | URL,
        tracking: TrackingPolicy | str = TrackingPolicy.REFRESH_AFTER_SAVE,
        *,
        echo: bool = False,
        engine_options: dict[str, Any] | None = None,
        **options: Any,
    ) -> SqlAlchemyRepository:
        """Build the context and the repository in one call."""
        return cls(context_type(url, echo=echo, engine_options=engine_options), tracking, **options)

    @property
    def session(self) -> Session:
        """The context's ``Session``, for work the repository does not cover."""
        return self._sql_context.session

    @property
    def engine(self) -> Engine:
        return self._sql_context.engine

    @property
    def _sql_context(self) -> SqlAlchemyContext:
        context = self._require_open()
        assert isinstance(context, SqlAlchemyContext)
        return context
