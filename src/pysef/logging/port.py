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
"""Logging port: how a host application takes over PySEF's log output.

Repositories, contexts and the entity-set resolver emit structlog events
under the ``pysef.data`` logger hierarchy (``pysef.data.repository``,
``pysef.data.remote.odata`` and so on) and never configure logging
themselves. An application that wants those events rendered or filtered
passes its ``pysef.logging`` settings to an implementation of this port;
:class:`~pysef.logging.structlog_adapter.StructlogAdapter` is the one
shipped with the library.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pysef.core.config import Config


@runtime_checkable
class LoggingPort(Protocol):
    """Configures rendering and levels for the ``pysef.data`` loggers."""

    def configure(self, config: Config) -> None:
        """Apply ``pysef.logging.level`` and ``pysef.logging.format`` from *config*."""
        ...

    def get_logger(self, name: str) -> Any:
        """A bound logger for *name*, e.g. ``"pysef.data.repository"``."""
        ...

    def set_level(self, name: str, level: str) -> None:
        """Change the level of one logger, such as ``"pysef.data.relational.sqlalchemy"`` to ``"DEBUG"``."""
        ...
