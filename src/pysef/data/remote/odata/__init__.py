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
"""Remote entity-collection backend (OData-style REST over httpx)."""

from pysef.data.remote.odata.compiler import ODataFilterCompiler, format_literal
from pysef.data.remote.odata.context import DataServiceContext
from pysef.data.remote.odata.entity import RemoteEntity
from pysef.data.remote.odata.query import DataServiceQuery
from pysef.data.remote.odata.repository import DataServiceRepository

__all__ = [
    "DataServiceContext",
    "DataServiceQuery",
    "DataServiceRepository",
    "ODataFilterCompiler",
    "RemoteEntity",
    "format_literal",
]
