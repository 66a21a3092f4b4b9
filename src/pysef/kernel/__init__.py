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
"""PySEF Kernel — Foundation layer with zero external dependencies."""

from pysef.kernel.exceptions import (
    ArgumentError,
    BusinessException,
    ConfigurationException,
    ConflictException,
    DataServiceRequestError,
    DisposedError,
    EntityNotTrackedError,
    EntitySetNotFoundError,
    ExternalServiceException,
    InfrastructureException,
    InvalidIncludePathError,
    InvalidRequestException,
    InvalidStateTransitionError,
    ObjectStateError,
    OperationError,
    PreconditionFailedException,
    PySefException,
    ShapeConversionError,
    UnsupportedPredicateError,
    ValidationException,
)

__all__ = [
    # Base
    "PySefException",
    # Business
    "BusinessException",
    "ValidationException",
    "ConflictException",
    "PreconditionFailedException",
    "InvalidRequestException",
    # Configuration
    "ConfigurationException",
    # Infrastructure
    "InfrastructureException",
    "ExternalServiceException",
    # Data access
    "ArgumentError",
    "DataServiceRequestError",
    "DisposedError",
    "EntityNotTrackedError",
    "EntitySetNotFoundError",
    "InvalidIncludePathError",
    "InvalidStateTransitionError",
    "ObjectStateError",
    "OperationError",
    "ShapeConversionError",
    "UnsupportedPredicateError",
]
