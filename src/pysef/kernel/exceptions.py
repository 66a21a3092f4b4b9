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
"""Unified exception hierarchy for PySEF.

All library exceptions inherit from PySefException, enabling unified
error handling across the query, resolution and repository layers.

Categories:
- BusinessException: Invalid arguments and requests made by calling code
- ConfigurationException: Entity shapes or contexts that break a convention
- InfrastructureException: Backend and remote service failures

None of these are retried internally: they describe programming or
configuration errors, not transient conditions.
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class PySefException(Exception):
    """Base exception for all PySEF errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "SHAPE_CONVERSION").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(PySefException):
    """Errors caused by the arguments or requests of calling code."""


class ValidationException(BusinessException):
    """Input validation failures."""


class ConflictException(BusinessException):
    """Operation conflicts with current state."""


class PreconditionFailedException(BusinessException):
    """A precondition for the operation was not met."""


class InvalidRequestException(BusinessException):
    """Request is syntactically valid but semantically incorrect."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationException(PySefException):
    """An entity shape or backend context does not follow a required convention."""


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(PySefException):
    """Infrastructure failures: database, network, remote services."""


class ExternalServiceException(InfrastructureException):
    """Failure communicating with an external or third-party service."""


# =============================================================================
# Data Access Exceptions
# =============================================================================


class ArgumentError(ValidationException):
    """A required entity argument was ``None`` or otherwise unusable."""


class ShapeConversionError(InvalidRequestException):
    """A predicate references a member the destination shape does not have."""


class UnsupportedPredicateError(InvalidRequestException):
    """A predicate uses a construct the target backend cannot express."""


class InvalidIncludePathError(InvalidRequestException):
    """An eager-load path does not follow relationships of the entity shape."""


class EntitySetNotFoundError(ConfigurationException):
    """No entity-set member of the context backs the requested entity type."""


class OperationError(ConfigurationException):
    """No backend entry point matched the operation's naming convention."""


class DisposedError(PreconditionFailedException):
    """The repository was used after it was closed."""


class ObjectStateError(ConflictException):
    """The backend rejected a change-tracking operation for an entity."""


class EntityNotTrackedError(ObjectStateError):
    """The entity is not tracked by the backend context."""


class InvalidStateTransitionError(ObjectStateError):
    """The entity cannot move from its current tracking state to the requested one."""


class DataServiceRequestError(ExternalServiceException):
    """The remote entity-collection service rejected or failed a request."""
