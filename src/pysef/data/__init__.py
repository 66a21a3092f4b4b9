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
"""PySEF Data — backend-independent queries and repositories.

Shared abstractions (entity shapes, navigation paths, predicate trees,
query specifications, entity-set resolution, the repository) live here;
backends live in ``pysef.data.relational.sqlalchemy`` and
``pysef.data.remote.odata``.
"""

from pysef.data.composer import PredicateComposer, and_, convert_shape, or_
from pysef.data.context import EntityEntry, EntityQuery, EntitySet, ObjectContext
from pysef.data.entity_set import EntitySetDescriptor, EntitySetResolver
from pysef.data.path import PathResolver, resolve_path
from pysef.data.ports.outbound import ObjectContextPort, QueryPort, RepositoryPort
from pysef.data.predicate import (
    BooleanOp,
    Comparison,
    Constant,
    MemberAccess,
    NodeTransformer,
    NodeVisitor,
    Not,
    Operator,
    Parameter,
    Predicate,
    Term,
)
from pysef.data.repository import Repository
from pysef.data.shape import (
    NavigationMember,
    element_type,
    find_member,
    member,
    member_of,
    shape_members,
    unwrap_annotation,
)
from pysef.data.specification import Direction, Limit, OrderBy, QuerySpecification
from pysef.data.tracking import EntityState, RefreshMode, TrackingPolicy

__all__ = [
    # Shapes and paths
    "NavigationMember",
    "PathResolver",
    "element_type",
    "find_member",
    "member",
    "member_of",
    "resolve_path",
    "shape_members",
    "unwrap_annotation",
    # Predicates
    "BooleanOp",
    "Comparison",
    "Constant",
    "MemberAccess",
    "NodeTransformer",
    "NodeVisitor",
    "Not",
    "Operator",
    "Parameter",
    "Predicate",
    "PredicateComposer",
    "Term",
    "and_",
    "convert_shape",
    "or_",
    # Specification
    "Direction",
    "Limit",
    "OrderBy",
    "QuerySpecification",
    # Tracking
    "EntityState",
    "RefreshMode",
    "TrackingPolicy",
    # Backend contract
    "EntityEntry",
    "EntityQuery",
    "EntitySet",
    "EntitySetDescriptor",
    "EntitySetResolver",
    "ObjectContext",
    "ObjectContextPort",
    "QueryPort",
    # Repository
    "Repository",
    "RepositoryPort",
]
