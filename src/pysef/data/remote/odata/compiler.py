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
"""OData ``$filter`` compiler for predicate trees."""

from __future__ import annotations

import datetime
import decimal
import enum
import uuid
from typing import Any

from pysef.data.predicate import (
    BooleanOp,
    Comparison,
    Constant,
    MemberAccess,
    Node,
    NodeVisitor,
    Not,
    Operator,
    Parameter,
    Predicate,
    member_path,
)
from pysef.data.remote.odata.entity import wire_path
from pysef.kernel.exceptions import UnsupportedPredicateError

_FUNCTIONS = {Operator.CONTAINS, Operator.STARTSWITH, Operator.ENDSWITH}


def format_literal(value: Any) -> str:
    """Render *value* as an OData literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return format_literal(value.value)
    if isinstance(value, (int, float, decimal.Decimal)):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise UnsupportedPredicateError(
        f"Cannot render {type(value).__name__} as an OData literal", code="UNSUPPORTED_LITERAL"
    )


class ODataFilterCompiler(NodeVisitor):
    """Compile a :class:`Predicate` into an OData ``$filter`` expression.

    Member paths use field aliases and ``/`` separators; ``in`` expands to
    an ``or`` of equalities.
    """

    def __init__(self, entity_type: type) -> None:
        self._entity_type = entity_type
        self._parameter: Parameter | None = None

    def compile(self, predicate: Predicate) -> str:
        self._parameter = predicate.parameter
        return self.visit(predicate.body)

    def visit_Comparison(self, node: Comparison) -> str:
        left = self.visit(node.left)
        if node.operator is Operator.IN:
            if not isinstance(node.right, Constant):
                raise UnsupportedPredicateError("'in' requires a constant collection", code="UNSUPPORTED_PREDICATE")
            values = list(node.right.value)
            if not values:
                return "false"
            return " or ".join(f"{left} eq {format_literal(v)}" for v in values)
        right = self.visit(node.right)
        if node.operator in _FUNCTIONS:
            return f"{node.operator.value}({left}, {right})"
        return f"{left} {node.operator.value} {right}"

    def visit_BooleanOp(self, node: BooleanOp) -> str:
        parts = []
        for operand in node.operands:
            rendered = self.visit(operand)
            if isinstance(operand, BooleanOp) or _is_expanded_in(operand):
                rendered = f"({rendered})"
            parts.append(rendered)
        return f" {node.operator} ".join(parts)

    def visit_Not(self, node: Not) -> str:
        return f"not ({self.visit(node.operand)})"

    def visit_MemberAccess(self, node: MemberAccess) -> str:
        parameter, names = member_path(node)
        if parameter is not self._parameter:
            raise UnsupportedPredicateError(
                f"Member access on foreign parameter '{parameter.name}'", code="UNSUPPORTED_PREDICATE"
            )
        return wire_path(self._entity_type, names)

    def visit_Constant(self, node: Constant) -> str:
        return format_literal(node.value)

    def generic_visit(self, node: Node) -> Any:
        raise UnsupportedPredicateError(
            f"{type(node).__name__} cannot be expressed as an OData filter", code="UNSUPPORTED_PREDICATE"
        )


def _is_expanded_in(node: Node) -> bool:
    return isinstance(node, Comparison) and node.operator is Operator.IN
