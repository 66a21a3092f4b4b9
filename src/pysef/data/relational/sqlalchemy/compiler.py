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
"""SQLAlchemy predicate compiler — turns predicate trees into column expressions.

Member access through a to-one relationship compiles to
``relationship.has(...)``; access through a collection is rejected.

Comparisons against constants follow in-memory evaluation: a missing
related row or a NULL column reads as ``None``, so ``o.customer.name != "x"``
matches orders without a customer and ordering comparisons never match
``None``. Every compiled comparison is two-valued, so ``not`` negates it
exactly.
"""

from __future__ import annotations

import operator
from collections.abc import Callable
from typing import Any

from sqlalchemy import and_, false, inspect as sa_inspect, not_, or_, true
from sqlalchemy.sql.elements import ColumnElement

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
from pysef.kernel.exceptions import UnsupportedPredicateError

_BINARY: dict[Operator, Callable[[Any, Any], Any]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
}

_MIRRORED = {
    Operator.EQ: Operator.EQ,
    Operator.NE: Operator.NE,
    Operator.GT: Operator.LT,
    Operator.GE: Operator.LE,
    Operator.LT: Operator.GT,
    Operator.LE: Operator.GE,
}


def _unsupported(message: str) -> UnsupportedPredicateError:
    return UnsupportedPredicateError(message, code="UNSUPPORTED_PREDICATE")


def _matches_null(op: Operator, value: Any) -> bool:
    """Whether ``None <op> value`` holds when evaluated in memory."""
    if op is Operator.EQ:
        return value is None
    if op is Operator.NE:
        return value is not None
    if op is Operator.IN:
        return None in value
    return False


def _is_nullable(column: Any) -> bool:
    columns = getattr(getattr(column, "property", None), "columns", ())
    return any(getattr(c, "nullable", False) for c in columns)


class SqlAlchemyPredicateCompiler(NodeVisitor):
    """Compile a :class:`Predicate` over a mapped class into a WHERE clause."""

    def __init__(self, entity_type: type) -> None:
        self._entity_type = entity_type
        self._parameter: Parameter | None = None

    def compile(self, predicate: Predicate) -> ColumnElement[bool]:
        self._parameter = predicate.parameter
        return self.visit(predicate.body)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def visit_Comparison(self, node: Comparison) -> ColumnElement[bool]:
        left, right, op = node.left, node.right, node.operator
        if isinstance(left, Constant) and isinstance(right, MemberAccess):
            if op not in _MIRRORED:
                raise _unsupported(f"'{op.value}' needs the member on the left-hand side")
            left, right, op = right, left, _MIRRORED[op]

        if not isinstance(left, MemberAccess):
            raise _unsupported(f"Comparison must start from a member access, got {type(left).__name__}")
        hops, column = self._resolve(left)

        if isinstance(right, Constant):
            value = right.value
            return self._wrap(hops, self._compare_literal(op, column, value), matches_null=_matches_null(op, value))
        if isinstance(right, MemberAccess):
            other_hops, other = self._resolve(right)
            if hops or other_hops:
                raise _unsupported("Comparing members across relationships is not supported")
            return self._apply(op, column, other, literal=False)
        raise _unsupported(f"Cannot compare against {type(right).__name__}")

    def visit_BooleanOp(self, node: BooleanOp) -> ColumnElement[bool]:
        clauses = [self.visit(operand) for operand in node.operands]
        return and_(*clauses) if node.operator == "and" else or_(*clauses)

    def visit_Not(self, node: Not) -> ColumnElement[bool]:
        return not_(self.visit(node.operand))

    def visit_MemberAccess(self, node: MemberAccess) -> ColumnElement[bool]:
        hops, column = self._resolve(node)
        return self._wrap(hops, column)

    def visit_Constant(self, node: Constant) -> ColumnElement[bool]:
        if isinstance(node.value, bool):
            return true() if node.value else false()
        raise _unsupported(f"Constant {node.value!r} is not a boolean expression")

    def generic_visit(self, node: Node) -> Any:
        raise _unsupported(f"{type(node).__name__} cannot be compiled to SQL")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, node: MemberAccess) -> tuple[list[Any], Any]:
        """Relationship hops and the final attribute for ``x.a.b.c``."""
        parameter, names = member_path(node)
        if parameter is not self._parameter:
            raise _unsupported(f"Member access on foreign parameter '{parameter.name}'")

        current = self._entity_type
        hops: list[Any] = []
        for name in names[:-1]:
            relationships = sa_inspect(current).relationships
            if name not in relationships:
                raise _unsupported(f"{current.__name__}.{name} is not a relationship")
            relationship = relationships[name]
            if relationship.uselist:
                raise _unsupported(f"Cannot filter through collection {current.__name__}.{name}")
            hops.append(getattr(current, name))
            current = relationship.mapper.class_

        try:
            column = getattr(current, names[-1])
        except AttributeError:
            raise _unsupported(f"{current.__name__} has no attribute '{names[-1]}'") from None
        return hops, column

    @staticmethod
    def _wrap(hops: list[Any], clause: Any, *, matches_null: bool = False) -> Any:
        for attribute in reversed(hops):
            clause = attribute.has(clause)
            if matches_null:
                clause = or_(~attribute.has(), clause)
        return clause

    def _compare_literal(self, op: Operator, column: Any, value: Any) -> Any:
        if value is None:
            if op in (Operator.EQ, Operator.NE):
                # IS NULL / IS NOT NULL, also for to-one relationships.
                return _BINARY[op](column, None)
            return false()
        if op is Operator.IN:
            clause = column.in_([item for item in value if item is not None])
        else:
            clause = self._apply(op, column, value, literal=True)
        if not _is_nullable(column):
            return clause
        if _matches_null(op, value):
            return or_(column.is_(None), clause)
        return and_(column.is_not(None), clause)

    @staticmethod
    def _apply(op: Operator, column: Any, value: Any, *, literal: bool) -> Any:
        if op in _BINARY:
            return _BINARY[op](column, value)
        if op is Operator.IN:
            if not literal:
                raise _unsupported("'in' requires a constant collection")
            return column.in_(list(value))
        escape = {"autoescape": True} if literal else {}
        if op is Operator.CONTAINS:
            return column.contains(value, **escape)
        if op is Operator.STARTSWITH:
            return column.startswith(value, **escape)
        if op is Operator.ENDSWITH:
            return column.endswith(value, **escape)
        raise _unsupported(f"Unknown operator {op!r}")
