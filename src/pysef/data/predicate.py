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
"""Predicate expression trees.

Predicates are explicit, immutable syntax trees over a single parameter of
an entity shape. They are usually captured from a lambda::

    big_orders = Predicate.of(Order, lambda o: o.total > 100)
    acme = Predicate.of(Order, lambda o: o.customer.name == "ACME")

    both = big_orders & acme       # AND, parameters unified
    either = big_orders | acme     # OR
    small = ~big_orders            # NOT

Trees can be evaluated in memory, walked with :class:`NodeVisitor` /
:class:`NodeTransformer` (same dispatch idiom as the stdlib ``ast``
module), compiled by a backend, and serialised to plain dicts.
"""

from __future__ import annotations

import dataclasses
import enum
import inspect
import operator
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pysef.data.shape import NavigationMember, find_member, has_member, member, navigation_target


class Operator(str, enum.Enum):
    """Comparison operators understood by every backend compiler."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"
    IN = "in"
    CONTAINS = "contains"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"


# =============================================================================
# Nodes
# =============================================================================


class Node:
    """Base class for predicate tree nodes."""

    __slots__ = ()


@dataclass(frozen=True, eq=False)
class Parameter(Node):
    """The lambda parameter; two parameters are equal only if they are the same object."""

    shape: type
    name: str = "x"


@dataclass(frozen=True)
class MemberAccess(Node):
    target: Node
    name: str


@dataclass(frozen=True)
class Constant(Node):
    value: Any


@dataclass(frozen=True)
class Comparison(Node):
    operator: Operator
    left: Node
    right: Node


@dataclass(frozen=True)
class BooleanOp(Node):
    """``and`` / ``or`` over two or more operands."""

    operator: str
    operands: tuple[Node, ...]

    def __post_init__(self) -> None:
        if self.operator not in ("and", "or"):
            raise ValueError(f"Unknown boolean operator '{self.operator}'")


@dataclass(frozen=True)
class Not(Node):
    operand: Node


def iter_child_nodes(node: Node) -> Iterable[Node]:
    """Yield the direct children of *node*."""
    for f in dataclasses.fields(node):  # type: ignore[arg-type]
        value = getattr(node, f.name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, tuple):
            yield from (item for item in value if isinstance(item, Node))


def member_path(node: MemberAccess) -> tuple[Parameter, list[str]]:
    """Split ``x.a.b`` into its parameter and ``["a", "b"]``.

    Raises:
        TypeError: If the access chain is not rooted at a parameter.
    """
    names: list[str] = []
    current: Node = node
    while isinstance(current, MemberAccess):
        names.append(current.name)
        current = current.target
    if not isinstance(current, Parameter):
        raise TypeError(f"Member access is not rooted at a parameter: {node!r}")
    names.reverse()
    return current, names


# =============================================================================
# Visitors
# =============================================================================


class NodeVisitor:
    """Walks a predicate tree, dispatching to ``visit_<NodeClass>`` methods."""

    def visit(self, node: Node) -> Any:
        method = getattr(self, "visit_" + type(node).__name__, self.generic_visit)
        return method(node)

    def generic_visit(self, node: Node) -> Any:
        for child in iter_child_nodes(node):
            self.visit(child)
        return None


class NodeTransformer(NodeVisitor):
    """A visitor that returns a new tree; unchanged subtrees are shared."""

    def generic_visit(self, node: Node) -> Node:
        changes: dict[str, Any] = {}
        for f in dataclasses.fields(node):  # type: ignore[arg-type]
            value = getattr(node, f.name)
            if isinstance(value, Node):
                new_value = self.visit(value)
                if new_value is not value:
                    changes[f.name] = new_value
            elif isinstance(value, tuple) and any(isinstance(item, Node) for item in value):
                new_items = tuple(self.visit(item) if isinstance(item, Node) else item for item in value)
                if any(new is not old for new, old in zip(new_items, value)):
                    changes[f.name] = new_items
        return dataclasses.replace(node, **changes) if changes else node


_COMPARE: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
    Operator.IN: lambda left, right: left in right,
    Operator.CONTAINS: lambda left, right: right in left,
    Operator.STARTSWITH: lambda left, right: left.startswith(right),
    Operator.ENDSWITH: lambda left, right: left.endswith(right),
}


class _Evaluator(NodeVisitor):
    def __init__(self, parameter: Parameter, entity: Any) -> None:
        self._parameter = parameter
        self._entity = entity

    def visit_Parameter(self, node: Parameter) -> Any:
        if node is not self._parameter:
            raise ValueError(f"Unbound parameter '{node.name}' in predicate")
        return self._entity

    def visit_MemberAccess(self, node: MemberAccess) -> Any:
        target = self.visit(node.target)
        return None if target is None else getattr(target, node.name)

    def visit_Constant(self, node: Constant) -> Any:
        return node.value

    def visit_Comparison(self, node: Comparison) -> bool:
        left = self.visit(node.left)
        right = self.visit(node.right)
        if node.operator not in (Operator.EQ, Operator.NE) and (left is None or right is None):
            return False
        return bool(_COMPARE[node.operator](left, right))

    def visit_BooleanOp(self, node: BooleanOp) -> bool:
        if node.operator == "and":
            return all(bool(self.visit(operand)) for operand in node.operands)
        return any(bool(self.visit(operand)) for operand in node.operands)

    def visit_Not(self, node: Not) -> bool:
        return not bool(self.visit(node.operand))


_SYMBOLS = {
    Operator.EQ: "==",
    Operator.NE: "!=",
    Operator.GT: ">",
    Operator.GE: ">=",
    Operator.LT: "<",
    Operator.LE: "<=",
    Operator.IN: "in",
}


class _Formatter(NodeVisitor):
    def visit_Parameter(self, node: Parameter) -> str:
        return node.name

    def visit_MemberAccess(self, node: MemberAccess) -> str:
        return f"{self.visit(node.target)}.{node.name}"

    def visit_Constant(self, node: Constant) -> str:
        return repr(node.value)

    def visit_Comparison(self, node: Comparison) -> str:
        left, right = self.visit(node.left), self.visit(node.right)
        if node.operator in _SYMBOLS:
            return f"{left} {_SYMBOLS[node.operator]} {right}"
        return f"{left}.{node.operator.value}({right})"

    def visit_BooleanOp(self, node: BooleanOp) -> str:
        parts = [f"({self.visit(o)})" if isinstance(o, BooleanOp) else self.visit(o) for o in node.operands]
        return f" {node.operator} ".join(parts)

    def visit_Not(self, node: Not) -> str:
        return f"not ({self.visit(node.operand)})"


class _Serializer(NodeVisitor):
    def visit_Parameter(self, node: Parameter) -> dict[str, Any]:
        return {"node": "parameter", "name": node.name}

    def visit_MemberAccess(self, node: MemberAccess) -> dict[str, Any]:
        return {"node": "member", "target": self.visit(node.target), "name": node.name}

    def visit_Constant(self, node: Constant) -> dict[str, Any]:
        value = list(node.value) if isinstance(node.value, tuple) else node.value
        return {"node": "constant", "value": value}

    def visit_Comparison(self, node: Comparison) -> dict[str, Any]:
        return {
            "node": "comparison",
            "operator": node.operator.value,
            "left": self.visit(node.left),
            "right": self.visit(node.right),
        }

    def visit_BooleanOp(self, node: BooleanOp) -> dict[str, Any]:
        return {"node": "boolean", "operator": node.operator, "operands": [self.visit(o) for o in node.operands]}

    def visit_Not(self, node: Not) -> dict[str, Any]:
        return {"node": "not", "operand": self.visit(node.operand)}


def _deserialize(data: dict[str, Any], parameter: Parameter) -> Node:
    kind = data.get("node")
    if kind == "parameter":
        return parameter
    if kind == "member":
        return MemberAccess(_deserialize(data["target"], parameter), data["name"])
    if kind == "constant":
        value = data.get("value")
        return Constant(tuple(value) if isinstance(value, list) else value)
    if kind == "comparison":
        return Comparison(
            Operator(data["operator"]),
            _deserialize(data["left"], parameter),
            _deserialize(data["right"], parameter),
        )
    if kind == "boolean":
        return BooleanOp(data["operator"], tuple(_deserialize(o, parameter) for o in data["operands"]))
    if kind == "not":
        return Not(_deserialize(data["operand"], parameter))
    raise ValueError(f"Unknown predicate node kind: {kind!r}")


# =============================================================================
# Capture
# =============================================================================


def _as_node(value: Any) -> Node:
    if isinstance(value, Term):
        return value._node
    if isinstance(value, Node):
        return value
    return Constant(value)


class Term:
    """Proxy handed to predicate lambdas; operators on it build tree nodes.

    Attribute access on a term whose shape is known is checked against the
    shape, so typos fail at capture time with ``AttributeError``.
    """

    __slots__ = ("_node", "_shape", "_owner")

    def __init__(self, node: Node, shape: type | None = None, owner: type | None = None) -> None:
        self._node = node
        self._shape = shape
        self._owner = owner

    @classmethod
    def parameter(cls, parameter: Parameter) -> Term:
        return cls(parameter, parameter.shape)

    @property
    def node(self) -> Node:
        return self._node

    def __getattr__(self, name: str) -> Term:
        if name.startswith("__"):
            raise AttributeError(name)
        shape = self._shape
        next_shape: type | None = None
        if shape is not None:
            found = find_member(shape, name)
            if found is None and not has_member(shape, name):
                raise AttributeError(f"{shape.__name__} has no member '{name}'")
            if found is not None:
                next_shape = navigation_target(found.annotation)
        return Term(MemberAccess(self._node, name), next_shape, shape)

    def __navigation_member__(self) -> NavigationMember:
        if not isinstance(self._node, MemberAccess) or self._owner is None:
            raise TypeError("Only a member access on a known shape identifies a member")
        return member(self._owner, self._node.name)

    def _compare(self, op: Operator, other: Any) -> Term:
        return Term(Comparison(op, self._node, _as_node(other)))

    def __eq__(self, other: Any) -> Term:  # type: ignore[override]
        return self._compare(Operator.EQ, other)

    def __ne__(self, other: Any) -> Term:  # type: ignore[override]
        return self._compare(Operator.NE, other)

    def __gt__(self, other: Any) -> Term:
        return self._compare(Operator.GT, other)

    def __ge__(self, other: Any) -> Term:
        return self._compare(Operator.GE, other)

    def __lt__(self, other: Any) -> Term:
        return self._compare(Operator.LT, other)

    def __le__(self, other: Any) -> Term:
        return self._compare(Operator.LE, other)

    __hash__ = None  # type: ignore[assignment]

    def in_(self, values: Iterable[Any]) -> Term:
        return Term(Comparison(Operator.IN, self._node, Constant(tuple(values))))

    def contains(self, value: Any) -> Term:
        return self._compare(Operator.CONTAINS, value)

    def startswith(self, prefix: str) -> Term:
        return self._compare(Operator.STARTSWITH, prefix)

    def endswith(self, suffix: str) -> Term:
        return self._compare(Operator.ENDSWITH, suffix)

    def __and__(self, other: Any) -> Term:
        return Term(BooleanOp("and", (self._node, _as_node(other))))

    def __rand__(self, other: Any) -> Term:
        return Term(BooleanOp("and", (_as_node(other), self._node)))

    def __or__(self, other: Any) -> Term:
        return Term(BooleanOp("or", (self._node, _as_node(other))))

    def __ror__(self, other: Any) -> Term:
        return Term(BooleanOp("or", (_as_node(other), self._node)))

    def __invert__(self) -> Term:
        return Term(Not(self._node))

    def __bool__(self) -> bool:
        raise TypeError("Predicate terms cannot be used as booleans; combine them with &, | and ~")

    def __repr__(self) -> str:
        return f"Term({_Formatter().visit(self._node)})"


def _parameter_name(fn: Callable[..., Any]) -> str:
    try:
        names = list(inspect.signature(fn).parameters)
    except (TypeError, ValueError):
        return "x"
    return names[0] if names else "x"


def capture(shape: type, fn: Callable[[Any], Any]) -> tuple[Parameter, Any]:
    """Call *fn* with a fresh term for *shape*; return the parameter and the raw result."""
    parameter = Parameter(shape, _parameter_name(fn))
    return parameter, fn(Term.parameter(parameter))


# =============================================================================
# Predicate
# =============================================================================


class Predicate:
    """A boolean expression over one parameter of an entity shape."""

    __slots__ = ("_parameter", "_body")

    def __init__(self, parameter: Parameter, body: Node) -> None:
        self._parameter = parameter
        self._body = body

    @classmethod
    def of(cls, shape: type, fn: Callable[[Any], Any]) -> Predicate:
        """Capture ``fn`` (e.g. ``lambda o: o.total > 100``) as a predicate over *shape*."""
        parameter, result = capture(shape, fn)
        if isinstance(result, Term):
            return cls(parameter, result.node)
        if isinstance(result, bool):
            return cls(parameter, Constant(result))
        raise TypeError(f"Predicate lambda must return a term expression, got {type(result).__name__}")

    @classmethod
    def from_dict(cls, data: dict[str, Any], shape: type) -> Predicate:
        """Rebuild a predicate serialised with :meth:`to_dict` over *shape*."""
        parameter = Parameter(shape, data.get("parameter", "x"))
        return cls(parameter, _deserialize(data["body"], parameter))

    @property
    def parameter(self) -> Parameter:
        return self._parameter

    @property
    def body(self) -> Node:
        return self._body

    @property
    def shape(self) -> type:
        return self._parameter.shape

    def evaluate(self, entity: Any) -> bool:
        """Evaluate against an in-memory entity.

        Member access through ``None`` yields ``None``; ordering and string
        comparisons involving ``None`` are false.
        """
        return bool(_Evaluator(self._parameter, entity).visit(self._body))

    __call__ = evaluate

    def to_dict(self) -> dict[str, Any]:
        return {
            "shape": self.shape.__qualname__,
            "parameter": self._parameter.name,
            "body": _Serializer().visit(self._body),
        }

    def __and__(self, other: Predicate) -> Predicate:
        from pysef.data.composer import and_

        return and_(self, other)

    def __or__(self, other: Predicate) -> Predicate:
        from pysef.data.composer import or_

        return or_(self, other)

    def __invert__(self) -> Predicate:
        return Predicate(self._parameter, Not(self._body))

    def __repr__(self) -> str:
        return f"Predicate({self.shape.__name__}: {_Formatter().visit(self._body)})"
