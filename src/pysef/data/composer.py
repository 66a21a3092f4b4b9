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
"""Predicate composition and shape conversion.

``and_`` / ``or_`` merge predicates written with independent lambda
parameters into one predicate over a single shared parameter.
``convert_shape`` retargets a predicate written for one shape onto a
structurally related shape, failing closed when a member is missing.
"""

from __future__ import annotations

from pysef.data.predicate import BooleanOp, MemberAccess, Node, NodeTransformer, Parameter, Predicate
from pysef.data.shape import has_member
from pysef.kernel.exceptions import ShapeConversionError


class _ParameterRebinder(NodeTransformer):
    """Replaces one parameter object with another throughout a tree."""

    def __init__(self, source: Parameter, target: Parameter) -> None:
        self._source = source
        self._target = target

    def visit_Parameter(self, node: Parameter) -> Parameter:
        return self._target if node is self._source else node


class _ShapeConverter(_ParameterRebinder):
    def __init__(self, source: Parameter, target: Parameter) -> None:
        super().__init__(source, target)
        self.missing: list[str] = []

    def visit_MemberAccess(self, node: MemberAccess) -> Node:
        if node.target is self._source:
            if not has_member(self._target.shape, node.name):
                self.missing.append(node.name)
            return MemberAccess(self._target, node.name)
        return self.generic_visit(node)


class PredicateComposer:
    """Builds compound predicates and converts them between shapes."""

    def and_(self, *predicates: Predicate) -> Predicate:
        """Combine *predicates* with logical AND over one shared parameter."""
        return self._combine("and", predicates)

    def or_(self, *predicates: Predicate) -> Predicate:
        """Combine *predicates* with logical OR over one shared parameter."""
        return self._combine("or", predicates)

    def _combine(self, op: str, predicates: tuple[Predicate, ...]) -> Predicate:
        if not predicates:
            raise ValueError(f"{op}_() requires at least one predicate")
        first = predicates[0]
        for other in predicates[1:]:
            if other.shape is not first.shape:
                raise TypeError(
                    f"Cannot combine predicates over {first.shape.__name__} and {other.shape.__name__}"
                )
        if len(predicates) == 1:
            return first

        parameter = first.parameter
        operands: list[Node] = []
        for predicate in predicates:
            body = predicate.body
            if predicate.parameter is not parameter:
                body = _ParameterRebinder(predicate.parameter, parameter).visit(body)
            if isinstance(body, BooleanOp) and body.operator == op:
                operands.extend(body.operands)
            else:
                operands.append(body)
        return Predicate(parameter, BooleanOp(op, tuple(operands)))

    def convert_shape(self, predicate: Predicate, from_shape: type, to_shape: type) -> Predicate:
        """Rewrite *predicate* so it applies to *to_shape* instead of *from_shape*.

        Every member accessed directly on the parameter must exist on
        *to_shape*; nested member names are carried over unchanged. The
        source predicate is left untouched.

        Raises:
            ShapeConversionError: If *predicate* is not over *from_shape*, or
                *to_shape* lacks a referenced member.
        """
        if predicate.shape is not from_shape:
            raise ShapeConversionError(
                f"Predicate is over {predicate.shape.__name__}, not {from_shape.__name__}",
                code="SHAPE_MISMATCH",
                context={"predicate_shape": predicate.shape.__name__, "from_shape": from_shape.__name__},
            )
        if from_shape is to_shape:
            return predicate

        target = Parameter(to_shape, predicate.parameter.name)
        converter = _ShapeConverter(predicate.parameter, target)
        body = converter.visit(predicate.body)
        if converter.missing:
            names = ", ".join(sorted(set(converter.missing)))
            raise ShapeConversionError(
                f"{to_shape.__name__} has no member(s) {names} referenced by a {from_shape.__name__} predicate",
                code="SHAPE_CONVERSION",
                context={"from_shape": from_shape.__name__, "to_shape": to_shape.__name__, "missing": names},
            )
        return Predicate(target, body)


_default_composer = PredicateComposer()


def and_(*predicates: Predicate) -> Predicate:
    return _default_composer.and_(*predicates)


def or_(*predicates: Predicate) -> Predicate:
    return _default_composer.or_(*predicates)


def convert_shape(predicate: Predicate, from_shape: type, to_shape: type) -> Predicate:
    return _default_composer.convert_shape(predicate, from_shape, to_shape)
