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
"""Tests for the OData $filter compiler and query options."""

from __future__ import annotations

import datetime

import pytest

from catalog import FakeCatalogService, Product, create_catalog
from pysef.data.predicate import Predicate
from pysef.data.remote.odata import ODataFilterCompiler, format_literal
from pysef.data.specification import Direction
from pysef.kernel.exceptions import UnsupportedPredicateError


def compile_filter(fn) -> str:
    return ODataFilterCompiler(Product).compile(Predicate.of(Product, fn))


class TestLiterals:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "null"),
            (True, "true"),
            (False, "false"),
            (42, "42"),
            (2.5, "2.5"),
            ("O'Neil", "'O''Neil'"),
            (datetime.date(2026, 1, 31), "2026-01-31"),
        ],
    )
    def test_format_literal(self, value, expected):
        assert format_literal(value) == expected

    def test_unrenderable_literal(self):
        with pytest.raises(UnsupportedPredicateError):
            format_literal(object())


class TestFilterCompiler:
    def test_comparison_uses_wire_names(self):
        assert compile_filter(lambda p: p.price > 10) == "Price gt 10"

    def test_and_with_function(self):
        assert compile_filter(lambda p: (p.price > 10) & p.name.startswith("Gad")) == (
            "Price gt 10 and startswith(Name, 'Gad')"
        )

    def test_nested_member_uses_slashes(self):
        assert compile_filter(lambda p: p.category.name == "Tools") == "Category/Name eq 'Tools'"

    def test_or_inside_and_is_parenthesised(self):
        assert compile_filter(lambda p: ((p.price < 5) | (p.price >= 30)) & (p.name != "x")) == (
            "(Price lt 5 or Price ge 30) and Name ne 'x'"
        )

    def test_in_expands_to_equalities(self):
        assert compile_filter(lambda p: p.id.in_([1, 2]) & (p.price > 0)) == "(ID eq 1 or ID eq 2) and Price gt 0"

    def test_empty_in_is_false(self):
        assert compile_filter(lambda p: p.id.in_([])) == "false"

    def test_not_and_contains(self):
        assert compile_filter(lambda p: ~p.tags.contains("small")) == "not (contains(Tags, 'small'))"

    def test_null_comparison(self):
        assert compile_filter(lambda p: p.category == None) == "Category eq null"  # noqa: E711


class TestQueryOptions:
    def test_params(self):
        context = create_catalog(FakeCatalogService())
        try:
            query = (
                context.create_query("products", Product)
                .include("category")
                .include("category")
                .where(Predicate.of(Product, lambda p: p.price > 10))
                .where(Predicate.of(Product, lambda p: p.name == "Gadget"))
                .order_by("price", Direction.DESC)
                .skip(1)
                .take(2)
            )
            assert query.params == {
                "$filter": "(Price gt 10) and (Name eq 'Gadget')",
                "$expand": "Category",
                "$orderby": "Price desc",
                "$skip": "1",
                "$top": "2",
            }
        finally:
            context.close()

    def test_empty_query_has_no_options(self):
        context = create_catalog(FakeCatalogService())
        try:
            assert context.create_query("products", Product).params == {}
        finally:
            context.close()
