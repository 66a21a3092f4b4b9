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
"""Tests for EntitySetResolver — convention-based entity-set lookup and its cache."""

from __future__ import annotations

import pytest

from catalog import CatalogContext, Category, DiscountedProduct, Product, Supplier
from pysef.data.context import EntityQuery, EntitySet
from pysef.data.entity_set import EntitySetDescriptor, EntitySetResolver
from pysef.data.remote.odata import RemoteEntity
from pysef.kernel.exceptions import EntitySetNotFoundError
from shop import Base, Customer, Order, OrderLine, Region, RushOrder, ShopContext


class Warehouse(RemoteEntity):
    id: int | None = None


@pytest.fixture(autouse=True)
def fresh_cache():
    EntitySetResolver.clear_cache()
    yield
    EntitySetResolver.clear_cache()


class TestDeclarations:
    def test_context_lists_declared_sets(self):
        names = [name for name, _, _ in ShopContext.entity_set_declarations()]
        assert names == ["order_set", "orders", "customers", "regions", "order_lines"]

    def test_handles_are_bound_on_construction(self):
        context = ShopContext("sqlite:///:memory:")
        try:
            assert isinstance(context.customers, EntitySet)
            assert context.customers.entity_type is Customer
            assert context.customers.name == "customers"
            assert type(context.orders) is EntityQuery
        finally:
            context.close()


class TestResolve:
    def test_query_style_is_preferred_over_set_style(self):
        descriptor = EntitySetResolver.resolve(ShopContext, Order)
        assert descriptor == EntitySetDescriptor("orders", Order, EntityQuery)

    def test_set_style_is_the_fallback(self):
        assert EntitySetResolver.resolve(ShopContext, Customer).name == "customers"

    def test_subclass_collapses_to_mapped_ancestor(self):
        assert EntitySetResolver.concrete_type(ShopContext, RushOrder) is Order
        assert EntitySetResolver.resolve(ShopContext, RushOrder).name == "orders"

    def test_remote_models_stop_at_remote_entity(self):
        assert EntitySetResolver.concrete_type(CatalogContext, DiscountedProduct) is Product
        assert EntitySetResolver.resolve(CatalogContext, DiscountedProduct).name == "products"
        assert EntitySetResolver.resolve(CatalogContext, Category).container is EntityQuery

    def test_missing_set_is_a_configuration_error(self):
        with pytest.raises(EntitySetNotFoundError) as info:
            EntitySetResolver.resolve(CatalogContext, Warehouse)
        assert info.value.code == "ENTITY_SET_NOT_FOUND"
        assert info.value.context["entity_type"] == "Warehouse"

    def test_unmapped_base_is_not_an_entity(self):
        with pytest.raises(EntitySetNotFoundError):
            EntitySetResolver.resolve(ShopContext, Base)

    def test_results_are_cached_per_context_and_type(self, monkeypatch):
        first = EntitySetResolver.resolve(ShopContext, Region)

        def fail(*args):
            raise AssertionError("resolved twice")

        monkeypatch.setattr(EntitySetResolver, "_find", classmethod(fail))
        assert EntitySetResolver.resolve(ShopContext, Region) is first


class TestAddMethod:
    def test_typed_add_method_is_found(self):
        assert EntitySetResolver.add_method(ShopContext, Customer) == "add_customer"

    def test_no_typed_add_method(self):
        assert EntitySetResolver.add_method(ShopContext, OrderLine) is None
        assert EntitySetResolver.add_method(CatalogContext, Supplier) is None
