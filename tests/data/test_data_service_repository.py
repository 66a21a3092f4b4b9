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
"""Tests for the repository over the remote entity-collection context (httpx.MockTransport)."""

from __future__ import annotations

import json

import httpx
import pytest

from catalog import (
    BASE_URL,
    CatalogContext,
    Category,
    DiscountedProduct,
    FakeCatalogService,
    Product,
    Supplier,
    create_catalog,
)
from pysef.data.remote.odata import DataServiceRepository
from pysef.data.specification import QuerySpecification
from pysef.data.tracking import EntityState, RefreshMode, TrackingPolicy
from pysef.kernel.exceptions import DataServiceRequestError, EntityNotTrackedError, ObjectStateError


@pytest.fixture
def service() -> FakeCatalogService:
    return FakeCatalogService()


@pytest.fixture
def repo(service):
    repository = DataServiceRepository(create_catalog(service))
    yield repository
    repository.close()


class TestGet:
    def test_spec_becomes_query_options(self, repo, service):
        spec = (
            QuerySpecification(Product)
            .where(lambda p: p.price > 1)
            .load_with(lambda p: p.category)
            .limit(0, 2)
        )
        products = repo.get(spec)
        assert [p.name for p in products] == ["Widget", "Gadget"]
        assert products[0].category == Category(id=7, name="Tools")
        params = service.last("GET").url.params
        assert params["$filter"] == "Price gt 1"
        assert params["$expand"] == "Category"
        assert params["$top"] == "2"
        assert "$skip" not in params
        assert "$orderby" not in params

    def test_order_and_skip(self, repo, service):
        repo.get(QuerySpecification(Product).order_by_descending("price").limit(1))
        params = service.last("GET").url.params
        assert params["$orderby"] == "Price desc"
        assert params["$skip"] == "1"

    def test_tracked_queries_return_known_instances(self, repo):
        first = repo.get(Product)
        second = repo.get(Product)
        assert [id(p) for p in first] == [id(p) for p in second]
        assert repo.context.get_state(first[0]) is EntityState.UNCHANGED

    def test_no_tracking_queries_return_fresh_instances(self, service):
        with DataServiceRepository(create_catalog(service), TrackingPolicy.NO_TRACKING) as repository:
            first = repository.get(Product)
            second = repository.get(Product)
            assert first[0] is not second[0]
            assert repository.context.get_state(first[0]) is EntityState.DETACHED

    def test_count(self, repo, service):
        assert repo.count(Product, lambda p: p.name.contains("G")) == 3
        request = service.last("GET")
        assert request.url.path == "/odata/products/$count"
        assert request.url.params["$filter"] == "contains(Name, 'G')"

    def test_request_failure_is_wrapped(self, repo, service):
        service.fail_with = 503
        with pytest.raises(DataServiceRequestError) as info:
            repo.get(Product)
        assert info.value.context["status"] == 503
        assert isinstance(info.value.__cause__, httpx.HTTPStatusError)


class TestDerivedTypes:
    @pytest.fixture(autouse=True)
    def deal(self, service):
        service.rows["products"][4] = {
            "@odata.type": "#DiscountedProduct",
            "ID": 4,
            "Name": "Deal",
            "Price": 10.0,
            "Tags": [],
            "Discount": 0.5,
        }

    def test_derived_query_reads_the_type_cast_segment(self, repo, service):
        products = repo.get(DiscountedProduct)
        assert service.last("GET").url.path == "/odata/products/DiscountedProduct"
        assert [(type(p), p.id, p.discount) for p in products] == [(DiscountedProduct, 4, 0.5)]

    def test_base_query_materialises_annotated_rows_as_derived(self, repo):
        products = repo.get(Product)
        assert [type(p) for p in products] == [Product, Product, Product, DiscountedProduct]
        assert products[3].discount == 0.5

    def test_qualified_type_annotation(self, repo, service):
        service.rows["products"][4]["@odata.type"] = "#Catalog.DiscountedProduct"
        assert type(repo.get(Product)[3]) is DiscountedProduct

    def test_base_and_derived_queries_share_instances(self, repo):
        deal = repo.get(DiscountedProduct)[0]
        assert repo.get(Product)[3] is deal
        assert repo.get(DiscountedProduct)[0] is deal

    def test_derived_count(self, repo, service):
        assert repo.count(DiscountedProduct) == 1
        assert service.last("GET").url.path == "/odata/products/DiscountedProduct/$count"
        assert repo.count(Product) == 4

    def test_unchanged_base_instance_is_replaced(self, repo):
        plain = Product(id=4, name="Deal", price=10.0)
        repo.context.attach_to("products", plain)
        deal = repo.get(DiscountedProduct)[0]
        assert deal is not plain
        assert repo.context.get_state(plain) is EntityState.DETACHED
        assert repo.context.get_state(deal) is EntityState.UNCHANGED
        assert repo.get(Product)[3] is deal

    def test_modified_base_instance_conflicts(self, repo):
        plain = Product(id=4, name="Deal", price=12.0)
        repo.attach(plain)
        with pytest.raises(ObjectStateError) as info:
            repo.get(DiscountedProduct)
        assert info.value.code == "DUPLICATE_IDENTITY"
        assert repo.context.get_state(plain) is EntityState.MODIFIED


class TestChanges:
    def test_add_posts_and_refreshes(self, repo, service):
        product = Product(name="Sprocket", price=3.0)
        repo.add(product)
        assert repo.context.get_state(product) is EntityState.ADDED
        assert repo.save() == 1

        post = service.last("POST")
        assert post.url.path == "/odata/products"
        assert json.loads(post.content) == {"Name": "Sprocket", "Price": 3.0, "Tags": []}
        assert product.id == 100
        assert service.last("GET").url.path == "/odata/products(100)"
        assert repo.context.get_state(product) is EntityState.UNCHANGED

    def test_modified_entity_is_put(self, repo, service):
        gadget = repo.get(Product)[1]
        gadget.price = 30.0
        assert repo.context.get_state(gadget) is EntityState.MODIFIED
        repo.save()
        put = service.last("PUT")
        assert put.url.path == "/odata/products(2)"
        assert json.loads(put.content)["Price"] == 30.0
        assert service.rows["products"][2]["Price"] == 30.0
        assert "Category" not in json.loads(put.content)

    def test_unchanged_entities_are_not_sent(self, repo, service):
        repo.get(Product)
        assert repo.save() == 0
        assert [r.method for r in service.requests] == ["GET"]

    def test_remove_sends_delete(self, repo, service):
        gizmo = repo.get(Product)[2]
        repo.remove(gizmo)
        assert repo.context.get_state(gizmo) is EntityState.DELETED
        repo.save()
        assert service.last("DELETE").url.path == "/odata/products(3)"
        assert 3 not in service.rows["products"]
        assert repo.context.get_state(gizmo) is EntityState.DETACHED

    def test_remove_added_entity_cancels_the_insert(self, repo, service):
        product = Product(name="Temp")
        repo.add(product)
        repo.remove(product)
        assert repo.save() == 0
        assert not [r for r in service.requests if r.method == "POST"]

    def test_remove_under_no_tracking_attaches_first(self, service):
        with DataServiceRepository(create_catalog(service), TrackingPolicy.NO_TRACKING) as repository:
            widget = repository.get(Product)[0]
            repository.remove(widget)
            repository.save()
        assert 1 not in service.rows["products"]

    def test_attach_untracked_entity_marks_it_modified(self, repo, service):
        supplier = Supplier(code="O'Neil", name="Renamed")
        repo.attach(supplier)
        assert repo.context.get_state(supplier) is EntityState.MODIFIED
        repo.save()
        assert service.last("PUT").url.path == "/odata/suppliers('O''Neil')"
        assert service.rows["suppliers"]["O'Neil"]["Name"] == "Renamed"

    def test_attach_twice_applies_current_values(self, repo):
        supplier = Supplier(code="O'Neil", name="Renamed")
        repo.attach(supplier)
        supplier.name = "Renamed again"
        repo.attach(supplier)
        assert repo.context.get_state(supplier) is EntityState.MODIFIED

    def test_attach_copy_updates_tracked_instance(self, repo):
        tracked = repo.get(Product)[0]
        repo.attach(Product(id=1, name="Widget v2", price=6.0))
        assert tracked.name == "Widget v2"
        assert repo.context.get_state(tracked) is EntityState.MODIFIED

    def test_detach(self, repo):
        widget = repo.get(Product)[0]
        repo.detach(widget)
        assert repo.context.get_state(widget) is EntityState.DETACHED


class TestRefresh:
    def test_refresh_store_wins(self, repo, service):
        widget = repo.get(Product)[0]
        widget.name = "Local"
        service.rows["products"][1]["Price"] = 6.0
        repo.refresh(widget)
        assert (widget.name, widget.price) == ("Widget", 6.0)
        assert repo.context.get_state(widget) is EntityState.UNCHANGED

    def test_refresh_client_wins(self, repo, service):
        widget = repo.get(Product)[0]
        widget.name = "Local"
        service.rows["products"][1]["Price"] = 6.0
        repo.context.refresh(RefreshMode.CLIENT_WINS, widget)
        assert (widget.name, widget.price) == ("Local", 6.0)
        assert repo.context.get_state(widget) is EntityState.MODIFIED

    def test_refresh_untracked_is_skipped(self, repo, service):
        repo.refresh(Product(id=1))
        assert service.requests == []

    def test_strict_refresh(self, service):
        with DataServiceRepository(create_catalog(service), strict_refresh=True) as repository:
            with pytest.raises(EntityNotTrackedError):
                repository.refresh(Product(id=1))


class TestLifecycle:
    def test_create_returns_untracked_model(self, repo):
        product = repo.create(Product)
        assert isinstance(product, Product)
        assert repo.context.get_state(product) is EntityState.DETACHED

    def test_clone(self, repo):
        clone = repo.clone()
        try:
            assert isinstance(clone, DataServiceRepository)
            assert clone.context is not repo.context
            assert clone.context.connection_string == BASE_URL
            assert len(clone.get(Product)) == 3
        finally:
            clone.close()

    def test_from_url_and_client(self, service):
        repository = DataServiceRepository.from_url(
            CatalogContext,
            BASE_URL,
            transport=httpx.MockTransport(service.handler),
            headers={"X-Tenant": "acme"},
        )
        with repository:
            assert isinstance(repository.client, httpx.Client)
            repository.get(Product)
        assert service.last().headers["X-Tenant"] == "acme"
