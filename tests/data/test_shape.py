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
"""Tests for entity shapes and navigation members."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Optional

import pytest
from sqlalchemy.orm import Mapped

from pysef.data.predicate import Predicate
from pysef.data.shape import (
    NavigationMember,
    element_type,
    find_member,
    has_member,
    member,
    member_of,
    shape_members,
    unwrap_annotation,
)
from catalog import Product
from shop import Customer, Order, OrderLine, RushOrder


@dataclass
class Animal:
    name: str = ""
    registry: ClassVar[dict] = {}
    _secret: int = 0


@dataclass
class Dog(Animal):
    tricks: list[str] = field(default_factory=list)
    owner: Optional[Person] = None

    @property
    def label(self) -> str:
        return self.name.upper()


@dataclass
class Person:
    name: str = ""


class TestUnwrap:
    def test_mapped_and_optional_are_removed(self):
        assert unwrap_annotation(Mapped[Optional[int]]) is int
        assert unwrap_annotation(Mapped[int | None]) is int

    def test_multi_type_union_is_kept(self):
        assert unwrap_annotation(int | str) == int | str

    def test_element_type_of_collections(self):
        assert element_type(list[Person]) is Person
        assert element_type(Mapped[list[Person]]) is Person
        assert element_type(set[int]) is int

    def test_element_type_ignores_mappings_and_scalars(self):
        assert element_type(dict[str, int]) is None
        assert element_type(str) is None
        assert element_type(tuple[int, str]) is None


class TestShapeMembers:
    def test_members_in_base_first_order(self):
        assert list(shape_members(Dog)) == ["name", "tricks", "owner", "label"]

    def test_class_vars_and_private_names_are_skipped(self):
        members = shape_members(Animal)
        assert "registry" not in members
        assert "_secret" not in members

    def test_declaring_type_is_the_defining_class(self):
        assert find_member(Dog, "name").declaring_type is Animal
        assert find_member(Dog, "tricks").declaring_type is Dog

    def test_property_members_carry_return_annotation(self):
        assert find_member(Dog, "label").annotation is str

    def test_sqlalchemy_members_are_unwrapped(self):
        assert find_member(Order, "customer").target_shape is Customer
        assert find_member(Order, "lines").target_shape is OrderLine
        assert find_member(Order, "total").member_type is float

    def test_model_framework_attributes_are_not_members(self):
        assert list(shape_members(Product)) == ["id", "name", "price", "tags", "category"]
        assert find_member(Product, "model_extra") is None
        assert "model_fields_set" not in shape_members(Product)

    def test_has_member_skips_model_framework_attributes(self):
        assert has_member(Product, "price")
        assert not has_member(Product, "model_dump")
        assert not has_member(Product, "model_extra")

    def test_predicates_cannot_reach_model_framework_attributes(self):
        with pytest.raises(AttributeError, match="no member 'model_extra'"):
            Predicate.of(Product, lambda p: p.model_extra == {})


class TestNavigationMember:
    def test_same_member_through_subclass_is_equal(self):
        assert member(RushOrder, "total") == member(Order, "total")
        assert hash(member(RushOrder, "total")) == hash(member(Order, "total"))

    def test_same_name_on_unrelated_shapes_differs(self):
        assert member(Animal, "name") != member(Person, "name")

    def test_unknown_member_raises(self):
        with pytest.raises(AttributeError, match="no member 'wings'"):
            member(Dog, "wings")

    def test_member_of_sqlalchemy_attribute(self):
        assert member_of(Order.customer) == NavigationMember(Order, "customer")

    def test_member_of_rejects_other_values(self):
        with pytest.raises(TypeError):
            member_of(42)
