"""Unit tests for relationship registration and the relationship registry."""

from __future__ import annotations

import logging

import pytest

from row_orm.core.enums import Cascade, FetchMethod, Operation
from row_orm.core.exceptions import (
    MappingError,
    MissingAssociatedClassError,
    UnknownAttributeError,
    UnknownRelationshipError,
)
from row_orm.mapping.attribute import Attribute
from row_orm.mapping.orm import EntityMapping
from row_orm.mapping.registry import MappingRegistry
from row_orm.relationship.base import ManyToMany, OneToMany, ToOne
from row_orm.relationship.lazy import LAZY_LOADER
from tests.models import Dept, Emp, Project, build_registry


class Owner:
    plain = Attribute()
    one = Attribute(associated_class="Target")
    many_all = Attribute(associated_class="Target", collection=list)
    many_insert = Attribute(associated_class="Target", collection=list)
    many_update = Attribute(associated_class="Target", collection=list)
    many_delete = Attribute(associated_class="Target", collection=list)


class Target:
    id = Attribute()


@pytest.fixture
def owner_registry() -> MappingRegistry:
    registry = MappingRegistry()
    owner = registry.entity("owner", Owner)
    registry.entity("target", Target)
    owner.to_one("target", "one", cascade=Cascade.ON_INSERT)
    owner.one_to_many("many_all", "many_all", cascade=Cascade.ALL)
    owner.one_to_many("many_insert", "many_insert", cascade=Cascade.ON_INSERT)
    owner.one_to_many("many_update", "many_update", cascade=Cascade.ON_UPDATE)
    owner.one_to_many(
        "many_delete", "many_delete", cascade=Cascade.ON_DELETE, fetch_method=FetchMethod.EAGER
    )
    return registry


class TestRegistration:
    def test_missing_associated_class_raises(self) -> None:
        mapping = MappingRegistry().entity("owner", Owner)
        with pytest.raises(MissingAssociatedClassError, match="plain"):
            mapping.to_one("target", "plain")

    def test_non_descriptor_attribute_raises(self) -> None:
        mapping = MappingRegistry().entity("owner", Owner)
        with pytest.raises(UnknownAttributeError, match="absent"):
            mapping.one_to_many("target", "absent")

    def test_mapping_outside_registry_cannot_declare(self) -> None:
        mapping = EntityMapping(Owner, "owner")
        with pytest.raises(MappingError, match="registry"):
            mapping.to_one("target", "one")

    def test_lazy_installs_read_hook(self, owner_registry: MappingRegistry) -> None:
        assert Owner.__dict__["one"].interceptor is LAZY_LOADER

    def test_eager_keeps_shared_read_hook(self, owner_registry: MappingRegistry) -> None:
        relationship = owner_registry.relationships.relationship(Owner, "many_delete")
        assert relationship.is_eager
        assert Owner.__dict__["many_delete"].interceptor is LAZY_LOADER

    def test_variants(self) -> None:
        registry = build_registry()
        relationships = registry.relationships
        assert isinstance(relationships.relationship(Dept, "employees"), OneToMany)
        assert isinstance(relationships.relationship(Emp, "dept"), ToOne)
        projects = relationships.relationship(Emp, "projects")
        assert isinstance(projects, ManyToMany)
        assert projects.join_entity_name == "emp_project"
        assert projects.target_class(registry) is Project


class TestRelationshipRegistry:
    def test_insert_filter_matches_all_and_on_insert(self, owner_registry: MappingRegistry) -> None:
        found = owner_registry.relationships.relationships_for(Owner, Operation.INSERT)
        assert {r.attribute_name for r in found} == {"one", "many_all", "many_insert"}

    def test_update_filter(self, owner_registry: MappingRegistry) -> None:
        found = owner_registry.relationships.relationships_for(Owner, Operation.UPDATE)
        assert {r.attribute_name for r in found} == {"many_all", "many_update"}

    def test_delete_filter_to_many_only(self, owner_registry: MappingRegistry) -> None:
        found = owner_registry.relationships.relationships_for(
            Owner, Operation.DELETE, to_one=False
        )
        assert {r.attribute_name for r in found} == {"many_all", "many_delete"}

    def test_to_one_filter(self, owner_registry: MappingRegistry) -> None:
        found = owner_registry.relationships.relationships_for(Owner, to_one=True)
        assert [r.attribute_name for r in found] == ["one"]

    def test_unmapped_class_yields_empty(self, owner_registry: MappingRegistry) -> None:
        assert owner_registry.relationships.relationships_for(Target, Operation.INSERT) == []
        assert owner_registry.relationships.relationships_for(int, Operation.DELETE) == []

    def test_eager_and_lazy_split(self, owner_registry: MappingRegistry) -> None:
        relationships = owner_registry.relationships
        eager = relationships.eager_fetch_relationships(Owner)
        lazy = relationships.lazy_fetch_relationships(Owner)
        assert [r.attribute_name for r in eager] == ["many_delete"]
        assert len(lazy) == 4

    def test_unknown_relationship_raises(self, owner_registry: MappingRegistry) -> None:
        with pytest.raises(UnknownRelationshipError, match="plain"):
            owner_registry.relationships.relationship(Owner, "plain")

    def test_overwrite_wins_with_warning(
        self, owner_registry: MappingRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        mapping = owner_registry.mapping_for(Owner)
        with caplog.at_level(logging.WARNING, logger="row_orm.relationship.registry"):
            mapping.to_one("other_name", "one", cascade=Cascade.NONE)
        relationship = owner_registry.relationships.relationship(Owner, "one")
        assert relationship.name == "other_name"
        assert "redefined" in caplog.text

    def test_subclass_sees_base_relationships(self, owner_registry: MappingRegistry) -> None:
        class SpecialOwner(Owner):
            pass

        found = owner_registry.relationships.relationships_for(SpecialOwner, to_one=True)
        assert [r.attribute_name for r in found] == ["one"]


class TestRelationshipValues:
    def test_values_normalizes_storage(self, owner_registry: MappingRegistry) -> None:
        relationships = owner_registry.relationships
        owner = Owner()
        one = relationships.relationship(Owner, "one")
        many = relationships.relationship(Owner, "many_all")
        assert one.values(owner) == []
        owner.one = Target()
        assert one.values(owner) == [owner.one]
        owner.many_all = {"a": 1, "b": 2}
        assert many.values(owner) == [1, 2]

    def test_read_collection_is_not_assigned(self, owner_registry: MappingRegistry) -> None:
        many = owner_registry.relationships.relationship(Owner, "many_all")
        owner = Owner()
        assert owner.many_all == []
        assert not many.is_assigned(owner)
        assert many.values(owner) == []
        owner.many_all.append(Target())
        assert many.is_assigned(owner)

    def test_assigned_empty_collection_is_assigned(
        self, owner_registry: MappingRegistry
    ) -> None:
        many = owner_registry.relationships.relationship(Owner, "many_all")
        owner = Owner()
        owner.many_all = []
        assert many.is_assigned(owner)

    def test_applies_to(self, owner_registry: MappingRegistry) -> None:
        relationship = owner_registry.relationships.relationship(Owner, "many_update")
        assert relationship.applies_to(Operation.UPDATE)
        assert not relationship.applies_to(Operation.INSERT)
