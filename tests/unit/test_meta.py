"""Unit tests for declarative persistence definitions."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from row_orm.core.enums import Cascade, FetchMethod
from row_orm.core.exceptions import DefinitionError
from row_orm.meta import (
    OrmDefinition,
    RelationshipDefinition,
    _resolve_class,
    load_definition,
)
from tests.models import Dept


class TestDefinitionModels:
    def test_enum_values_case_insensitive(self) -> None:
        rel = RelationshipDefinition(
            kind="to_one", attribute="dept", name="dept", fetch_method="EAGER", cascade="All"
        )
        assert rel.fetch_method is FetchMethod.EAGER
        assert rel.cascade is Cascade.ALL

    def test_many_to_many_requires_join_entity(self) -> None:
        with pytest.raises(ValueError, match="join_entity_name"):
            RelationshipDefinition(kind="many_to_many", attribute="projects", name="projects")

    def test_class_alias(self) -> None:
        orm = OrmDefinition.model_validate({"class": "tests.models.Dept", "entity": "dept"})
        assert orm.class_name == "tests.models.Dept"
        assert OrmDefinition(class_name="Dept", entity="dept").class_name == "Dept"


class TestLoadDefinition:
    def test_from_dict_with_defaults(self) -> None:
        definition = load_definition(
            {"entities": [{"name": "dept", "columns": ["deptno"], "primary_key": ["deptno"]}]}
        )
        assert definition.name == "default"
        assert definition.entities[0].unique_columns == []
        assert definition.mappings == []

    def test_from_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "hr.json"
        path.write_text(json.dumps({"name": "hr", "entities": []}), encoding="utf-8")
        assert load_definition(path).name == "hr"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(DefinitionError, match="Invalid persistence definition"):
            load_definition(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DefinitionError):
            load_definition(path)

    def test_unknown_relationship_kind(self) -> None:
        with pytest.raises(DefinitionError, match="kind"):
            load_definition(
                {
                    "mappings": [
                        {
                            "class": "Dept",
                            "entity": "dept",
                            "relationships": [
                                {"kind": "one_to_one", "attribute": "x", "name": "x"}
                            ],
                        }
                    ]
                }
            )


class TestResolveClass:
    def test_given_by_short_name(self) -> None:
        assert _resolve_class("myapp.models.Dept", {"Dept": Dept}) is Dept

    def test_imported_by_dotted_path(self) -> None:
        assert _resolve_class("tests.models.Dept", {}) is Dept

    def test_bare_unknown_name(self) -> None:
        with pytest.raises(DefinitionError, match="not a dotted path"):
            _resolve_class("Dept", {})

    def test_missing_attribute(self) -> None:
        with pytest.raises(DefinitionError, match="Nope"):
            _resolve_class("tests.models.Nope", {})
