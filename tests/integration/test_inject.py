"""Integration tests for building an EntityManager from a definition."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from row_orm.core.connection import Connection
from row_orm.core.enums import FetchMethod
from row_orm.core.exceptions import DefinitionError
from row_orm.meta import inject
from row_orm.relationship.base import ManyToMany, OneToMany, ToOne
from tests.models import Dept, Emp, Project

HR_DEFINITION: dict[str, Any] = {
    "name": "hr",
    "value_generators": [{"name": "project_seq", "initial_value": 500}],
    "entities": [
        {
            "name": "dept",
            "columns": ["deptno", "dname"],
            "primary_key": ["deptno"],
            "unique_columns": ["dname"],
            "to_many_relationships": [
                {"target_entity": "emp", "join_columns": ["deptno"], "order_by": "empno"}
            ],
        },
        {
            "name": "emp",
            "columns": ["empno", "ename", "deptno"],
            "primary_key": ["empno"],
            "to_one_relationships": [{"target_entity": "dept", "join_columns": ["deptno"]}],
            "to_many_relationships": [
                {"target_entity": "emp_project", "join_columns": ["empno"]}
            ],
        },
        {
            "name": "project",
            "columns": ["projno", "name"],
            "primary_key": ["projno"],
            "unique_columns": ["name"],
            "value_generators": {"projno": "project_seq"},
        },
        {
            "name": "emp_project",
            "columns": ["empno", "projno"],
            "primary_key": ["empno", "projno"],
            "to_one_relationships": [
                {"target_entity": "project", "join_columns": ["projno"], "name": "projects"}
            ],
        },
    ],
    "mappings": [
        {
            "class": "Dept",
            "entity": "dept",
            "columns": {"deptno": "id", "dname": "name"},
            "relationships": [
                {
                    "kind": "one_to_many",
                    "attribute": "employees",
                    "name": "emp",
                    "cascade": "all",
                }
            ],
        },
        {
            "class": "Emp",
            "entity": "emp",
            "columns": {"empno": "id", "ename": "name"},
            "relationships": [
                {
                    "kind": "to_one",
                    "attribute": "dept",
                    "name": "dept",
                    "fetch_method": "eager",
                    "cascade": "on_insert",
                },
                {
                    "kind": "many_to_many",
                    "attribute": "projects",
                    "name": "projects",
                    "join_entity_name": "emp_project",
                    "cascade": "all",
                },
            ],
        },
        {
            "class": "tests.models.Project",
            "entity": "project",
            "columns": {"projno": "id", "name": "name"},
        },
    ],
}


@pytest.fixture
def hr_connection(connection: Connection) -> Connection:
    connection.raw.execute(
        "CREATE TABLE seq_generator (pk_column TEXT PRIMARY KEY, value_column INTEGER)"
    )
    return connection


class TestInject:
    def test_builds_entities_and_mappings(self, hr_connection: Connection) -> None:
        manager = inject(HR_DEFINITION, hr_connection, [Dept, Emp])
        assert manager.name == "hr"
        assert set(manager.entities) == {"dept", "emp", "project", "emp_project"}
        assert manager.find_entity_mapping(Project).columns["name"].attribute_name == "name"

        relationships = manager.registry.relationships
        assert isinstance(relationships.relationship(Dept, "employees"), OneToMany)
        dept = relationships.relationship(Emp, "dept")
        assert isinstance(dept, ToOne)
        assert dept.fetch_method is FetchMethod.EAGER
        assert isinstance(relationships.relationship(Emp, "projects"), ManyToMany)

    def test_injected_manager_persists_graph(self, hr_connection: Connection, rows) -> None:
        manager = inject(HR_DEFINITION, hr_connection, {"Dept": Dept, "Emp": Emp})
        emp = Emp(1, "KING", dept=Dept(10, "ACCOUNTING"), projects=[Project(name="ALPHA")])
        manager.insert(emp)
        assert emp.projects[0].id == 500
        assert rows("emp") == [{"empno": 1, "ename": "KING", "deptno": 10}]
        assert rows("emp_project") == [{"empno": 1, "projno": 500}]

        loaded = manager.find_one(Emp, id=1)
        assert loaded.dept.name == "ACCOUNTING"

    def test_unknown_mapping_entity(self, hr_connection: Connection) -> None:
        definition = copy.deepcopy(HR_DEFINITION)
        definition["mappings"][0]["entity"] = "department"
        with pytest.raises(DefinitionError, match="department"):
            inject(definition, hr_connection, [Dept, Emp])

    def test_unknown_relationship_target(self, hr_connection: Connection) -> None:
        definition = copy.deepcopy(HR_DEFINITION)
        definition["entities"][1]["to_one_relationships"][0]["target_entity"] = "division"
        with pytest.raises(DefinitionError, match="division"):
            inject(definition, hr_connection, [Dept, Emp])

    def test_unresolvable_class(self, hr_connection: Connection) -> None:
        with pytest.raises(DefinitionError, match="Dept"):
            inject(HR_DEFINITION, hr_connection)
