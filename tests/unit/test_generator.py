"""Unit tests for value generators."""

from __future__ import annotations

import itertools

import pytest

from row_orm.core.connection import Connection
from row_orm.core.exceptions import MappingError, PersistenceError
from row_orm.mapping.registry import MappingRegistry
from row_orm.persistence.manager import EntityManager
from row_orm.schema.entity import Entity
from row_orm.schema.generator import (
    CallableGenerator,
    SequenceGenerator,
    TableGenerator,
    ValueGenerator,
)


@pytest.fixture
def seq_connection(connection: Connection) -> Connection:
    connection.raw.execute(
        "CREATE TABLE seq_generator (pk_column TEXT PRIMARY KEY, value_column INTEGER)"
    )
    return connection


class TestCallableGenerator:
    def test_calls_function(self) -> None:
        counter = itertools.count(100)
        generator = CallableGenerator(lambda: next(counter))
        assert isinstance(generator, ValueGenerator)
        assert [generator.next_value() for _ in range(2)] == [100, 101]


class TestTableGenerator:
    def test_first_value_creates_counter_row(self, seq_connection: Connection) -> None:
        generator = TableGenerator(seq_connection, "emp_seq", initial_value=10)
        assert generator.next_value() == 10
        assert generator.next_value() == 11
        rows = seq_connection.query("SELECT * FROM seq_generator")
        assert rows == [{"pk_column": "emp_seq", "value_column": 12}]

    def test_block_allocation_reserves_once(self, seq_connection: Connection) -> None:
        generator = TableGenerator(seq_connection, "emp_seq", allocation_size=5)
        values = [generator.next_value() for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]
        assert seq_connection.query("SELECT value_column FROM seq_generator")[0] == {
            "value_column": 6
        }
        assert generator.next_value() == 6

    def test_generators_share_counter_row(self, seq_connection: Connection) -> None:
        first = TableGenerator(seq_connection, "emp_seq")
        second = TableGenerator(seq_connection, "emp_seq")
        assert first.next_value() == 1
        assert second.next_value() == 2

    def test_invalid_table_name(self, seq_connection: Connection) -> None:
        with pytest.raises(MappingError):
            TableGenerator(seq_connection, "emp_seq", table="seq; DROP")


class TestSequenceGenerator:
    def test_uses_sql_template(self, connection: Connection) -> None:
        generator = SequenceGenerator(
            connection, "emp_seq", sql_template="SELECT 41 + 1 AS {name}"
        )
        assert generator.next_value() == 42


class TestEntityGenerators:
    def test_generator_fills_missing_key(self, connection: Connection) -> None:
        manager = EntityManager(connection, MappingRegistry())
        counter = itertools.count(500)
        manager.add_value_generator("dept_seq", CallableGenerator(lambda: next(counter)))
        dept = Entity(
            "dept",
            columns=["deptno", "dname"],
            primary_key=["deptno"],
            value_generators={"deptno": "dept_seq"},
        )
        manager.add_entities(dept)
        assert dept.insert(dname="A")["deptno"] == 500
        assert dept.insert(deptno=7, dname="B")["deptno"] == 7
        assert dept.insert(dname="C")["deptno"] == 501

    def test_unknown_generator_name(self, connection: Connection) -> None:
        manager = EntityManager(connection, MappingRegistry())
        dept = Entity(
            "dept",
            columns=["deptno", "dname"],
            primary_key=["deptno"],
            value_generators={"deptno": "missing"},
        )
        manager.add_entities(dept)
        with pytest.raises(PersistenceError, match="missing"):
            dept.insert(dname="A")
