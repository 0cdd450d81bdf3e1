"""Unit tests for the statement builder."""

from __future__ import annotations

import pytest

from row_orm.core.exceptions import MappingError
from row_orm.schema import sql


class TestWhereClause:
    def test_empty_condition(self) -> None:
        assert sql.where_clause(None) == ("", {})
        assert sql.where_clause({}) == ("", {})

    def test_equality_and_null(self) -> None:
        where, params = sql.where_clause({"deptno": 10, "dname": None})
        assert where == "deptno = :w0 AND dname IS NULL"
        assert params == {"w0": 10}

    def test_in_list(self) -> None:
        where, params = sql.where_clause({"empno": [1, 2]})
        assert where == "empno IN (:w0_0, :w0_1)"
        assert params == {"w0_0": 1, "w0_1": 2}

    def test_empty_in_list_matches_nothing(self) -> None:
        where, params = sql.where_clause({"empno": []})
        assert where == "1 = 0"
        assert params == {}

    def test_alias(self) -> None:
        where, _ = sql.where_clause({"deptno": 10}, alias="o")
        assert where == "o.deptno = :w0"


class TestStatements:
    def test_select(self) -> None:
        statement, params = sql.select("emp", ["empno", "ename"], {"deptno": 10}, order_by="empno")
        assert statement == "SELECT empno, ename FROM emp WHERE deptno = :w0 ORDER BY empno"
        assert params == {"w0": 10}

    def test_select_for_update(self) -> None:
        statement, params = sql.select("dept", ["deptno"], {"deptno": 10}, for_update=True)
        assert statement == "SELECT deptno FROM dept WHERE deptno = :w0 FOR UPDATE"
        assert params == {"w0": 10}

    def test_insert(self) -> None:
        statement, params = sql.insert("dept", {"deptno": 10, "dname": "ACCOUNTING"})
        assert statement == "INSERT INTO dept (deptno, dname) VALUES (:v0, :v1)"
        assert params == {"v0": 10, "v1": "ACCOUNTING"}

    def test_update_keeps_set_and_where_binds_apart(self) -> None:
        statement, params = sql.update("dept", {"dname": "SALES"}, {"deptno": 10})
        assert statement == "UPDATE dept SET dname = :v0 WHERE deptno = :w0"
        assert params == {"v0": "SALES", "w0": 10}

    def test_delete(self) -> None:
        statement, params = sql.delete("emp", {"empno": 7})
        assert statement == "DELETE FROM emp WHERE empno = :w0"
        assert params == {"w0": 7}

    def test_join_select(self) -> None:
        statement, params = sql.join_select(
            "emp", ["empno", "deptno"], "dept", [("deptno", "deptno")], {"deptno": 10}
        )
        assert statement == (
            "SELECT t.empno, t.deptno FROM emp t INNER JOIN dept o ON t.deptno = o.deptno "
            "WHERE o.deptno = :w0"
        )
        assert params == {"w0": 10}


class TestIdentifiers:
    @pytest.mark.parametrize("name", ["emp", "_x1", "seq$gen"])
    def test_valid(self, name: str) -> None:
        assert sql.validate_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "1abc", "emp; DROP TABLE x", "a.b"])
    def test_invalid(self, name: str) -> None:
        with pytest.raises(MappingError, match="Invalid SQL identifier"):
            sql.validate_identifier(name)
