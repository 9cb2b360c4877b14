"""
=====================================================
Comprehensive pytest suite for querykit/factory.py
=====================================================

Sections:
---------
1. Unit tests - Query factory defaults
2. Unit tests - Table factory
3. Integration tests - defaults read from core.config
4. Unit tests - feedback notice

Available markers:
------------------
unit, integration, smoke

Test Coverage:
--------------
- Query: flavor and compaction defaults handed to every builder
- Table: DDL builders sharing one flavor
- show_feedback_notice: logged once, opt-in

How to Execute:
---------------
All tests:          pytest tests/tests_querykit/test_factory.py -v
"""

import logging

import pytest

import querykit
from core.config import config
from querykit.cte import Cte, CteMaker
from querykit.ddl import AlterTableQuery, ColumnDefinition, CreateTableQuery, DropTableQuery, column
from querykit.dml import DeleteQuery, InsertQuery, UpdateQuery
from querykit.factory import Query, Table
from querykit.notice import FEEDBACK_MESSAGE, reset_feedback_notice, show_feedback_notice
from querykit.query_builder import SelectQuery, UnionQuery
from querykit.statement import Statement
from querykit.types import SqlFlavor

# ====================
# Smoke Tests
# ====================


@pytest.mark.smoke
def test_package_exports():
    assert querykit.__version__ == "0.1.0"
    for name in querykit.__all__:
        assert hasattr(querykit, name), name


@pytest.mark.smoke
def test_factory_builds_every_kind(query_factory):
    assert isinstance(query_factory.select('t'), SelectQuery)
    assert isinstance(query_factory.insert('t'), InsertQuery)
    assert isinstance(query_factory.update('t'), UpdateQuery)
    assert isinstance(query_factory.delete('t'), DeleteQuery)
    assert isinstance(query_factory.union('u'), UnionQuery)
    assert isinstance(query_factory.cte('c', SelectQuery('t')), Cte)
    assert isinstance(query_factory.ctes(), CteMaker)
    assert isinstance(query_factory.statement(), Statement)


# ====================
# Unit Tests - Query
# ====================


@pytest.mark.unit
def test_factory_compaction_default():
    query = Query(compact_params=True, flavor='postgres', deep_compare=False)
    select = query.select('t').where('a = ? OR b = ?', 1, 1)

    assert select.build().values == (1,)
    assert select.build(compact=False).values == (1, 1)


@pytest.mark.unit
def test_factory_deep_compare_default():
    query = Query(compact_params=True, flavor='postgres', deep_compare=True)
    built = query.select('t').where('a = ? OR b = ?', [1], [1]).build()

    assert built.text.endswith('WHERE (a = $1 OR b = $1)')
    assert built.values == ([1],)


@pytest.mark.unit
def test_factory_flavor():
    query = Query(compact_params=False, flavor='mysql', deep_compare=False)

    assert query.flavor is SqlFlavor.MYSQL
    assert query.select('users').build().text == 'SELECT\n *\nFROM `users`'
    assert query.insert('t').values({'a': 1}).build().text == 'INSERT INTO `t` (`a`) VALUES ($1)'


@pytest.mark.unit
def test_factory_builders_are_fresh(query_factory):
    first = query_factory.select('t').where('a = ?', 1)
    second = query_factory.select('t')

    assert first is not second
    assert second.build().values == ()


@pytest.mark.unit
def test_factory_union(query_factory):
    union = query_factory.union('u').add(query_factory.select('a')).add(query_factory.select('b'))
    assert union.build().text.endswith(') AS u')


# ====================
# Unit Tests - Table
# ====================


@pytest.mark.unit
def test_table_factory():
    table = Table('postgres')

    assert table.create('users', column('id', 'INT')).build() == 'CREATE TABLE "users" (\n  id INT\n);'
    assert isinstance(table.alter('users'), AlterTableQuery)
    assert table.drop('users').if_exists().build() == 'DROP TABLE IF EXISTS "users";'
    assert isinstance(table.column('id', 'INT'), ColumnDefinition)


@pytest.mark.unit
def test_query_table_shares_flavor():
    table = Query(compact_params=False, flavor='mssql', deep_compare=False).table

    assert isinstance(table, Table)
    assert isinstance(table.create('t'), CreateTableQuery)
    assert isinstance(table.drop('t'), DropTableQuery)
    assert table.drop('t').build() == 'DROP TABLE [t];'


# ====================
# Integration Tests - Config Defaults
# ====================


@pytest.mark.integration
def test_defaults_come_from_config(monkeypatch):
    monkeypatch.setattr(config.builder, 'compact_params', True)
    monkeypatch.setattr(config.builder, 'sql_flavor', 'sqlite')

    query = Query()

    assert query.compact_params is True
    assert query.flavor is SqlFlavor.SQLITE
    assert Table().flavor is SqlFlavor.SQLITE


@pytest.mark.integration
def test_explicit_arguments_override_config(monkeypatch):
    monkeypatch.setattr(config.builder, 'compact_params', True)
    assert Query(compact_params=False).compact_params is False


# ====================
# Unit Tests - Feedback Notice
# ====================


@pytest.mark.unit
def test_feedback_notice_is_logged_once(caplog):
    reset_feedback_notice()
    caplog.set_level(logging.INFO, logger='querykit.notice')

    assert show_feedback_notice() is True
    assert show_feedback_notice() is False

    messages = [record.getMessage() for record in caplog.records if record.name == 'querykit.notice']
    assert messages == [FEEDBACK_MESSAGE]
    reset_feedback_notice()
