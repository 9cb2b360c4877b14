"""
Shared fixtures for querykit tests.

Key fixtures:
- users_select: SELECT on users aliased u with two columns
- member_selects: two SELECTs with one WHERE value each, for UNION tests
- query_factory: Query factory with explicit defaults (independent of .env)
- users_table: CREATE TABLE builder with three columns
"""

import pytest

from querykit.column_types import varchar
from querykit.ddl import CreateTableQuery, column
from querykit.factory import Query
from querykit.query_builder import SelectQuery


@pytest.fixture
def users_select():
    """SELECT "u"."id", "u"."name" FROM "users" AS u."""
    return SelectQuery('users', 'u').select(['u.id', 'u.name'])


@pytest.fixture
def member_selects():
    """Two SELECTs with local placeholder $1 each."""
    first = SelectQuery('table1').select(['column1', 'column2']).where('column1 = ?', 'a')
    second = SelectQuery('table2').select(['column1', 'column2']).where('column2 = ?', 'b')
    return first, second


@pytest.fixture
def query_factory():
    return Query(compact_params=False, flavor='postgres', deep_compare=False)


@pytest.fixture
def users_table():
    return (
        CreateTableQuery('users')
        .if_not_exists()
        .add_columns(
            column('id', 'INT').primary_key(),
            column('name', varchar(100)).not_null(),
            column('email', varchar(100)).unique(),
        )
    )
