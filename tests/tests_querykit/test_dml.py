"""
=================================================
Comprehensive pytest suite for querykit/dml.py
=================================================

Sections:
---------
1. Unit tests - InsertQuery
2. Unit tests - UpdateQuery
3. Unit tests - DeleteQuery
4. Integration tests - CTEs, INSERT ... SELECT, joins
5. Edge case tests - missing table, values or USING

Available markers:
------------------
unit, integration, edge_case

Test Coverage:
--------------
- VALUES / SET placeholder order follows insertion order
- RETURNING lists, quoted and raw
- Placeholder order: CTE values, VALUES/SET, joins, WHERE
- Configuration errors raised by build()

How to Execute:
---------------
All tests:          pytest tests/tests_querykit/test_dml.py -v
By category:        pytest tests/tests_querykit/test_dml.py -m integration
"""

import pytest

from querykit.cte import Cte
from querykit.dml import DeleteQuery, InsertQuery, UpdateQuery
from querykit.exceptions import QueryConfigurationError, UnsupportedValueError
from querykit.query_builder import SelectQuery
from querykit.types import QueryKind

# ====================
# Unit Tests - InsertQuery
# ====================


@pytest.mark.unit
def test_insert_values():
    built = InsertQuery('users').values({'name': 'Ada', 'email': 'ada@example.com'}).build()

    assert built.text == 'INSERT INTO "users" ("name", "email") VALUES ($1, $2)'
    assert built.values == ('Ada', 'ada@example.com')


@pytest.mark.unit
def test_insert_keeps_pair_order():
    built = InsertQuery('t').values([('b', 2), ('a', 1)]).build()

    assert built.text == 'INSERT INTO "t" ("b", "a") VALUES ($1, $2)'
    assert built.values == (2, 1)


@pytest.mark.unit
def test_insert_into_and_add_value():
    built = InsertQuery().into('t').add_value('a', 1).add_value('deleted_at', None).build()

    assert built.text == 'INSERT INTO "t" ("a", "deleted_at") VALUES ($1, $2)'
    assert built.values == (1, None)


@pytest.mark.unit
def test_insert_returning():
    query = InsertQuery('users').values({'name': 'Ada'})

    assert query.returning(['id', 'created_at']).build().text.endswith('\nRETURNING "id", "created_at"')
    assert query.returning_all().build().text.endswith('\nRETURNING *')
    assert query.kind == QueryKind.INSERT


@pytest.mark.unit
def test_insert_returning_raw():
    query = InsertQuery('users').values({'name': 'Ada'}).returning('id').add_returning_raw('id::text AS id_text')
    assert query.build().text == (
        'INSERT INTO "users" ("name") VALUES ($1)\nRETURNING "id", id::text AS id_text'
    )

    query.returning_raw(['created_at::date'])
    assert query.build().text.endswith('\nRETURNING created_at::date')


# ====================
# Unit Tests - UpdateQuery
# ====================


@pytest.mark.unit
def test_update_set_values_come_before_where():
    built = UpdateQuery('users').set({'name': 'Ada', 'active': True}).where('id = ?', 7).build()

    assert built.text == 'UPDATE "users"\nSET "name" = $1, "active" = $2\nWHERE (id = $3)'
    assert built.values == ('Ada', True, 7)


@pytest.mark.unit
def test_update_with_expression_and_using():
    built = (
        UpdateQuery('orders', 'o')
        .add_set('total', 'p.amount')
        .add_set_value('status', 'paid')
        .using('payments', 'p')
        .where('p.order_id = o.id AND p.ref = ?', 'R1')
        .build()
    )

    assert built.text == (
        'UPDATE "orders" o\nSET "total" = p.amount, "status" = $1\n'
        'FROM "payments" p\nWHERE (p.order_id = o.id AND p.ref = $2)'
    )
    assert built.values == ('paid', 'R1')


@pytest.mark.unit
def test_update_returning():
    built = UpdateQuery('users').set({'active': False}).returning('id').build()
    assert built.text == 'UPDATE "users"\nSET "active" = $1\nRETURNING "id"'


@pytest.mark.unit
def test_update_clone_is_independent():
    query = UpdateQuery('users').set({'active': False})
    copy = query.clone().where('id = ?', 1)

    assert 'WHERE' not in query.build().text
    assert copy.build().values == (False, 1)


# ====================
# Unit Tests - DeleteQuery
# ====================


@pytest.mark.unit
def test_delete_with_where():
    built = DeleteQuery('sessions').where('expires_at < ?', '2024-01-01').build()

    assert built.text == 'DELETE FROM "sessions"\nWHERE (expires_at < $1)'
    assert built.values == ('2024-01-01',)


@pytest.mark.unit
def test_delete_with_alias_using_and_returning():
    built = (
        DeleteQuery('orders', 'o')
        .using('customers', 'c')
        .where('o.customer_id = c.id')
        .where('c.banned = ?', True)
        .returning(['o.id'])
        .build()
    )

    assert built.text == (
        'DELETE FROM "orders" AS o\nUSING "customers" AS c\n'
        'WHERE (o.customer_id = c.id)\n AND (c.banned = $1)\nRETURNING "o"."id"'
    )
    assert built.values == (True,)


@pytest.mark.unit
def test_delete_several_using_tables():
    built = DeleteQuery().from_('a').using('b').using('c', 'cc').build()
    assert built.text == 'DELETE FROM "a"\nUSING "b", "c" AS cc'


# ====================
# Integration Tests
# ====================


@pytest.mark.integration
def test_insert_from_select_with_columns():
    source = SelectQuery('users').select(['id', 'name']).where('active = ?', False)
    built = InsertQuery('archive').columns('id', 'name').from_select(source).build()

    assert built.text == (
        'INSERT INTO "archive" ("id", "name")\n'
        'SELECT\n "id",\n "name"\nFROM "users"\nWHERE (active = $1)'
    )
    assert built.values == (False,)


@pytest.mark.integration
def test_insert_from_select_derives_columns():
    source = SelectQuery('users', 'u').select(['u.id', 'u.name AS full_name'])
    built = InsertQuery('archive').from_select(source).build()

    assert built.text.startswith('INSERT INTO "archive" ("id", "full_name")\nSELECT\n')


@pytest.mark.integration
def test_insert_with_cte():
    built = (
        InsertQuery('t')
        .with_(Cte('src', SelectQuery('s').where('k = ?', 1)))
        .values({'a': 2})
        .build()
    )

    assert built.text == (
        'WITH src AS (\nSELECT\n *\nFROM "s"\nWHERE (k = $1)\n)\n'
        'INSERT INTO "t" ("a") VALUES ($2)'
    )
    assert built.values == (1, 2)


@pytest.mark.integration
def test_update_with_cte_numbers_set_after_cte():
    built = (
        UpdateQuery('t')
        .with_(Cte('c', SelectQuery('x').where('a = ?', 1)))
        .set({'b': 2})
        .where('c = ?', 3)
        .build()
    )

    assert 'SET "b" = $2\nWHERE (c = $3)' in built.text
    assert built.values == (1, 2, 3)


@pytest.mark.integration
def test_update_join_requires_and_follows_using():
    built = (
        UpdateQuery('orders', 'o')
        .set({'flag': True})
        .using('payments', 'p')
        .join('refunds', 'r.payment_id = p.id AND r.kind = ?', 'full', alias='r')
        .where('o.id = ?', 3)
        .build()
    )

    assert built.text == (
        'UPDATE "orders" o\nSET "flag" = $1\nFROM "payments" p\n'
        'INNER JOIN "refunds" r\n ON r.payment_id = p.id AND r.kind = $2\n'
        'WHERE (o.id = $3)'
    )
    assert built.values == (True, 'full', 3)


@pytest.mark.integration
def test_delete_with_cte_and_schema():
    built = (
        DeleteQuery('$schema.logs')
        .schema('audit')
        .with_(Cte('old', SelectQuery('logs').select('id').where('ts < ?', 100)))
        .where('id IN (SELECT id FROM old)')
        .build()
    )

    assert built.text.startswith('WITH old AS (\nSELECT\n "id"\nFROM "logs"\nWHERE (ts < $1)\n)\n')
    assert built.text.endswith('DELETE FROM audit."logs"\nWHERE (id IN (SELECT id FROM old))')
    assert built.values == (100,)


# ====================
# Edge Case Tests
# ====================


@pytest.mark.edge_case
def test_insert_missing_table():
    with pytest.raises(QueryConfigurationError, match="No table specified for INSERT query."):
        InsertQuery().values({'a': 1}).build()


@pytest.mark.edge_case
def test_insert_missing_values():
    with pytest.raises(QueryConfigurationError,
                       match="No values or SELECT query specified for INSERT query."):
        InsertQuery('t').build()


@pytest.mark.edge_case
def test_insert_unsupported_value():
    with pytest.raises(UnsupportedValueError):
        InsertQuery('t').values({'a': object()})


@pytest.mark.edge_case
def test_update_missing_table():
    with pytest.raises(QueryConfigurationError, match="No table specified for UPDATE query."):
        UpdateQuery().set({'a': 1}).build()


@pytest.mark.edge_case
def test_update_missing_set():
    with pytest.raises(QueryConfigurationError, match="No SET values specified for UPDATE query."):
        UpdateQuery('t').where('id = ?', 1).build()


@pytest.mark.edge_case
def test_update_join_without_using():
    query = UpdateQuery('t').set({'a': 1}).join('u', 'u.id = t.id')
    with pytest.raises(QueryConfigurationError,
                       match="JOINs require a USING clause in UPDATE queries."):
        query.build()


@pytest.mark.edge_case
def test_delete_missing_table():
    with pytest.raises(QueryConfigurationError, match="No table specified for DELETE query."):
        DeleteQuery().where('a = ?', 1).build()
