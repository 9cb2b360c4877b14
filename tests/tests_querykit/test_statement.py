"""
=======================================================
Comprehensive pytest suite for querykit/statement.py
=======================================================

Sections:
---------
1. Unit tests - Predicate construction and combination
2. Unit tests - Statement chains and helpers
3. Unit tests - SearchModule helpers
4. Edge case tests - empty chains, mismatched values, bad kinds

Available markers:
------------------
unit, integration, edge_case

Test Coverage:
--------------
- Predicate: marker/value validation, `&` / `|`, rendering from an index
- Statement: and_/or_/raw, IN, BETWEEN, LIKE, NULL, EXISTS, nesting
- SearchModule: fulltext, fulltext_tsvector, word_by_word, fuzzy_trigram
- Bound value checking

How to Execute:
---------------
All tests:          pytest tests/tests_querykit/test_statement.py -v
By category:        pytest tests/tests_querykit/test_statement.py -m unit
"""

import dataclasses
import datetime
import uuid
from decimal import Decimal

import pytest

from querykit.exceptions import (
    InvalidClauseError,
    PlaceholderMismatchError,
    UnsupportedValueError,
)
from querykit.parameters import BuiltQuery
from querykit.query_builder import SelectQuery
from querykit.statement import Predicate, Statement, StatementKind

# ====================
# Unit Tests - Predicate
# ====================


@pytest.mark.unit
def test_predicate_renders_from_start_index():
    fragment = Predicate('a = ? AND b = ?', ('x', 'y')).render(3)

    assert fragment.text == 'a = $3 AND b = $4'
    assert fragment.values == ['x', 'y']
    assert fragment.next_index == 5


@pytest.mark.unit
def test_predicate_and_or_combination():
    """Test `&` and `|` parenthesise and concatenate values in order."""
    a = Predicate('a = ?', (1,))
    b = Predicate('b = ?', (2,))
    c = Predicate('c = ?', (3,))

    combined = (a & b) | c

    assert combined.text == '((a = ? AND b = ?) OR c = ?)'
    assert combined.values == (1, 2, 3)


@pytest.mark.unit
def test_predicate_is_immutable():
    predicate = Predicate('a = ?', (1,))
    with pytest.raises(dataclasses.FrozenInstanceError):
        predicate.text = 'b = ?'


@pytest.mark.unit
def test_predicate_of_built_query():
    predicate = Predicate.of(BuiltQuery('SELECT id FROM "t" WHERE (x = $1)', (5,)))
    assert predicate.text == 'SELECT id FROM "t" WHERE (x = ?)'
    assert predicate.values == (5,)


@pytest.mark.unit
def test_predicate_accepts_supported_value_types():
    values = (None, True, 1, 1.5, Decimal('2.5'), 'x', b'raw',
              datetime.date(2024, 1, 1), datetime.datetime(2024, 1, 1, 12),
              uuid.UUID(int=1), [1, 2], {'k': [1, {'n': None}]})
    markers = ', '.join('?' for _ in values)

    assert Predicate(f'f({markers})', values).values == values


# ====================
# Unit Tests - Statement
# ====================


@pytest.mark.unit
def test_statement_chain_renders_segments():
    """Test first segment is bare and later ones carry their kind."""
    built = Statement().and_('a = ?', 1).and_('b = ?', 2).or_('c = ?', 3).build()

    assert built.text == 'WHERE (a = $1)\n AND (b = $2)\n OR (c = $3)'
    assert built.values == (1, 2, 3)


@pytest.mark.unit
def test_nested_statement_is_parenthesised():
    inner = Statement().and_('b = ?', 2).or_('c = ?', 3)
    built = Statement().and_('a = ?', 1).and_(inner).or_('d = ?', 4).build()

    assert built.text == 'WHERE (a = $1)\n AND ((b = $2)\n OR (c = $3))\n OR (d = $4)'
    assert built.values == (1, 2, 3, 4)


@pytest.mark.unit
def test_build_without_where_on_one_line():
    built = Statement().and_('a = ?', 1).and_('b = ?', 2).build(with_where=False, new_line=False)
    assert built.text == '(a = $1) AND (b = $2)'


@pytest.mark.unit
def test_render_from_start_index():
    fragment = Statement().and_('a = ?', 1).render(5)
    assert fragment.text == '(a = $5)'
    assert fragment.next_index == 6


@pytest.mark.unit
def test_raw_with_kind():
    built = Statement().raw('a = ?', 1).raw('b = ? OR c = ?', 2, 3, kind='or').build()
    assert built.text == 'WHERE (a = $1)\n OR (b = $2 OR c = $3)'


@pytest.mark.unit
def test_in_expands_one_marker_per_value():
    built = Statement().in_('id', [1, 2, 3]).build()
    assert built.text == 'WHERE (id IN ($1, $2, $3))'
    assert built.values == (1, 2, 3)


@pytest.mark.unit
def test_not_in():
    built = Statement().not_in('status', ('a', 'b')).build()
    assert built.text == 'WHERE (status NOT IN ($1, $2))'


@pytest.mark.unit
def test_between_and_not_between():
    built = Statement().between('age', 18, 65).not_between('score', 0, 10, 'OR').build()
    assert built.text == 'WHERE (age BETWEEN $1 AND $2)\n OR (score NOT BETWEEN $3 AND $4)'
    assert built.values == (18, 65, 0, 10)


@pytest.mark.unit
def test_null_checks():
    built = Statement().is_null('deleted_at').is_not_null('email', 'OR').build()
    assert built.text == 'WHERE (deleted_at IS NULL)\n OR (email IS NOT NULL)'
    assert built.values == ()


@pytest.mark.unit
def test_like_family():
    built = (
        Statement()
        .like('a', 'x%')
        .ilike('b', 'y%')
        .not_like('c', 'z%')
        .not_ilike('d', 'w%')
        .build(new_line=False)
    )
    assert built.text == (
        'WHERE (a LIKE $1) AND (b ILIKE $2) AND (c NOT LIKE $3) AND (d NOT ILIKE $4)'
    )


@pytest.mark.integration
def test_exists_embeds_select_builder():
    """Test a SELECT builder is embedded and its placeholders continue the chain."""
    subquery = SelectQuery('orders').select('id').where('orders.user_id = ?', 9)
    built = Statement().and_('a = ?', 1).exists(subquery).build()

    assert built.text == (
        'WHERE (a = $1)\n AND (EXISTS (SELECT\n "id"\nFROM "orders"\n'
        'WHERE (orders.user_id = $2)))'
    )
    assert built.values == (1, 9)


@pytest.mark.unit
def test_not_exists_with_raw_subquery():
    built = Statement().not_exists('SELECT 1 FROM "t" WHERE t.id = ?', 4).build()
    assert built.text == 'WHERE (NOT EXISTS (SELECT 1 FROM "t" WHERE t.id = $1))'
    assert built.values == (4,)


@pytest.mark.unit
def test_join_statements_skips_empty():
    built = Statement().join_statements(
        [Statement().and_('a = ?', 1), Statement(), Statement().and_('b = ?', 2)],
        StatementKind.OR,
    ).build()

    assert built.text == 'WHERE ((a = $1))\n OR ((b = $2))'


@pytest.mark.unit
def test_clone_is_independent():
    original = Statement().and_('a = ?', 1)
    copy = original.clone().and_('b = ?', 2)

    assert original.build().values == (1,)
    assert copy.build().values == (1, 2)


@pytest.mark.unit
def test_reset_and_len():
    statement = Statement().and_('a = ?', 1).or_('b = ?', 2)
    assert len(statement) == 2
    assert statement.reset().is_empty


# ====================
# Unit Tests - SearchModule
# ====================


@pytest.mark.unit
def test_fulltext_case_insensitive_by_default():
    built = Statement().search().fulltext('title', 'red').build()
    assert built.text == 'WHERE (title ILIKE $1)'
    assert built.values == ('%red%',)


@pytest.mark.unit
def test_fulltext_case_sensitive():
    built = Statement().search().fulltext('title', 'red', case_insensitive=False).build()
    assert built.text == 'WHERE (title LIKE $1)'


@pytest.mark.unit
def test_fulltext_tsvector():
    built = Statement().search().fulltext_tsvector('body', 'red apple').build()

    assert built.text == 'WHERE (to_tsvector($1, body) @@ to_tsquery($2, $3))'
    assert built.values == ('simple', 'simple', 'red:* & apple:*')


@pytest.mark.unit
def test_word_by_word():
    built = Statement().search().word_by_word('title', 'red apple').build()

    assert built.text == 'WHERE (title ILIKE $1)\n AND (title ILIKE $2)'
    assert built.values == ('%red%', '%apple%')


@pytest.mark.unit
def test_fuzzy_trigram():
    built = Statement().search().fuzzy_trigram('name', 'jon').build()

    assert built.text == 'WHERE ((name % $1)\n AND (similarity(name, $2) >= $3))'
    assert built.values == ('jon', 'jon', 0.3)


# ====================
# Edge Case Tests
# ====================


@pytest.mark.edge_case
def test_empty_statement_builds_empty():
    built = Statement().build()
    assert built.text == ''
    assert built.values == ()


@pytest.mark.edge_case
def test_empty_in_matches_nothing_and_empty_not_in_matches_all():
    assert Statement().in_('id', []).build().text == 'WHERE (1 = 0)'
    assert Statement().not_in('id', []).build().text == 'WHERE (1 = 1)'


@pytest.mark.edge_case
def test_marker_count_mismatch_fails_fast():
    with pytest.raises(PlaceholderMismatchError) as exc_info:
        Statement().and_('a = ? AND b = ?', 1)

    assert exc_info.value.expected == 2
    assert exc_info.value.received == 1
    assert isinstance(exc_info.value, ValueError)


@pytest.mark.edge_case
def test_extra_values_on_predicate_rejected():
    with pytest.raises(PlaceholderMismatchError):
        Predicate('a = ?', ())


@pytest.mark.edge_case
def test_marker_inside_literal_needs_no_value():
    built = Statement().raw("note <> '?' AND id = ?", 5).build()
    assert built.text == "WHERE (note <> '?' AND id = $1)"


@pytest.mark.edge_case
def test_empty_nested_statement_is_skipped():
    built = Statement().and_('a = ?', 1).and_(Statement()).build()
    assert built.text == 'WHERE (a = $1)'


@pytest.mark.edge_case
def test_invalid_kind_rejected():
    with pytest.raises(InvalidClauseError):
        Statement().raw('a = 1', kind='XOR')


@pytest.mark.edge_case
def test_unsupported_value_rejected():
    with pytest.raises(UnsupportedValueError):
        Statement().and_('a = ?', object())


@pytest.mark.edge_case
def test_unsupported_nested_value_rejected():
    with pytest.raises(TypeError):
        Statement().and_('a = ?', [1, {'k': object()}])


@pytest.mark.edge_case
def test_non_string_json_keys_rejected():
    with pytest.raises(UnsupportedValueError):
        Predicate('a = ?', ({1: 'x'},))
