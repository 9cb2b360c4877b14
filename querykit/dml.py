"""
===================================
INSERT, UPDATE and DELETE builders.
===================================

Write statements share the SELECT machinery: quoting, schema
substitution, attached CTEs and the running placeholder counter.

- InsertQuery: INSERT INTO ... VALUES or INSERT INTO ... SELECT
- UpdateQuery: UPDATE ... SET ... [FROM ... JOIN ...] WHERE ...
- DeleteQuery: DELETE FROM ... [USING ...] WHERE ...

All three support RETURNING. Placeholders follow text order: CTE values
first, then VALUES/SET, then joins, then WHERE.

Usage:
    from querykit.dml import InsertQuery, UpdateQuery

    insert = InsertQuery('users').values({'name': 'Ada', 'email': 'ada@example.com'})
    # INSERT INTO "users" ("name", "email") VALUES ($1, $2)

    update = UpdateQuery('users').set({'active': False}).where('id = ?', 7)
    # UPDATE "users"\\nSET "active" = $1\\nWHERE (id = $2)
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from querykit.cte import build_child, snapshot_query
from querykit.escaper import escape_column, escape_columns, escape_table_name, quote_identifier
from querykit.parameters import renumber_placeholders
from querykit.query_builder import (
    FieldList,
    FilterableQuery,
    JoinClause,
    QueryDefinition,
    as_list,
)
from querykit.statement import Condition
from querykit.types import JoinType, QueryKind, SqlValue, check_value

SELECT_COLUMN_PATTERN = re.compile(
    r'^(?:(?:"?[\w$]+"?\.)?"?([\w$]+)"?(?:\s+AS\s+"?([\w$]+)"?)?)$', re.IGNORECASE
)

ColumnValues = Union[Mapping[str, SqlValue], Iterable[Tuple[str, SqlValue]]]


def _pairs(values: ColumnValues) -> List[Tuple[str, Any]]:
    items = values.items() if isinstance(values, Mapping) else values
    return [(column, check_value(value)) for column, value in items]


class ReturningMixin:
    """RETURNING list handling shared by the write statements.

    Entries are (field, raw) pairs; raw entries such as `id::text` are
    emitted verbatim.
    """

    def _init_returning(self):
        self._returning: List[Tuple[str, bool]] = []

    def returning(self, fields: FieldList) -> 'ReturningMixin':
        """Replace the RETURNING list (`*` returns every column)."""
        self._returning = [(field, False) for field in as_list(fields)]
        return self

    def add_returning(self, *fields: str) -> 'ReturningMixin':
        self._returning.extend((field, False) for field in fields)
        return self

    def returning_raw(self, fields: FieldList) -> 'ReturningMixin':
        """Replace the RETURNING list with unquoted expressions."""
        self._returning = [(field, True) for field in as_list(fields)]
        return self

    def add_returning_raw(self, *fields: str) -> 'ReturningMixin':
        self._returning.extend((field, True) for field in fields)
        return self

    def returning_all(self) -> 'ReturningMixin':
        self._returning = [('*', False)]
        return self

    def _render_returning(self) -> Optional[str]:
        if not self._returning:
            return None
        fields = [field if raw else escape_column(field, self._flavor) for field, raw in self._returning]
        return 'RETURNING ' + ', '.join(fields)


class InsertQuery(ReturningMixin, QueryDefinition):
    """INSERT statement builder.

    Column order, and so placeholder order, is the order values were
    supplied in.

    Args:
        table: Target table
    """

    kind = QueryKind.INSERT

    def __init__(self, table: Optional[str] = None):
        super().__init__()
        self._init_returning()
        self._table = table
        self._values: List[Tuple[str, Any]] = []
        self._columns: List[str] = []
        self._select: Any = None

    def into(self, table: str) -> 'InsertQuery':
        self._table = table
        return self

    def values(self, values: ColumnValues) -> 'InsertQuery':
        """Replace the column/value pairs.

        Args:
            values: Mapping of column to value, or (column, value) pairs
        """
        self._values = _pairs(values)
        return self

    def add_value(self, column: str, value: Any) -> 'InsertQuery':
        self._values.append((column, check_value(value)))
        return self

    def columns(self, *columns: str) -> 'InsertQuery':
        """Column list for INSERT ... SELECT."""
        self._columns = list(columns)
        return self

    def from_select(self, query: Any) -> 'InsertQuery':
        """Insert the rows of a SELECT (copied) instead of VALUES."""
        self._select = snapshot_query(query)
        return self

    def _select_columns(self) -> List[str]:
        if self._columns:
            return escape_columns(self._columns, self._flavor)
        derived = []
        for column in getattr(self._select, 'columns', []):
            match = SELECT_COLUMN_PATTERN.match(column)
            name = (match.group(2) or match.group(1)) if match else column
            derived.append(quote_identifier(name, self._flavor))
        return derived

    def _render(self) -> Tuple[str, List[Any]]:
        self._require(self._table, "No table specified for INSERT query.")
        self._require(self._values or self._select is not None,
                      "No values or SELECT query specified for INSERT query.")

        ctes = self._render_ctes()
        values = list(ctes.values)
        index = ctes.next_index
        parts = [ctes.text] if ctes.text else []

        target = escape_table_name(self._table, self._flavor)
        if self._values:
            columns = ', '.join(escape_column(column, self._flavor) for column, _ in self._values)
            placeholders = ', '.join(f'${index + offset}' for offset in range(len(self._values)))
            parts.append(f'INSERT INTO {target} ({columns}) VALUES ({placeholders})')
            values.extend(value for _column, value in self._values)
        else:
            columns = self._select_columns()
            header = f'INSERT INTO {target} ({", ".join(columns)})' if columns else f'INSERT INTO {target}'
            built = build_child(self._select)
            fragment = renumber_placeholders(built.text, built.values, index)
            parts.append(f'{header}\n{fragment.text}')
            values.extend(fragment.values)

        returning = self._render_returning()
        if returning:
            parts.append(returning)
        return '\n'.join(parts), values

    def clone(self) -> 'InsertQuery':
        copy = self._copy_base_to(InsertQuery(self._table))
        copy._values = list(self._values)
        copy._columns = list(self._columns)
        copy._select = snapshot_query(self._select) if self._select is not None else None
        copy._returning = list(self._returning)
        return copy


@dataclass(frozen=True)
class SetValue:
    """One SET assignment: a bound value, or a raw expression when is_expression."""

    column: str
    value: Any = None
    is_expression: bool = False


class UpdateQuery(ReturningMixin, FilterableQuery):
    """UPDATE statement builder.

    SET placeholders are numbered before join and WHERE placeholders.

    Args:
        table: Target table
        alias: Target alias, emitted bare
    """

    kind = QueryKind.UPDATE

    def __init__(self, table: Optional[str] = None, alias: Optional[str] = None):
        super().__init__()
        self._init_returning()
        self._table = table
        self._alias = alias
        self._set: List[SetValue] = []
        self._using: Optional[Tuple[str, Optional[str]]] = None
        self._joins: List[JoinClause] = []

    def from_(self, table: str, alias: Optional[str] = None) -> 'UpdateQuery':
        """Set the table being updated."""
        self._table = table
        self._alias = alias
        return self

    def set(self, values: ColumnValues) -> 'UpdateQuery':
        """Replace the SET list with bound values."""
        self._set = [SetValue(column, value) for column, value in _pairs(values)]
        return self

    def add_set_value(self, column: str, value: Any) -> 'UpdateQuery':
        self._set.append(SetValue(column, check_value(value)))
        return self

    def add_set(self, column: str, expression: str) -> 'UpdateQuery':
        """Assign a raw expression, e.g. another column: `"total" = o.amount`."""
        self._set.append(SetValue(column, expression, is_expression=True))
        return self

    def using(self, table: str, alias: Optional[str] = None) -> 'UpdateQuery':
        """Add the `FROM table alias` source that joins hang off."""
        self._using = (table, alias)
        return self

    def join(self, table: str, on: Optional[Condition] = None, *values: Any,
             alias: Optional[str] = None,
             join_type: Union[JoinType, str] = JoinType.INNER) -> 'UpdateQuery':
        self._joins.append(JoinClause.for_table(table, on, values, alias, join_type))
        return self

    def join_subquery(self, query: Any, alias: str, on: Optional[Condition] = None, *values: Any,
                      join_type: Union[JoinType, str] = JoinType.INNER) -> 'UpdateQuery':
        self._joins.append(JoinClause.for_subquery(query, alias, on, values, join_type))
        return self

    def _render(self) -> Tuple[str, List[Any]]:
        self._require(self._table, "No table specified for UPDATE query.")
        self._require(self._set, "No SET values specified for UPDATE query.")
        self._require(self._using or not self._joins, "JOINs require a USING clause in UPDATE queries.")

        ctes = self._render_ctes()
        values = list(ctes.values)
        index = ctes.next_index
        parts = [ctes.text] if ctes.text else []

        target = escape_table_name(self._table, self._flavor)
        parts.append(f'UPDATE {target} {self._alias}' if self._alias else f'UPDATE {target}')

        assignments = []
        for item in self._set:
            column = escape_column(item.column, self._flavor)
            if item.is_expression:
                assignments.append(f'{column} = {item.value}')
            else:
                assignments.append(f'{column} = ${index}')
                values.append(item.value)
                index += 1
        parts.append('SET ' + ', '.join(assignments))

        if self._using:
            table, alias = self._using
            source = escape_table_name(table, self._flavor)
            parts.append(f'FROM {source} {alias}' if alias else f'FROM {source}')

        for join in self._joins:
            fragment = join.render(index, self._flavor)
            parts.append(fragment.text)
            values.extend(fragment.values)
            index = fragment.next_index

        self._render_where(index, values, parts)

        returning = self._render_returning()
        if returning:
            parts.append(returning)
        return '\n'.join(parts), values

    def clone(self) -> 'UpdateQuery':
        copy = self._copy_base_to(UpdateQuery(self._table, self._alias))
        copy._set = list(self._set)
        copy._using = self._using
        copy._joins = [join.clone() for join in self._joins]
        copy._where = self._where.clone()
        copy._returning = list(self._returning)
        return copy


class DeleteQuery(ReturningMixin, FilterableQuery):
    """DELETE statement builder.

    Args:
        table: Table to delete from
        alias: Table alias, rendered as `AS alias`
    """

    kind = QueryKind.DELETE

    def __init__(self, table: Optional[str] = None, alias: Optional[str] = None):
        super().__init__()
        self._init_returning()
        self._table = table
        self._alias = alias
        self._using: List[Tuple[str, Optional[str]]] = []

    def from_(self, table: str, alias: Optional[str] = None) -> 'DeleteQuery':
        self._table = table
        self._alias = alias
        return self

    def using(self, table: str, alias: Optional[str] = None) -> 'DeleteQuery':
        """Add a USING table; call repeatedly for several."""
        self._using.append((table, alias))
        return self

    def _render(self) -> Tuple[str, List[Any]]:
        self._require(self._table, "No table specified for DELETE query.")

        ctes = self._render_ctes()
        values = list(ctes.values)
        parts = [ctes.text] if ctes.text else []

        target = escape_table_name(self._table, self._flavor)
        parts.append(f'DELETE FROM {target} AS {self._alias}' if self._alias else f'DELETE FROM {target}')

        if self._using:
            sources = []
            for table, alias in self._using:
                source = escape_table_name(table, self._flavor)
                sources.append(f'{source} AS {alias}' if alias else source)
            parts.append('USING ' + ', '.join(sources))

        self._render_where(ctes.next_index, values, parts)

        returning = self._render_returning()
        if returning:
            parts.append(returning)
        return '\n'.join(parts), values

    def clone(self) -> 'DeleteQuery':
        copy = self._copy_base_to(DeleteQuery(self._table, self._alias))
        copy._using = list(self._using)
        copy._where = self._where.clone()
        copy._returning = list(self._returning)
        return copy
