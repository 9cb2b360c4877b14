"""
==============================
SELECT and UNION statements.
==============================

This module holds the statement definition contract and the two read
statement builders:

- QueryDefinition: base class; flavor, schema substitution, attached
  CTEs, build()/build_explain() with optional parameter compaction
- FilterableQuery: QueryDefinition with a WHERE predicate chain
- SelectQuery: SELECT with joins, grouping, ordering and paging
- UnionQuery: set-operator composition of SELECT statements wrapped as
  an aliased derived table

Builders are configured with chained calls and rendered by build(), which
never changes the builder, so calling it twice yields the same result.

Usage:
    from querykit.query_builder import SelectQuery

    query = (
        SelectQuery('users', 'u')
        .select(['u.id', 'u.name'])
        .where('u.active = ?', True)
        .order_by('u.name', 'ASC')
        .limit(10)
        .offset(5)
    )
    text, values = query.build()
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from core.logger import get_logger
from querykit.cte import Cte, CteMaker, build_child, snapshot_query
from querykit.escaper import append_schemas, escape_column, escape_columns, escape_table_name
from querykit.exceptions import InvalidClauseError, QueryConfigurationError
from querykit.parameters import (
    BuiltQuery,
    RenderedFragment,
    compact_parameters,
    merge_fragments,
    renumber_placeholders,
)
from querykit.statement import Condition, Predicate, Statement
from querykit.types import JoinType, OrderBy, QueryKind, SetOperator, SqlFlavor

logger = get_logger(__name__)

FieldList = Union[str, Iterable[str]]


def space_lines(text: str, spaces: int = 1) -> str:
    """Indent every line of text by the given number of spaces."""
    pad = ' ' * spaces
    return '\n'.join(pad + line for line in text.split('\n'))


def as_list(fields: FieldList) -> List[str]:
    if isinstance(fields, str):
        return [fields]
    return list(fields)


def check_count(value: Any, label: str) -> int:
    """Validate a LIMIT/OFFSET value."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidClauseError(f"{label} must be a non-negative integer.")
    return value


def render_paging(limit: Optional[int], offset: Optional[int]) -> List[str]:
    clauses = []
    if limit is not None:
        clauses.append(f'LIMIT {limit}')
    if offset is not None:
        clauses.append(f'OFFSET {offset}')
    return clauses


class QueryDefinition(ABC):
    """Base class of every parameterised statement builder.

    Subclasses implement _render(), returning text numbered from $1 and
    the values in placeholder order. build() adds schema substitution and
    optional compaction on top.

    Attributes:
        kind: QueryKind of the statement
        compact_default: compact value used when build() gets None
        deep_compare_default: deep_compare value used when build() gets None
    """

    kind: QueryKind

    def __init__(self):
        self._flavor = SqlFlavor.POSTGRES
        self._schemas: List[str] = []
        self._ctes: Optional[CteMaker] = None
        self.compact_default = False
        self.deep_compare_default = False

    @property
    def flavor(self) -> SqlFlavor:
        return self._flavor

    def sql_flavor(self, flavor: Union[SqlFlavor, str]) -> 'QueryDefinition':
        self._flavor = SqlFlavor.coerce(flavor)
        return self

    def schema(self, *schemas: str) -> 'QueryDefinition':
        """Set the names substituted for `$schema` (index 0), `$schema1`, ..."""
        self._schemas = list(schemas)
        return self

    def add_schema(self, *schemas: str) -> 'QueryDefinition':
        self._schemas.extend(schemas)
        return self

    def set_build_defaults(self, compact: bool = False, deep_compare: bool = False) -> 'QueryDefinition':
        self.compact_default = compact
        self.deep_compare_default = deep_compare
        return self

    def with_(self, ctes: Union[CteMaker, Cte, Iterable[Cte], None]) -> 'QueryDefinition':
        """Attach a WITH clause. The CTE set is copied; None detaches it."""
        if ctes is None:
            self._ctes = None
        elif isinstance(ctes, CteMaker):
            self._ctes = ctes.clone()
        elif isinstance(ctes, Cte):
            self._ctes = CteMaker(ctes)
        else:
            self._ctes = CteMaker(*ctes)
        return self

    def _render_ctes(self) -> RenderedFragment:
        if self._ctes is None:
            return RenderedFragment('', [], 1)
        built = self._ctes.build()
        return RenderedFragment(built.text, list(built.values), len(built.values) + 1)

    def _require(self, condition: Any, message: str) -> None:
        if not condition:
            logger.error(message)
            raise QueryConfigurationError(message)

    @abstractmethod
    def _render(self) -> Tuple[str, List[Any]]:
        """Return (text with placeholders numbered from $1, values)."""

    def build(self, compact: Optional[bool] = None, deep_compare: Optional[bool] = None) -> BuiltQuery:
        """Render the statement.

        Args:
            compact: Collapse repeated values onto one placeholder. None
                uses compact_default (False unless set by a factory)
            deep_compare: Compare values structurally while compacting.
                None uses deep_compare_default

        Returns:
            BuiltQuery with $N placeholders and values in placeholder order

        Raises:
            QueryConfigurationError: If a required part is missing
            SchemaIndexError: If a $schemaN token has no schema
        """
        text, values = self._render()
        text = append_schemas(text, self._schemas)

        compact = self.compact_default if compact is None else compact
        deep_compare = self.deep_compare_default if deep_compare is None else deep_compare
        if compact:
            text, values = compact_parameters(text, values, deep=deep_compare)

        logger.debug(f"Built {self.kind.value} query with {len(values)} parameter(s)")
        return BuiltQuery(text, values)

    def build_explain(self, analyze: bool = False, compact: Optional[bool] = None) -> BuiltQuery:
        """Build the statement prefixed with EXPLAIN (or EXPLAIN ANALYZE)."""
        prefix = 'EXPLAIN ANALYZE ' if analyze else 'EXPLAIN '
        return self.build(compact=compact).with_prefix(prefix)

    def _copy_base_to(self, other: 'QueryDefinition') -> 'QueryDefinition':
        other._flavor = self._flavor
        other._schemas = list(self._schemas)
        other._ctes = self._ctes.clone() if self._ctes is not None else None
        other.compact_default = self.compact_default
        other.deep_compare_default = self.deep_compare_default
        return other

    @abstractmethod
    def clone(self) -> 'QueryDefinition':
        """Return a fully independent copy."""


class FilterableQuery(QueryDefinition):
    """QueryDefinition with a WHERE chain; where() calls are ANDed."""

    def __init__(self):
        super().__init__()
        self._where = Statement()

    def where(self, condition: Condition, *values: Any) -> 'FilterableQuery':
        """Add a WHERE condition: raw text with `?` markers, a Predicate or a Statement."""
        if isinstance(condition, Statement) and not values and self._where.is_empty:
            self._where = condition.clone()
            return self
        self._where.and_(condition, *values)
        return self

    def or_where(self, condition: Condition, *values: Any) -> 'FilterableQuery':
        self._where.or_(condition, *values)
        return self

    def use_statement(self, build: Callable[[Statement], Optional[Statement]]) -> 'FilterableQuery':
        """Let a callback populate a fresh Statement used as the WHERE clause."""
        statement = Statement()
        self._where = build(statement) or statement
        return self

    def reset_where(self) -> 'FilterableQuery':
        self._where = Statement()
        return self

    def _render_where(self, start_index: int, values: List[Any], parts: List[str],
                      keyword: str = 'WHERE', statement: Optional[Statement] = None) -> int:
        statement = self._where if statement is None else statement
        fragment = statement.render(start_index)
        if fragment.text:
            parts.append(f'{keyword} {fragment.text}')
            values.extend(fragment.values)
        return fragment.next_index


@dataclass
class JoinClause:
    """One JOIN of a SELECT: a table or an aliased subquery."""

    join_type: JoinType
    on: Optional[Predicate] = None
    table: Optional[str] = None
    alias: Optional[str] = None
    subquery: Any = None

    @classmethod
    def for_table(cls, table: str, on: Optional[Condition], values: Tuple[Any, ...],
                  alias: Optional[str], join_type: Union[JoinType, str]) -> 'JoinClause':
        predicate = Predicate.of(on, *values) if on is not None else None
        return cls(JoinType.parse(join_type), predicate, table=table, alias=alias)

    @classmethod
    def for_subquery(cls, query: Any, alias: str, on: Optional[Condition], values: Tuple[Any, ...],
                     join_type: Union[JoinType, str]) -> 'JoinClause':
        predicate = Predicate.of(on, *values) if on is not None else None
        return cls(JoinType.parse(join_type), predicate, alias=alias, subquery=snapshot_query(query))

    def render(self, start_index: int, flavor: SqlFlavor) -> RenderedFragment:
        values: List[Any] = []
        index = start_index
        if self.subquery is not None:
            built = build_child(self.subquery)
            fragment = renumber_placeholders(built.text, built.values, index)
            source = f'(\n{space_lines(fragment.text)}\n) {self.alias}'
            values.extend(fragment.values)
            index = fragment.next_index
        else:
            source = escape_table_name(self.table, flavor)
            if self.alias:
                source += f' {self.alias}'

        text = f'{self.join_type.value} JOIN {source}'
        if self.on is not None:
            fragment = self.on.render(index)
            text += f'\n ON {fragment.text}'
            values.extend(fragment.values)
            index = fragment.next_index
        return RenderedFragment(text, values, index)

    def clone(self) -> 'JoinClause':
        subquery = snapshot_query(self.subquery) if self.subquery is not None else None
        return JoinClause(self.join_type, self.on, self.table, self.alias, subquery)


class SelectQuery(FilterableQuery):
    """SELECT statement builder.

    Clause order: WITH, SELECT, FROM, JOIN, WHERE, GROUP BY, HAVING,
    ORDER BY, LIMIT/OFFSET. Without select() the list is `*`.

    Args:
        table: Table to select from (may be schema-qualified or `$schema.name`)
        alias: Table alias, emitted bare
    """

    kind = QueryKind.SELECT

    def __init__(self, table: Optional[str] = None, alias: Optional[str] = None):
        super().__init__()
        self._table = table
        self._alias = alias
        self._fields: List[Tuple[str, bool]] = []
        self._distinct = False
        self._joins: List[JoinClause] = []
        self._group_by: List[str] = []
        self._group_by_select_fields = False
        self._having = Statement()
        self._order_by: List[OrderBy] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    def from_(self, table: str, alias: Optional[str] = None) -> 'SelectQuery':
        self._table = table
        self._alias = alias
        return self

    @property
    def table(self) -> Optional[str]:
        return self._table

    @property
    def columns(self) -> List[str]:
        """Select list as given (unquoted)."""
        return [field for field, _raw in self._fields]

    def select(self, fields: FieldList) -> 'SelectQuery':
        """Replace the select list with column references (quoted on render)."""
        self._fields = [(field, False) for field in as_list(fields)]
        return self

    def raw_select(self, fields: FieldList) -> 'SelectQuery':
        """Replace the select list with expressions emitted verbatim."""
        self._fields = [(field, True) for field in as_list(fields)]
        return self

    def add_select(self, *fields: str) -> 'SelectQuery':
        self._fields.extend((field, False) for field in fields)
        return self

    def add_raw_select(self, *fields: str) -> 'SelectQuery':
        self._fields.extend((field, True) for field in fields)
        return self

    def distinct(self, enabled: bool = True) -> 'SelectQuery':
        self._distinct = enabled
        return self

    def join(self, table: str, on: Optional[Condition] = None, *values: Any,
             alias: Optional[str] = None,
             join_type: Union[JoinType, str] = JoinType.INNER) -> 'SelectQuery':
        """Join a table.

        Args:
            table: Table name, quoted on render
            on: ON condition (raw text with `?` markers, Predicate or Statement)
            *values: Values for the markers in on
            alias: Table alias, emitted bare
            join_type: INNER, LEFT, RIGHT, FULL or CROSS

        Example:
            >>> query.join('customers', 'o.customer_id = c.id', alias='c', join_type='LEFT')
        """
        self._joins.append(JoinClause.for_table(table, on, values, alias, join_type))
        return self

    def join_subquery(self, query: Any, alias: str, on: Optional[Condition] = None, *values: Any,
                      join_type: Union[JoinType, str] = JoinType.INNER) -> 'SelectQuery':
        """Join an aliased subquery; the builder is copied when joined."""
        self._joins.append(JoinClause.for_subquery(query, alias, on, values, join_type))
        return self

    def group_by(self, fields: FieldList) -> 'SelectQuery':
        self._group_by.extend(as_list(fields))
        return self

    def group_by_select_fields(self, enabled: bool = True) -> 'SelectQuery':
        """Group by every select-list entry (after any explicit group_by fields)."""
        self._group_by_select_fields = enabled
        return self

    def having(self, condition: Condition, *values: Any) -> 'SelectQuery':
        self._having.and_(condition, *values)
        return self

    def use_having_statement(self, build: Callable[[Statement], Optional[Statement]]) -> 'SelectQuery':
        statement = Statement()
        self._having = build(statement) or statement
        return self

    def order_by(self, field: Union[OrderBy, dict, tuple, str, List[Any]],
                 direction: str = 'ASC') -> 'SelectQuery':
        """Append ORDER BY entries.

        Accepts a field name with a direction, an OrderBy, a mapping
        {'field': ..., 'direction': ...}, a (field, direction) pair or a list
        of any of these.
        """
        if isinstance(field, list):
            self._order_by.extend(OrderBy.coerce(item, direction) for item in field)
        else:
            self._order_by.append(OrderBy.coerce(field, direction))
        return self

    def reset_order_by(self) -> 'SelectQuery':
        self._order_by = []
        return self

    def limit(self, count: int) -> 'SelectQuery':
        self._limit = check_count(count, 'Limit')
        return self

    def offset(self, count: int) -> 'SelectQuery':
        self._offset = check_count(count, 'Offset')
        return self

    def limit_and_offset(self, limit: int, offset: Optional[int] = None) -> 'SelectQuery':
        self.limit(limit)
        if offset is not None:
            self.offset(offset)
        return self

    def reset_limit_offset(self) -> 'SelectQuery':
        self._limit = None
        self._offset = None
        return self

    def union(self, other: Any, alias: Optional[str] = None) -> 'UnionQuery':
        """Start a UnionQuery: this query, then other joined with UNION."""
        return self._combine(other, SetOperator.UNION, alias)

    def union_all(self, other: Any, alias: Optional[str] = None) -> 'UnionQuery':
        return self._combine(other, SetOperator.UNION_ALL, alias)

    def _combine(self, other: Any, operator: SetOperator, alias: Optional[str]) -> 'UnionQuery':
        union = UnionQuery(alias)
        union.sql_flavor(self._flavor)
        union.set_build_defaults(self.compact_default, self.deep_compare_default)
        return union.add(self).add(other, operator)

    def _render_fields(self) -> List[str]:
        if not self._fields:
            return ['*']
        return [field if raw else escape_column(field, self._flavor) for field, raw in self._fields]

    def _render_group_by(self, select_list: List[str]) -> List[str]:
        groups = escape_columns(self._group_by, self._flavor)
        if self._group_by_select_fields:
            groups.extend(field for field in select_list if field != '*')
        return list(dict.fromkeys(groups))

    def _render(self) -> Tuple[str, List[Any]]:
        self._require(self._table, "Table name is required for SELECT query.")

        ctes = self._render_ctes()
        values = list(ctes.values)
        index = ctes.next_index
        parts = [ctes.text] if ctes.text else []

        select_list = self._render_fields()
        keyword = 'SELECT DISTINCT' if self._distinct else 'SELECT'
        parts.append(f'{keyword}\n ' + ',\n '.join(select_list))

        from_clause = f'FROM {escape_table_name(self._table, self._flavor)}'
        if self._alias:
            from_clause += f' AS {self._alias}'
        parts.append(from_clause)

        for join in self._joins:
            fragment = join.render(index, self._flavor)
            parts.append(fragment.text)
            values.extend(fragment.values)
            index = fragment.next_index

        index = self._render_where(index, values, parts)

        groups = self._render_group_by(select_list)
        if groups:
            parts.append('GROUP BY ' + ', '.join(groups))

        self._render_where(index, values, parts, keyword='HAVING', statement=self._having)

        if self._order_by:
            orders = ', '.join(
                f'{escape_column(order.field, self._flavor)} {order.direction.value}'
                for order in self._order_by
            )
            parts.append(f'ORDER BY {orders}')

        paging = render_paging(self._limit, self._offset)
        if paging:
            parts.append(' '.join(paging))

        return '\n'.join(parts), values

    def reset(self) -> 'SelectQuery':
        """Clear every clause except the target table, alias, flavor and build defaults."""
        table, alias = self._table, self._alias
        flavor = self._flavor
        compact, deep_compare = self.compact_default, self.deep_compare_default
        self.__init__(table, alias)
        self._flavor = flavor
        self.set_build_defaults(compact, deep_compare)
        return self

    def clone(self) -> 'SelectQuery':
        copy = self._copy_base_to(SelectQuery(self._table, self._alias))
        copy._fields = list(self._fields)
        copy._distinct = self._distinct
        copy._joins = [join.clone() for join in self._joins]
        copy._where = self._where.clone()
        copy._group_by = list(self._group_by)
        copy._group_by_select_fields = self._group_by_select_fields
        copy._having = self._having.clone()
        copy._order_by = list(self._order_by)
        copy._limit = self._limit
        copy._offset = self._offset
        return copy


class UnionQuery(FilterableQuery):
    """Set-operator composition wrapped as an aliased derived table.

    Renders `SELECT * FROM (\\n member\\n\\n OPERATOR\\n\\n member\\n) AS alias`
    followed by the outer WHERE, GROUP BY, HAVING, ORDER BY, LIMIT and
    OFFSET, one clause per line. Each member is built on its own and its
    placeholders are renumbered after the previous members'.

    Args:
        alias: Derived table alias, required before build()
    """

    kind = QueryKind.UNION

    def __init__(self, alias: Optional[str] = None):
        super().__init__()
        self._alias = alias
        self._members: List[Tuple[Any, SetOperator]] = []
        self._fields: List[Tuple[str, bool]] = []
        self._group_by: List[str] = []
        self._having = Statement()
        self._order_by: List[OrderBy] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None

    def as_(self, alias: str) -> 'UnionQuery':
        self._alias = alias
        return self

    @property
    def alias(self) -> Optional[str]:
        return self._alias

    def __len__(self):
        return len(self._members)

    def add(self, query: Any, operator: Union[SetOperator, str] = SetOperator.UNION_ALL) -> 'UnionQuery':
        """Append a member (builder copied, or a BuiltQuery).

        The operator joins the member to the previous one and is ignored
        for the first member.
        """
        self._members.append((snapshot_query(query), SetOperator.parse(operator)))
        return self

    def add_many(self, members: Iterable[Any]) -> 'UnionQuery':
        """Append members given as queries, (query, operator) pairs or
        mappings with 'query' and optional 'type'."""
        for member in members:
            if isinstance(member, tuple):
                self.add(*member)
            elif isinstance(member, dict):
                self.add(member['query'], member.get('type', SetOperator.UNION_ALL))
            else:
                self.add(member)
        return self

    def add_many_of_type(self, queries: Iterable[Any],
                         operator: Union[SetOperator, str] = SetOperator.UNION_ALL) -> 'UnionQuery':
        for query in queries:
            self.add(query, operator)
        return self

    def select(self, fields: FieldList) -> 'UnionQuery':
        self._fields = [(field, False) for field in as_list(fields)]
        return self

    def raw_select(self, fields: FieldList) -> 'UnionQuery':
        self._fields = [(field, True) for field in as_list(fields)]
        return self

    def add_select(self, *fields: str) -> 'UnionQuery':
        self._fields.extend((field, False) for field in fields)
        return self

    def add_raw_select(self, *fields: str) -> 'UnionQuery':
        self._fields.extend((field, True) for field in fields)
        return self

    def group_by(self, fields: FieldList) -> 'UnionQuery':
        self._group_by = as_list(fields)
        return self

    def add_group_by(self, fields: FieldList) -> 'UnionQuery':
        self._group_by.extend(as_list(fields))
        return self

    def having(self, condition: Condition, *values: Any) -> 'UnionQuery':
        self._having.and_(condition, *values)
        return self

    def use_having_statement(self, build: Callable[[Statement], Optional[Statement]]) -> 'UnionQuery':
        statement = Statement()
        self._having = build(statement) or statement
        return self

    def order_by(self, field: Union[OrderBy, dict, tuple, str, List[Any]],
                 direction: str = 'ASC') -> 'UnionQuery':
        """Replace the outer ORDER BY entries."""
        self._order_by = []
        return self.add_order_by(field, direction)

    def add_order_by(self, field: Union[OrderBy, dict, tuple, str, List[Any]],
                     direction: str = 'ASC') -> 'UnionQuery':
        if isinstance(field, list):
            self._order_by.extend(OrderBy.coerce(item, direction) for item in field)
        else:
            self._order_by.append(OrderBy.coerce(field, direction))
        return self

    def limit(self, count: int) -> 'UnionQuery':
        self._limit = check_count(count, 'Limit')
        return self

    def offset(self, count: int) -> 'UnionQuery':
        self._offset = check_count(count, 'Offset')
        return self

    def limit_and_offset(self, limit: int, offset: Optional[int] = None) -> 'UnionQuery':
        self.limit(limit)
        if offset is not None:
            self.offset(offset)
        return self

    def _render_members(self, start_index: int) -> Tuple[List[str], List[Any], int]:
        self._require(self._members, "No SELECT queries added to the UNION.")
        built = [build_child(member) for member, _operator in self._members]
        return merge_fragments(((b.text, b.values) for b in built), start_index)

    def _join_members(self, texts: List[str], wrap: bool) -> str:
        body = ''
        for position, (text, (_member, operator)) in enumerate(zip(texts, self._members)):
            if wrap:
                text = space_lines(f'({text})')
                keyword = space_lines(operator.value)
            else:
                keyword = operator.value
            body += text if position == 0 else f'\n\n{keyword}\n\n{text}'
        return body

    def raw_union(self) -> BuiltQuery:
        """Members joined by their operators without the derived-table wrapper."""
        ctes = self._render_ctes()
        texts, values, _next_index = self._render_members(ctes.next_index)
        body = self._join_members(texts, wrap=False)
        text = f'{ctes.text}\n{body}' if ctes.text else body
        return BuiltQuery(append_schemas(text, self._schemas), list(ctes.values) + values)

    def _render(self) -> Tuple[str, List[Any]]:
        self._require(self._members, "No SELECT queries added to the UNION.")
        self._require(self._alias, "Alias is required for UNION query.")

        ctes = self._render_ctes()
        values = list(ctes.values)
        texts, member_values, index = self._render_members(ctes.next_index)
        values.extend(member_values)

        if self._fields:
            fields = [field if raw else escape_column(field, self._flavor) for field, raw in self._fields]
            head = 'SELECT\n ' + ',\n '.join(fields) + '\n FROM ('
        else:
            head = 'SELECT * FROM ('

        parts = [ctes.text] if ctes.text else []
        parts.append(f'{head}\n{self._join_members(texts, wrap=True)}\n) AS {self._alias}')

        index = self._render_where(index, values, parts)

        if self._group_by:
            parts.append('GROUP BY ' + ', '.join(escape_columns(self._group_by, self._flavor)))

        self._render_where(index, values, parts, keyword='HAVING', statement=self._having)

        if self._order_by:
            orders = ', '.join(
                f'{escape_column(order.field, self._flavor)} {order.direction.value}'
                for order in self._order_by
            )
            parts.append(f'ORDER BY {orders}')

        parts.extend(render_paging(self._limit, self._offset))
        return '\n'.join(parts), values

    def clone(self) -> 'UnionQuery':
        copy = self._copy_base_to(UnionQuery(self._alias))
        copy._members = [(snapshot_query(member), operator) for member, operator in self._members]
        copy._fields = list(self._fields)
        copy._where = self._where.clone()
        copy._group_by = list(self._group_by)
        copy._having = self._having.clone()
        copy._order_by = list(self._order_by)
        copy._limit = self._limit
        copy._offset = self._offset
        return copy
