"""
===================================
Predicate building for WHERE/HAVING.
===================================

Conditions are written as raw fragments with `?` markers plus the values
for those markers, in order:

- Predicate: an immutable fragment + values; `&` and `|` combine two
  predicates into `(left AND right)` / `(left OR right)`
- Statement: a chain of predicates joined by AND/OR, each parenthesised,
  with helpers for IN, BETWEEN, LIKE, NULL checks, EXISTS and search
- SearchModule: text search helpers reached through Statement.search()

Markers are turned into `$N` placeholders only when rendered, starting
from the index the owning statement hands in.

Example:
    >>> stmt = Statement().and_('a = ?', 1).and_('b = ?', 2).or_('c = ?', 3)
    >>> print(stmt.build().text)
    WHERE (a = $1)
     AND (b = $2)
     OR (c = $3)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Sequence, Tuple, Union

from querykit.exceptions import InvalidClauseError, PlaceholderMismatchError
from querykit.parameters import (
    BuiltQuery,
    RenderedFragment,
    bind_markers,
    count_markers,
    placeholders_to_markers,
)
from querykit.types import SqlValue, check_value


class StatementKind(str, Enum):
    AND = 'AND'
    OR = 'OR'

    @classmethod
    def parse(cls, value: Union['StatementKind', str]) -> 'StatementKind':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidClauseError(f"Invalid statement kind: {value}. Use AND or OR") from None


@dataclass(frozen=True)
class Predicate:
    """Immutable condition fragment with its bound values.

    Attributes:
        text: Fragment with one `?` marker per value
        values: Values for the markers, in marker order

    Raises:
        PlaceholderMismatchError: If marker and value counts differ
        UnsupportedValueError: If a value cannot be bound
    """

    text: str
    values: Tuple[SqlValue, ...] = field(default_factory=tuple)

    def __post_init__(self):
        values = tuple(check_value(value) for value in self.values)
        markers = count_markers(self.text)
        if markers != len(values):
            raise PlaceholderMismatchError(self.text, markers, len(values))
        object.__setattr__(self, 'values', values)

    @classmethod
    def of(cls, condition: 'Condition', *values: Any) -> 'Predicate':
        """Normalise a condition argument into a Predicate.

        Accepts a raw string (with values), a Predicate, a Statement or a
        built query definition embedded verbatim.
        """
        if isinstance(condition, Predicate):
            if values:
                raise PlaceholderMismatchError(condition.text, len(condition.values),
                                               len(condition.values) + len(values))
            return condition
        if isinstance(condition, Statement):
            if values:
                raise PlaceholderMismatchError(condition.to_predicate().text,
                                               len(condition.values),
                                               len(condition.values) + len(values))
            return condition.to_predicate()
        if isinstance(condition, BuiltQuery):
            return cls(placeholders_to_markers(condition.text, condition.values), condition.values)
        if hasattr(condition, 'build') and not isinstance(condition, str):
            built = condition.build(compact=False)
            return cls(placeholders_to_markers(built.text, built.values), built.values)
        return cls(condition, values)

    def combine(self, other: 'Condition', kind: Union[StatementKind, str]) -> 'Predicate':
        other = Predicate.of(other)
        kind = StatementKind.parse(kind)
        return Predicate(f'({self.text} {kind.value} {other.text})', self.values + other.values)

    def __and__(self, other):
        return self.combine(other, StatementKind.AND)

    def __or__(self, other):
        return self.combine(other, StatementKind.OR)

    def render(self, start_index: int = 1) -> RenderedFragment:
        text, next_index = bind_markers(self.text, start_index)
        return RenderedFragment(text, list(self.values), next_index)


class Statement:
    """Chain of AND/OR joined predicates rendered as one clause.

    The first predicate renders as `(condition)`, every later one as
    `KIND (condition)`. A nested Statement is parenthesised as a whole.
    """

    def __init__(self):
        self._segments: List[Tuple[StatementKind, Predicate]] = []

    def _add(self, condition: 'Condition', values: Sequence[Any] = (),
             kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        if isinstance(condition, Statement) and condition.is_empty and not values:
            return self
        self._segments.append((StatementKind.parse(kind), Predicate.of(condition, *values)))
        return self

    def and_(self, condition: 'Condition', *values: Any) -> 'Statement':
        return self._add(condition, values, StatementKind.AND)

    def or_(self, condition: 'Condition', *values: Any) -> 'Statement':
        return self._add(condition, values, StatementKind.OR)

    def raw(self, template: str, *values: Any,
            kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(template, values, kind)

    def in_(self, column: str, values: Iterable[Any],
            kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        """Add `column IN (?, ...)`. An empty list matches nothing."""
        values = list(values)
        if not values:
            return self._add('1 = 0', (), kind)
        markers = ', '.join('?' for _ in values)
        return self._add(f'{column} IN ({markers})', values, kind)

    def not_in(self, column: str, values: Iterable[Any],
               kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        """Add `column NOT IN (?, ...)`. An empty list matches everything."""
        values = list(values)
        if not values:
            return self._add('1 = 1', (), kind)
        markers = ', '.join('?' for _ in values)
        return self._add(f'{column} NOT IN ({markers})', values, kind)

    def between(self, column: str, start: Any, end: Any,
                kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} BETWEEN ? AND ?', (start, end), kind)

    def not_between(self, column: str, start: Any, end: Any,
                    kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} NOT BETWEEN ? AND ?', (start, end), kind)

    def is_null(self, column: str, kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} IS NULL', (), kind)

    def is_not_null(self, column: str, kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} IS NOT NULL', (), kind)

    def like(self, column: str, pattern: str, kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} LIKE ?', (pattern,), kind)

    def ilike(self, column: str, pattern: str, kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} ILIKE ?', (pattern,), kind)

    def not_like(self, column: str, pattern: str,
                 kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} NOT LIKE ?', (pattern,), kind)

    def not_ilike(self, column: str, pattern: str,
                  kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        return self._add(f'{column} NOT ILIKE ?', (pattern,), kind)

    def exists(self, subquery: Any, *values: Any,
               kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        """Add `EXISTS (subquery)`; subquery is raw text or a query builder."""
        inner = Predicate.of(subquery, *values)
        return self._add(Predicate(f'EXISTS ({inner.text})', inner.values), (), kind)

    def not_exists(self, subquery: Any, *values: Any,
                   kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        inner = Predicate.of(subquery, *values)
        return self._add(Predicate(f'NOT EXISTS ({inner.text})', inner.values), (), kind)

    def join_statements(self, statements: Iterable['Statement'],
                        kind: Union[StatementKind, str] = StatementKind.AND) -> 'Statement':
        """Add every non-empty statement as one nested segment each."""
        for statement in statements:
            if not statement.is_empty:
                self._add(statement, (), kind)
        return self

    def search(self) -> 'SearchModule':
        return SearchModule(self)

    @property
    def is_empty(self) -> bool:
        return not self._segments

    @property
    def values(self) -> List[Any]:
        return [value for _kind, predicate in self._segments for value in predicate.values]

    def __len__(self):
        return len(self._segments)

    def _joined(self, new_line: bool) -> str:
        separator = '\n ' if new_line else ' '
        parts = []
        for position, (kind, predicate) in enumerate(self._segments):
            if position == 0:
                parts.append(f'({predicate.text})')
            else:
                parts.append(f'{kind.value} ({predicate.text})')
        return separator.join(parts)

    def to_predicate(self, new_line: bool = True) -> Predicate:
        """Collapse the chain into a single Predicate (markers unresolved)."""
        return Predicate(self._joined(new_line), tuple(self.values))

    def render(self, start_index: int = 1, new_line: bool = True) -> RenderedFragment:
        """Render the chain with placeholders numbered from start_index.

        Returns an empty fragment for an empty chain.
        """
        if self.is_empty:
            return RenderedFragment('', [], start_index)
        return self.to_predicate(new_line).render(start_index)

    def build(self, start_index: int = 1, with_where: bool = True, new_line: bool = True) -> BuiltQuery:
        """Render as a standalone clause, prefixed with WHERE by default."""
        fragment = self.render(start_index, new_line)
        if not fragment.text:
            return BuiltQuery('', ())
        prefix = 'WHERE ' if with_where else ''
        return BuiltQuery(prefix + fragment.text, fragment.values)

    def reset(self) -> 'Statement':
        self._segments = []
        return self

    def clone(self) -> 'Statement':
        # Predicates are immutable, a shallow copy of the list is independent
        copy = Statement()
        copy._segments = list(self._segments)
        return copy


Condition = Union[str, Predicate, Statement]


class SearchModule:
    """Search helpers that append conditions to a Statement.

    Every helper returns the owning Statement so chaining continues there.

    Example:
        >>> stmt = Statement().search().word_by_word('title', 'red apple')
        >>> stmt.values
        ['%red%', '%apple%']
    """

    def __init__(self, statement: Statement):
        self.statement = statement

    def fulltext(self, field: str, query: str, case_insensitive: bool = True,
                 kind: Union[StatementKind, str] = StatementKind.AND) -> Statement:
        """Match `%query%` anywhere in field with (I)LIKE."""
        if case_insensitive:
            return self.statement.ilike(field, f'%{query}%', kind)
        return self.statement.like(field, f'%{query}%', kind)

    def fulltext_tsvector(self, field: str, query: str, config: str = 'simple',
                          kind: Union[StatementKind, str] = StatementKind.AND) -> Statement:
        """PostgreSQL full text search with prefix matching on every word.

        Args:
            field: Column or expression to index with to_tsvector
            query: Space separated search words
            config: Text search configuration name
            kind: How the condition joins the chain

        Example:
            'red apple' binds ('simple', 'simple', 'red:* & apple:*')
        """
        ts_query = ' & '.join(f'{word}:*' for word in query.split())
        return self.statement.raw(
            f'to_tsvector(?, {field}) @@ to_tsquery(?, ?)',
            config, config, ts_query,
            kind=kind,
        )

    def word_by_word(self, field: str, query: str, case_insensitive: bool = True,
                     kind: Union[StatementKind, str] = StatementKind.AND) -> Statement:
        for word in query.split():
            self.fulltext(field, word, case_insensitive, kind)
        return self.statement

    def fuzzy_trigram(self, field: str, query: str, similarity_threshold: float = 0.3,
                      kind: Union[StatementKind, str] = StatementKind.AND) -> Statement:
        """pg_trgm similarity match: `field % ?` and a similarity floor."""
        fuzzy = (
            Statement()
            .raw(f'{field} % ?', query)
            .raw(f'similarity({field}, ?) >= ?', query, similarity_threshold)
        )
        return self.statement._add(fuzzy, (), kind)
