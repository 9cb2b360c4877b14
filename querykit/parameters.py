"""
=================================================
Positional parameter handling for built queries.
=================================================

Every builder renders `?` markers from predicate fragments into `$N`
placeholders (1-based) and returns the bound values in the same order.
This module holds the pure functions behind that:

- bind_markers: turn `?` markers into `$N` placeholders from a start index
- renumber_placeholders: shift an already rendered fragment so it can be
  concatenated after other fragments (the composers rely on this)
- merge_fragments: renumber a sequence of fragments with one shared counter
- compact_parameters: collapse repeated values onto one placeholder
- BuiltQuery: the immutable {text, values} snapshot returned by build()

Quoted regions ('literal', "identifier", `identifier`) are never scanned,
so markers written inside string literals are left untouched.

Example:
    >>> renumber_placeholders('b = $1 AND c = $2', ['b', 'c'], start_index=2)
    RenderedFragment(text='b = $2 AND c = $3', values=['b', 'c'], next_index=4)
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, NamedTuple, Sequence, Tuple

from sqlalchemy import text as sql_text
from sqlalchemy.sql.elements import TextClause

from querykit.exceptions import PlaceholderMismatchError
from querykit.types import SqlValue, copy_value

MARKER = '?'

MARKER_PATTERN = re.compile(r'\?')
PLACEHOLDER_PATTERN = re.compile(r'\$(\d+)(?!\d)')
QUOTED_PATTERN = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|`(?:[^`]|``)*`")


class RenderedFragment(NamedTuple):
    """Rendered text, its values, and the next free placeholder index."""

    text: str
    values: List[Any]
    next_index: int


def split_quoted(text: str) -> Iterator[Tuple[str, bool]]:
    """Split text into (segment, is_quoted) pieces, preserving order."""
    position = 0
    for match in QUOTED_PATTERN.finditer(text):
        if match.start() > position:
            yield text[position:match.start()], False
        yield match.group(0), True
        position = match.end()
    if position < len(text):
        yield text[position:], False


def substitute_unquoted(text: str, pattern, replace: Callable) -> str:
    """Apply pattern.sub(replace, ...) to the unquoted parts of text only."""
    return ''.join(
        segment if quoted else pattern.sub(replace, segment)
        for segment, quoted in split_quoted(text)
    )


def count_markers(text: str) -> int:
    """Count `?` markers outside quoted regions."""
    return sum(segment.count(MARKER) for segment, quoted in split_quoted(text) if not quoted)


def find_placeholders(text: str) -> List[int]:
    """Return the index of every `$N` placeholder, in text order."""
    indices = []
    for segment, quoted in split_quoted(text):
        if not quoted:
            indices.extend(int(m.group(1)) for m in PLACEHOLDER_PATTERN.finditer(segment))
    return indices


def bind_markers(text: str, start_index: int = 1) -> Tuple[str, int]:
    """Replace each `?` marker, left to right, with `$start_index`, `$start_index + 1`, ...

    Args:
        text: Fragment containing `?` markers
        start_index: Index assigned to the first marker

    Returns:
        Tuple of (rendered text, next free index)
    """
    counter = [start_index]

    def replace(_match):
        index = counter[0]
        counter[0] += 1
        return f'${index}'

    rendered = substitute_unquoted(text, MARKER_PATTERN, replace)
    return rendered, counter[0]


def placeholders_to_markers(text: str, values: Sequence[Any]) -> str:
    """Turn $1..$n (in text order) back into `?` markers.

    Used to embed an already built query inside a predicate fragment.

    Raises:
        PlaceholderMismatchError: If placeholders are not exactly $1..$n
            in order, as produced by an uncompacted build
    """
    indices = find_placeholders(text)
    if indices != list(range(1, len(values) + 1)):
        raise PlaceholderMismatchError(text, len(indices), len(values))
    return substitute_unquoted(text, PLACEHOLDER_PATTERN, lambda _match: MARKER)


def renumber_placeholders(text: str, values: Sequence[Any], start_index: int = 1) -> RenderedFragment:
    """Shift a fragment numbered from $1 so that it starts at start_index.

    Local placeholder $k becomes $(start_index + k - 1), so the k-th value
    keeps pointing at its placeholder after the values are appended to a
    longer list. Values are returned unmodified.

    Args:
        text: Rendered fragment whose placeholders start at $1
        values: Values bound to the fragment, in placeholder order
        start_index: Global index of the fragment's first value

    Returns:
        RenderedFragment with the shifted text, the values and the next
        free index (start_index + len(values))

    Raises:
        PlaceholderMismatchError: If the fragment references more values
            than supplied or leaves supplied values unreferenced
    """
    values = list(values)
    highest = max(find_placeholders(text), default=0)
    if highest != len(values):
        raise PlaceholderMismatchError(text, highest, len(values))

    offset = start_index - 1
    if offset:
        text = substitute_unquoted(
            text, PLACEHOLDER_PATTERN, lambda m: f'${int(m.group(1)) + offset}'
        )
    return RenderedFragment(text, values, start_index + len(values))


def merge_fragments(fragments: Iterable[Tuple[str, Sequence[Any]]],
                    start_index: int = 1) -> Tuple[List[str], List[Any], int]:
    """Renumber fragments in order with one shared counter.

    Args:
        fragments: (text, values) pairs, each numbered from $1
        start_index: Index given to the first value of the first fragment

    Returns:
        Tuple of (renumbered texts, concatenated values, next free index)

    Example:
        >>> merge_fragments([('a = $1', [1]), ('b = $1 OR c = $2', [2, 3])])
        (['a = $1', 'b = $2 OR c = $3'], [1, 2, 3], 4)
    """
    texts: List[str] = []
    merged: List[Any] = []
    index = start_index
    for text, values in fragments:
        fragment = renumber_placeholders(text, values, index)
        texts.append(fragment.text)
        merged.extend(fragment.values)
        index = fragment.next_index
    return texts, merged, index


def _value_key(value: Any):
    try:
        hash(value)
    except TypeError:
        return ('id', id(value))
    return (type(value), value)


def compact_parameters(text: str, values: Sequence[Any], deep: bool = False) -> Tuple[str, List[Any]]:
    """Collapse repeated values onto the placeholder that first bound them.

    Values are equal when they have the same type and compare equal
    (hashable values), or are the same object (unhashable values). With
    deep=True any two values of the same type that compare equal with ==
    are merged, including lists and dicts.

    Args:
        text: Rendered text with contiguous $N placeholders
        values: Values bound to the placeholders
        deep: Compare unhashable values structurally

    Returns:
        Tuple of (rewritten text, reduced values list)

    Example:
        >>> compact_parameters('a = $1 OR b = $2 OR c = $3', [5, 6, 5])
        ('a = $1 OR b = $2 OR c = $1', [5, 6])
    """
    values = list(values)
    compacted: List[Any] = []
    seen = {}
    remap = {}

    def lookup(value):
        if deep:
            for position, existing in enumerate(compacted):
                if type(existing) is type(value) and existing == value:
                    return position + 1
            return None
        return seen.get(_value_key(value))

    for local in find_placeholders(text):
        if local in remap:
            continue
        if local < 1 or local > len(values):
            raise PlaceholderMismatchError(text, local, len(values))
        value = values[local - 1]
        index = lookup(value)
        if index is None:
            compacted.append(value)
            index = len(compacted)
            if not deep:
                seen[_value_key(value)] = index
        remap[local] = index

    rewritten = substitute_unquoted(text, PLACEHOLDER_PATTERN, lambda m: f'${remap[int(m.group(1))]}')
    return rewritten, compacted


@dataclass(frozen=True)
class BuiltQuery:
    """Immutable result of build(): SQL text plus positional values.

    Unpacks as a pair, so `text, values = query.build()` works.

    Attributes:
        text: SQL text with $N placeholders
        values: Bound values, values[N - 1] belongs to $N

    List, tuple and dict values are copied on construction, so changing
    the objects a builder was given does not alter a returned snapshot.
    """

    text: str
    values: Tuple[SqlValue, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'values', tuple(copy_value(value) for value in self.values))

    def __iter__(self):
        yield self.text
        yield self.values

    def __str__(self):
        return self.text

    @property
    def is_empty(self) -> bool:
        return not self.text

    def with_prefix(self, prefix: str) -> 'BuiltQuery':
        """Return a copy with prefix prepended to the text."""
        return BuiltQuery(prefix + self.text, self.values)

    def to_text_clause(self) -> TextClause:
        """Convert into a SQLAlchemy TextClause with named binds.

        Placeholders $N become :pN and values are attached with bindparams,
        ready for Connection.execute().

        Example:
            >>> clause = BuiltQuery('SELECT * FROM "t" WHERE (a = $1)', (7,)).to_text_clause()
            >>> str(clause)
            'SELECT * FROM "t" WHERE (a = :p1)'
        """
        converted = substitute_unquoted(self.text, PLACEHOLDER_PATTERN, lambda m: f':p{m.group(1)}')
        clause = sql_text(converted)
        if self.values:
            clause = clause.bindparams(**{f'p{i}': value for i, value in enumerate(self.values, 1)})
        return clause
