"""
=====================================
Common Table Expression composition.
=====================================

- Cte: one named, optionally recursive, wrapped statement
- CteMaker: an ordered set of Cte entries rendered as one WITH clause

Each entry is built on its own (placeholders from $1) and then renumbered
with one counter shared across all entries in declaration order, so the
WITH clause can be placed in front of an outer statement whose own
placeholders continue after it.

Example:
    >>> ctes = CteMaker(
    ...     Cte('active', SelectQuery('users').where('active = ?', True)),
    ...     Cte('recent', SelectQuery('orders').where('created_at > ?', cutoff)),
    ... )
    >>> ctes.build().text
    'WITH active AS (\\n...WHERE (active = $1)\\n), recent AS (\\n...(created_at > $2)\\n)'
"""

from typing import Any, Iterable, List, Optional, Union

from core.logger import get_logger
from querykit.exceptions import QueryConfigurationError
from querykit.parameters import BuiltQuery, merge_fragments
from querykit.types import QueryKind

logger = get_logger(__name__)


def snapshot_query(query: Any) -> Any:
    """Take an independent copy of a builder (built snapshots are immutable)."""
    if isinstance(query, BuiltQuery):
        return query
    return query.clone()


def build_child(query: Any) -> BuiltQuery:
    if isinstance(query, BuiltQuery):
        return query
    return query.build(compact=False)


class Cte:
    """A named statement for a WITH clause.

    Args:
        name: CTE name, emitted bare
        query: Statement builder (or BuiltQuery) to wrap; builders are
            copied when attached
        recursive: Render the RECURSIVE keyword
    """

    kind = QueryKind.CTE

    def __init__(self, name: Optional[str] = None, query: Any = None, recursive: bool = False):
        self._name = name
        self._query = snapshot_query(query) if query is not None else None
        self._recursive = recursive

    @property
    def name(self) -> Optional[str]:
        return self._name

    def as_(self, name: str) -> 'Cte':
        self._name = name
        return self

    def recursive(self, enabled: bool = True) -> 'Cte':
        self._recursive = enabled
        return self

    def with_query(self, query: Any) -> 'Cte':
        self._query = snapshot_query(query)
        return self

    def build(self) -> BuiltQuery:
        """Render `[RECURSIVE ]name AS (\\n...\\n)` with placeholders from $1.

        Raises:
            QueryConfigurationError: If the name or the query is missing
        """
        if not self._name:
            message = "CTE name is required."
            logger.error(message)
            raise QueryConfigurationError(message)
        if self._query is None:
            message = f"No query defined for CTE '{self._name}'."
            logger.error(message)
            raise QueryConfigurationError(message)

        built = build_child(self._query)
        prefix = 'RECURSIVE ' if self._recursive else ''
        return BuiltQuery(f'{prefix}{self._name} AS (\n{built.text}\n)', built.values)

    def clone(self) -> 'Cte':
        return Cte(self._name, self._query, self._recursive)


class CteMaker:
    """Ordered CTE set rendered as a single WITH clause.

    Building an empty set yields an empty BuiltQuery so an outer
    statement can always attach one.
    """

    kind = QueryKind.CTE

    def __init__(self, *ctes: Cte):
        self._ctes: List[Cte] = []
        self.add(*ctes)

    def add(self, *ctes: Union[Cte, Iterable[Cte]]) -> 'CteMaker':
        """Append entries in declaration order. Entries are copied."""
        for cte in ctes:
            if isinstance(cte, Cte):
                self._ctes.append(cte.clone())
            else:
                self.add(*cte)
        return self

    def add_cte(self, name: str, query: Any, recursive: bool = False) -> 'CteMaker':
        return self.add(Cte(name, query, recursive))

    @property
    def names(self) -> List[Optional[str]]:
        return [cte.name for cte in self._ctes]

    def __len__(self):
        return len(self._ctes)

    def build(self) -> BuiltQuery:
        if not self._ctes:
            return BuiltQuery('', ())

        built = [cte.build() for cte in self._ctes]
        texts, values, _next_index = merge_fragments((b.text, b.values) for b in built)
        logger.debug(f"Built WITH clause of {len(texts)} CTE(s) with {len(values)} parameter(s)")
        return BuiltQuery('WITH ' + ', '.join(texts), values)

    def clone(self) -> 'CteMaker':
        return CteMaker(*self._ctes)
