"""
=================================
Builder factories with defaults.
=================================

Query and Table hand out new builders pre-configured with a stored
flavor and build defaults, so call sites never repeat them. Defaults come
from core.config unless given explicitly.

Example:
    >>> from querykit.factory import Query, Table
    >>>
    >>> query = Query(compact_params=True)
    >>> select = query.select('users', 'u').where('u.id = ? OR u.parent_id = ?', 7, 7)
    >>> select.build().values      # compaction on by factory default
    (7,)
    >>>
    >>> Table().drop('users').if_exists().build()
    'DROP TABLE IF EXISTS "users";'
"""

from typing import Any, Optional, Union

from core.config import config
from core.logger import get_logger
from querykit.cte import Cte, CteMaker
from querykit.ddl import AlterTableQuery, ColumnDefinition, CreateTableQuery, DropTableQuery
from querykit.dml import DeleteQuery, InsertQuery, UpdateQuery
from querykit.query_builder import QueryDefinition, SelectQuery, UnionQuery
from querykit.statement import Statement
from querykit.types import SqlFlavor

logger = get_logger(__name__)


class Query:
    """Factory for parameterised statement builders.

    Args:
        compact_params: Default for build(compact=...); None reads
            QUERYKIT_COMPACT_PARAMS
        flavor: Default flavor; None reads QUERYKIT_SQL_FLAVOR
        deep_compare: Default for build(deep_compare=...); None reads
            QUERYKIT_DEEP_COMPARE
    """

    def __init__(self, compact_params: Optional[bool] = None,
                 flavor: Union[SqlFlavor, str, None] = None,
                 deep_compare: Optional[bool] = None):
        self.compact_params = config.compact_params if compact_params is None else compact_params
        self.deep_compare = config.deep_compare if deep_compare is None else deep_compare
        self.flavor = SqlFlavor.coerce(flavor if flavor is not None else config.sql_flavor)
        logger.debug(
            f"Query factory ready (flavor={self.flavor.value}, compact={self.compact_params})"
        )

    def _prepare(self, builder: QueryDefinition) -> Any:
        builder.sql_flavor(self.flavor)
        builder.set_build_defaults(self.compact_params, self.deep_compare)
        return builder

    def select(self, table: Optional[str] = None, alias: Optional[str] = None) -> SelectQuery:
        return self._prepare(SelectQuery(table, alias))

    def insert(self, table: Optional[str] = None) -> InsertQuery:
        return self._prepare(InsertQuery(table))

    def update(self, table: Optional[str] = None, alias: Optional[str] = None) -> UpdateQuery:
        return self._prepare(UpdateQuery(table, alias))

    def delete(self, table: Optional[str] = None, alias: Optional[str] = None) -> DeleteQuery:
        return self._prepare(DeleteQuery(table, alias))

    def union(self, alias: Optional[str] = None) -> UnionQuery:
        return self._prepare(UnionQuery(alias))

    def cte(self, name: Optional[str] = None, query: Any = None, recursive: bool = False) -> Cte:
        return Cte(name, query, recursive)

    def ctes(self, *ctes: Cte) -> CteMaker:
        return CteMaker(*ctes)

    def statement(self) -> Statement:
        return Statement()

    @property
    def table(self) -> 'Table':
        return Table(self.flavor)


class Table:
    """Factory for DDL builders sharing one flavor."""

    def __init__(self, flavor: Union[SqlFlavor, str, None] = None):
        self.flavor = SqlFlavor.coerce(flavor if flavor is not None else config.sql_flavor)

    def create(self, name: Optional[str] = None, *columns: ColumnDefinition) -> CreateTableQuery:
        return CreateTableQuery(name, columns).sql_flavor(self.flavor)

    def alter(self, name: Optional[str] = None) -> AlterTableQuery:
        return AlterTableQuery(name).sql_flavor(self.flavor)

    def drop(self, name: Optional[str] = None) -> DropTableQuery:
        return DropTableQuery(name).sql_flavor(self.flavor)

    def column(self, name: Optional[str] = None, column_type: Any = None) -> ColumnDefinition:
        return ColumnDefinition(name, column_type)
