"""
============================================
querykit: parameterised SQL statement builder.
============================================

Builds SELECT, INSERT, UPDATE, DELETE, UNION, WITH (CTE) and
CREATE/ALTER/DROP TABLE statements from chained builder calls. Every
parameterised build() returns a BuiltQuery with `$N` placeholders and
the bound values in placeholder order. Nothing is executed.

Modules:
    statement: Predicate / Statement condition builders
    query_builder: SelectQuery, UnionQuery and the QueryDefinition base
    cte: Cte and CteMaker
    dml: InsertQuery, UpdateQuery, DeleteQuery
    ddl: CreateTableQuery, AlterTableQuery, DropTableQuery, column()
    column_types: ColumnType descriptors and factories
    parameters: placeholder renumbering and compaction, BuiltQuery
    escaper: identifier quoting and $schema substitution
    factory: Query and Table factories with stored defaults

Example:
    >>> from querykit import Query
    >>>
    >>> q = Query()
    >>> text, values = (
    ...     q.select('users', 'u')
    ...     .select(['u.id', 'u.name'])
    ...     .where('u.active = ?', True)
    ...     .build()
    ... )
"""

__version__ = "0.1.0"
__all__ = [
    'Query', 'Table',
    'SelectQuery', 'UnionQuery', 'QueryDefinition',
    'InsertQuery', 'UpdateQuery', 'DeleteQuery',
    'Cte', 'CteMaker',
    'Predicate', 'Statement', 'StatementKind',
    'CreateTableQuery', 'AlterTableQuery', 'DropTableQuery', 'ColumnDefinition', 'column',
    'ColumnType', 'ColumnTypes',
    'BuiltQuery', 'renumber_placeholders', 'merge_fragments', 'compact_parameters',
    'SqlFlavor', 'QueryKind', 'SetOperator', 'JoinType', 'OrderBy',
    'QueryBuilderError', 'QueryConfigurationError', 'PlaceholderMismatchError',
    'UnsupportedValueError', 'InvalidIdentifierError', 'InvalidClauseError', 'SchemaIndexError',
    'show_feedback_notice',
]

from .column_types import ColumnType, ColumnTypes
from .cte import Cte, CteMaker
from .ddl import AlterTableQuery, ColumnDefinition, CreateTableQuery, DropTableQuery, column
from .dml import DeleteQuery, InsertQuery, UpdateQuery
from .exceptions import (
    InvalidClauseError,
    InvalidIdentifierError,
    PlaceholderMismatchError,
    QueryBuilderError,
    QueryConfigurationError,
    SchemaIndexError,
    UnsupportedValueError,
)
from .factory import Query, Table
from .notice import show_feedback_notice
from .parameters import BuiltQuery, compact_parameters, merge_fragments, renumber_placeholders
from .query_builder import QueryDefinition, SelectQuery, UnionQuery
from .statement import Predicate, Statement, StatementKind
from .types import JoinType, OrderBy, QueryKind, SetOperator, SqlFlavor
