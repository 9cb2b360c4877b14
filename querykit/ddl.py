"""
==============================================
DDL builders: CREATE, ALTER and DROP TABLE.
==============================================

DDL statements carry no bound values, so build() returns plain text
(a list of statements for ALTER TABLE). Table names are quoted like in
the DML builders and may use `$schema` tokens; column names are emitted
as given.

Builders:
- ColumnDefinition / column(): one column with its constraints
- CreateTableQuery: CREATE TABLE [IF NOT EXISTS]
- AlterTableQuery: ADD / ALTER / DROP COLUMN statements
- DropTableQuery: DROP TABLE [IF EXISTS]

Usage:
    from querykit.ddl import CreateTableQuery, column
    from querykit.column_types import varchar

    create = (
        CreateTableQuery('users')
        .if_not_exists()
        .add_columns(
            column('id', 'INT').primary_key(),
            column('name', varchar(100)).not_null(),
            column('email', varchar(100)).unique(),
        )
    )
    print(create.build())
    # CREATE TABLE IF NOT EXISTS "users" (
    #   id INT PRIMARY KEY,
    #   name VARCHAR(100) NOT NULL,
    #   email VARCHAR(100) UNIQUE
    # );
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

from core.logger import get_logger
from querykit.column_types import TypeLike, render_type
from querykit.escaper import append_schemas, escape_table_name
from querykit.exceptions import InvalidClauseError, QueryConfigurationError
from querykit.types import QueryKind, SqlFlavor

logger = get_logger(__name__)


class ReferentialAction(str, Enum):
    CASCADE = 'CASCADE'
    SET_NULL = 'SET NULL'
    SET_DEFAULT = 'SET DEFAULT'
    RESTRICT = 'RESTRICT'
    NO_ACTION = 'NO ACTION'

    @classmethod
    def parse(cls, value: Union['ReferentialAction', str, None]) -> Optional['ReferentialAction']:
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(' '.join(str(value).split()).upper())
        except ValueError:
            raise InvalidClauseError(f"Invalid referential action: {value}") from None


@dataclass(frozen=True)
class ForeignKey:
    table: str
    column: str
    on_delete: Optional[ReferentialAction] = None
    on_update: Optional[ReferentialAction] = None

    def build(self) -> str:
        text = f'REFERENCES {self.table}({self.column})'
        if self.on_delete:
            text += f' ON DELETE {self.on_delete.value}'
        if self.on_update:
            text += f' ON UPDATE {self.on_update.value}'
        return text


def _fail(message: str):
    logger.error(message)
    raise QueryConfigurationError(message)


class ColumnDefinition:
    """A table column: name, type and constraints.

    Constraints render in a fixed order: PRIMARY KEY (which implies
    NOT NULL and UNIQUE), otherwise NOT NULL then UNIQUE; then DEFAULT,
    CHECK and REFERENCES.
    """

    def __init__(self, name: Optional[str] = None, column_type: Optional[TypeLike] = None):
        self.name = name
        self.column_type = column_type
        self.nullable = True
        self.is_primary_key = False
        self.is_unique = False
        self.default_value: Optional[str] = None
        self.check_condition: Optional[str] = None
        self.foreign_key: Optional[ForeignKey] = None
        self.drops_default = False

    def set_name(self, name: str) -> 'ColumnDefinition':
        self.name = name
        return self

    def set_type(self, column_type: TypeLike) -> 'ColumnDefinition':
        self.column_type = column_type
        return self

    def null(self) -> 'ColumnDefinition':
        self.nullable = True
        return self

    def not_null(self) -> 'ColumnDefinition':
        self.nullable = False
        return self

    def primary_key(self) -> 'ColumnDefinition':
        self.is_primary_key = True
        self.nullable = False
        return self

    def unique(self) -> 'ColumnDefinition':
        self.is_unique = True
        return self

    def default(self, value) -> 'ColumnDefinition':
        """Set the DEFAULT expression (emitted verbatim, quote literals yourself)."""
        self.default_value = str(value)
        return self

    def drop_default(self) -> 'ColumnDefinition':
        """On ALTER, emit DROP DEFAULT when no new default is set."""
        self.drops_default = True
        return self

    def check(self, condition: str) -> 'ColumnDefinition':
        self.check_condition = condition
        return self

    def references(self, table: str, column: str,
                   on_delete: Union[ReferentialAction, str, None] = None,
                   on_update: Union[ReferentialAction, str, None] = None) -> 'ColumnDefinition':
        self.foreign_key = ForeignKey(
            table, column, ReferentialAction.parse(on_delete), ReferentialAction.parse(on_update)
        )
        return self

    def _validate(self) -> None:
        if not self.name and not self.column_type:
            _fail("Column name and type are not set.")
        if not self.name:
            _fail("Column name is not set.")
        if not self.column_type:
            _fail(f"Column type is not set for column {self.name}.")

    def build(self, for_adding: bool = False) -> str:
        """Render `name TYPE constraints`.

        Args:
            for_adding: Render name and type only (ALTER TABLE ADD COLUMN
                adds constraints with separate statements)
        """
        self._validate()
        parts = [self.name, render_type(self.column_type)]
        if for_adding:
            return ' '.join(parts)

        if self.is_primary_key:
            parts.append('PRIMARY KEY')
        else:
            if not self.nullable:
                parts.append('NOT NULL')
            if self.is_unique:
                parts.append('UNIQUE')
        if self.default_value is not None:
            parts.append(f'DEFAULT {self.default_value}')
        if self.check_condition is not None:
            parts.append(f'CHECK ({self.check_condition})')
        if self.foreign_key:
            parts.append(self.foreign_key.build())
        return ' '.join(parts)

    def _constraint_statements(self, table_sql: str, table_name: str) -> List[str]:
        prefix = f'ALTER TABLE {table_sql}'
        constraint = f'{table_name}_{self.name}'
        statements = []
        if self.check_condition is not None:
            statements.append(
                f'{prefix} ADD CONSTRAINT {constraint}_check CHECK ({self.check_condition})'
            )
        if self.is_primary_key:
            statements.append(f'{prefix} ADD CONSTRAINT {constraint}_pkey PRIMARY KEY ({self.name})')
        if self.is_unique:
            statements.append(f'{prefix} ADD CONSTRAINT {constraint}_unique UNIQUE ({self.name})')
        if self.foreign_key:
            statements.append(
                f'{prefix} ADD CONSTRAINT {constraint}_fkey FOREIGN KEY ({self.name}) '
                f'{self.foreign_key.build()}'
            )
        return statements

    def _nullability_statement(self, table_sql: str) -> str:
        action = 'DROP NOT NULL' if self.nullable else 'SET NOT NULL'
        return f'ALTER TABLE {table_sql} ALTER COLUMN {self.name} {action}'

    def build_to_add(self, table_sql: str, table_name: str) -> List[str]:
        """Statements that add this column to an existing table.

        Args:
            table_sql: Quoted table reference used in the statements
            table_name: Bare table name used for constraint names
        """
        self._validate()
        prefix = f'ALTER TABLE {table_sql}'
        statements = [f'{prefix} ADD COLUMN {self.build(for_adding=True)}',
                      self._nullability_statement(table_sql)]
        if self.default_value is not None:
            statements.append(f'{prefix} ALTER COLUMN {self.name} SET DEFAULT {self.default_value}')
        statements.extend(self._constraint_statements(table_sql, table_name))
        return statements

    def build_to_alter(self, table_sql: str, table_name: str,
                       previous_name: Optional[str] = None) -> List[str]:
        """Statements that change an existing column into this definition.

        A previous_name different from the column name adds a RENAME.
        """
        self._validate()
        prefix = f'ALTER TABLE {table_sql}'
        statements = []
        if previous_name and previous_name != self.name:
            statements.append(f'{prefix} RENAME COLUMN {previous_name} TO {self.name}')
        statements.append(f'{prefix} ALTER COLUMN {self.name} TYPE {render_type(self.column_type)}')
        statements.append(self._nullability_statement(table_sql))
        if self.default_value is not None:
            statements.append(f'{prefix} ALTER COLUMN {self.name} SET DEFAULT {self.default_value}')
        elif self.drops_default:
            statements.append(f'{prefix} ALTER COLUMN {self.name} DROP DEFAULT')
        statements.extend(self._constraint_statements(table_sql, table_name))
        return statements

    def clone(self) -> 'ColumnDefinition':
        copy = ColumnDefinition(self.name, self.column_type)
        copy.nullable = self.nullable
        copy.is_primary_key = self.is_primary_key
        copy.is_unique = self.is_unique
        copy.default_value = self.default_value
        copy.check_condition = self.check_condition
        copy.foreign_key = self.foreign_key
        copy.drops_default = self.drops_default
        return copy

    def __repr__(self):
        return f'ColumnDefinition({self.name!r}, {self.column_type!r})'


def column(name: str, column_type: TypeLike) -> ColumnDefinition:
    """Shorthand for ColumnDefinition(name, column_type)."""
    return ColumnDefinition(name, column_type)


def _flatten(columns) -> List[ColumnDefinition]:
    flat = []
    for item in columns:
        if isinstance(item, ColumnDefinition):
            flat.append(item)
        else:
            flat.extend(item)
    return flat


class TableQueryDefinition(ABC):
    """Base class of the DDL builders: table name, flavor and schemas."""

    kind: QueryKind

    def __init__(self, table: Optional[str] = None):
        self._table = table
        self._flavor = SqlFlavor.POSTGRES
        self._schemas: List[str] = []

    def table(self, name: str) -> 'TableQueryDefinition':
        self._table = name
        return self

    @property
    def table_name(self) -> Optional[str]:
        return self._table

    def sql_flavor(self, flavor: Union[SqlFlavor, str]) -> 'TableQueryDefinition':
        self._flavor = SqlFlavor.coerce(flavor)
        return self

    def schema(self, *schemas: str) -> 'TableQueryDefinition':
        self._schemas = list(schemas)
        return self

    def add_schema(self, *schemas: str) -> 'TableQueryDefinition':
        self._schemas.extend(schemas)
        return self

    def _table_sql(self) -> str:
        return escape_table_name(self._table, self._flavor)

    def _bare_table_name(self) -> str:
        return self._table.split('.')[-1].strip().strip('"`[]')

    def _finish(self, text: str) -> str:
        return append_schemas(text, self._schemas)

    def _copy_base_to(self, other: 'TableQueryDefinition') -> 'TableQueryDefinition':
        other._flavor = self._flavor
        other._schemas = list(self._schemas)
        return other

    @abstractmethod
    def build(self) -> Union[str, List[str]]:
        """Render the DDL text."""

    @abstractmethod
    def clone(self) -> 'TableQueryDefinition':
        """Return a fully independent copy."""


class CreateTableQuery(TableQueryDefinition):
    """CREATE TABLE builder. Columns render one per line, in insertion order."""

    kind = QueryKind.CREATE_TABLE

    def __init__(self, table: Optional[str] = None, columns: Iterable[ColumnDefinition] = ()):
        super().__init__(table)
        self._if_not_exists = False
        self._columns: List[ColumnDefinition] = list(columns)

    def if_not_exists(self, enabled: bool = True) -> 'CreateTableQuery':
        self._if_not_exists = enabled
        return self

    @property
    def columns(self) -> List[ColumnDefinition]:
        return list(self._columns)

    def add_columns(self, *columns: Union[ColumnDefinition, Iterable[ColumnDefinition]]) -> 'CreateTableQuery':
        self._columns.extend(_flatten(columns))
        return self

    def set_columns(self, *columns: Union[ColumnDefinition, Iterable[ColumnDefinition]]) -> 'CreateTableQuery':
        self._columns = _flatten(columns)
        return self

    def build(self) -> str:
        """Render the CREATE TABLE statement.

        Raises:
            QueryConfigurationError: If the table name or the columns are missing
        """
        if not self._table:
            _fail("Table name is not set.")
        if not self._columns:
            _fail("No columns defined for the table.")

        keyword = 'CREATE TABLE IF NOT EXISTS' if self._if_not_exists else 'CREATE TABLE'
        body = ',\n'.join(f'  {definition.build()}' for definition in self._columns)
        text = self._finish(f'{keyword} {self._table_sql()} (\n{body}\n);')
        logger.debug(f"Built CREATE TABLE for {self._table} with {len(self._columns)} column(s)")
        return text

    def clone(self) -> 'CreateTableQuery':
        copy = self._copy_base_to(CreateTableQuery(self._table))
        copy._if_not_exists = self._if_not_exists
        copy._columns = [definition.clone() for definition in self._columns]
        return copy


class AlterTableQuery(TableQueryDefinition):
    """ALTER TABLE builder producing one statement per change.

    Order: added columns, altered columns (grouped by current name),
    dropped columns.
    """

    kind = QueryKind.ALTER_TABLE

    def __init__(self, table: Optional[str] = None):
        super().__init__(table)
        self._to_add: List[ColumnDefinition] = []
        self._to_alter: Dict[str, List[ColumnDefinition]] = {}
        self._to_drop: List[str] = []

    def add_columns_to_add(self, *columns: Union[ColumnDefinition, Iterable[ColumnDefinition]]) -> 'AlterTableQuery':
        self._to_add.extend(_flatten(columns))
        return self

    def set_columns_to_add(self, *columns: Union[ColumnDefinition, Iterable[ColumnDefinition]]) -> 'AlterTableQuery':
        self._to_add = _flatten(columns)
        return self

    def add_columns_to_alter(self, name: str, *columns: ColumnDefinition) -> 'AlterTableQuery':
        """Alter the existing column `name` into each given definition."""
        self._to_alter.setdefault(name, []).extend(columns)
        return self

    def set_columns_to_alter(self, alterations: Dict[str, List[ColumnDefinition]]) -> 'AlterTableQuery':
        self._to_alter = {name: list(columns) for name, columns in alterations.items()}
        return self

    def drop_columns(self, *names: str) -> 'AlterTableQuery':
        self._to_drop.extend(names)
        return self

    def set_columns_to_drop(self, *names: str) -> 'AlterTableQuery':
        self._to_drop = list(names)
        return self

    def build(self) -> List[str]:
        """Render the statements, each terminated with `;`.

        Raises:
            QueryConfigurationError: If the table name is missing or no
                change was configured
        """
        if not self._table:
            _fail("Table name is required to build ALTER TABLE query.")

        table_sql = self._table_sql()
        table_name = self._bare_table_name()
        statements: List[str] = []
        for definition in self._to_add:
            statements.extend(definition.build_to_add(table_sql, table_name))
        for previous_name, definitions in self._to_alter.items():
            for definition in definitions:
                statements.extend(definition.build_to_alter(table_sql, table_name, previous_name))
        statements.extend(f'ALTER TABLE {table_sql} DROP COLUMN {name}' for name in self._to_drop)

        if not statements:
            _fail("No alterations specified for ALTER TABLE query.")

        logger.debug(f"Built {len(statements)} ALTER TABLE statement(s) for {self._table}")
        return [self._finish(f'{statement};') for statement in statements]

    def clone(self) -> 'AlterTableQuery':
        copy = self._copy_base_to(AlterTableQuery(self._table))
        copy._to_add = [definition.clone() for definition in self._to_add]
        copy._to_alter = {
            name: [definition.clone() for definition in definitions]
            for name, definitions in self._to_alter.items()
        }
        copy._to_drop = list(self._to_drop)
        return copy


class DropTableQuery(TableQueryDefinition):
    """DROP TABLE builder."""

    kind = QueryKind.DROP_TABLE

    def __init__(self, table: Optional[str] = None):
        super().__init__(table)
        self._if_exists = False

    def if_exists(self, enabled: bool = True) -> 'DropTableQuery':
        self._if_exists = enabled
        return self

    def build(self) -> str:
        if not self._table:
            _fail("Table name is required to build DROP TABLE query.")
        keyword = 'DROP TABLE IF EXISTS' if self._if_exists else 'DROP TABLE'
        return self._finish(f'{keyword} {self._table_sql()};')

    def clone(self) -> 'DropTableQuery':
        copy = self._copy_base_to(DropTableQuery(self._table))
        copy._if_exists = self._if_exists
        return copy
