"""
===========================
Column type descriptors.
===========================

ColumnType is a value object for parameterised SQL types such as
VARCHAR(100) or NUMERIC(10, 2). Two descriptors are equal when their name
and arguments are equal.

Factories:
- varchar(length), char(length)
- numeric(precision, scale=None), decimal(precision, scale=None)
- bit(length), varbit(length)

ColumnTypes lists the PostgreSQL built-in type names for columns that
take no arguments.

Example:
    >>> str(numeric(10, 2))
    'NUMERIC(10, 2)'
    >>> render_type(ColumnTypes.DOUBLE_PRECISION)
    'DOUBLE PRECISION'
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from querykit.exceptions import InvalidClauseError


class ColumnTypes(str, Enum):
    """PostgreSQL built-in type names."""

    SMALLINT = 'smallint'
    INTEGER = 'integer'
    BIGINT = 'bigint'
    DECIMAL = 'decimal'
    NUMERIC = 'numeric'
    REAL = 'real'
    DOUBLE_PRECISION = 'double precision'
    SERIAL = 'serial'
    BIGSERIAL = 'bigserial'
    SMALLSERIAL = 'smallserial'
    MONEY = 'money'
    VARCHAR = 'character varying'
    CHAR = 'character'
    TEXT = 'text'
    BYTEA = 'bytea'
    TIMESTAMP = 'timestamp'
    TIMESTAMPTZ = 'timestamptz'
    DATE = 'date'
    TIME = 'time'
    TIMETZ = 'timetz'
    INTERVAL = 'interval'
    BOOLEAN = 'boolean'
    POINT = 'point'
    LINE = 'line'
    LSEG = 'lseg'
    BOX = 'box'
    PATH = 'path'
    POLYGON = 'polygon'
    CIRCLE = 'circle'
    CIDR = 'cidr'
    INET = 'inet'
    MACADDR = 'macaddr'
    MACADDR8 = 'macaddr8'
    BIT = 'bit'
    VARBIT = 'bit varying'
    TSVECTOR = 'tsvector'
    TSQUERY = 'tsquery'
    UUID = 'uuid'
    JSON = 'json'
    JSONB = 'jsonb'
    XML = 'xml'
    INT4RANGE = 'int4range'
    INT8RANGE = 'int8range'
    NUMRANGE = 'numrange'
    TSRANGE = 'tsrange'
    TSTZRANGE = 'tstzrange'
    DATERANGE = 'daterange'
    OID = 'oid'
    PG_LSN = 'pg_lsn'


@dataclass(frozen=True)
class ColumnType:
    """A type name with its numeric arguments.

    Attributes:
        name: Type keyword, e.g. VARCHAR
        arguments: Length, or precision and scale
    """

    name: str
    arguments: Tuple[int, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'arguments', tuple(self.arguments))
        for argument in self.arguments:
            if isinstance(argument, bool) or not isinstance(argument, int) or argument < 0:
                raise InvalidClauseError(
                    f"Type arguments for {self.name} must be non-negative integers, got {argument!r}"
                )

    def build(self) -> str:
        if not self.arguments:
            return self.name
        return f"{self.name}({', '.join(str(argument) for argument in self.arguments)})"

    def __str__(self):
        return self.build()


TypeLike = Union[ColumnType, ColumnTypes, str]


def render_type(column_type: TypeLike) -> str:
    """Render a descriptor, a ColumnTypes member (upper-cased) or raw text."""
    if isinstance(column_type, ColumnType):
        return column_type.build()
    if isinstance(column_type, ColumnTypes):
        return column_type.value.upper()
    return column_type


def _sized(name: str, first: int, second: Optional[int] = None) -> ColumnType:
    arguments = (first,) if second is None else (first, second)
    return ColumnType(name, arguments)


def varchar(length: int) -> ColumnType:
    return ColumnType('VARCHAR', (length,))


def char(length: int) -> ColumnType:
    return ColumnType('CHAR', (length,))


def numeric(precision: int, scale: Optional[int] = None) -> ColumnType:
    return _sized('NUMERIC', precision, scale)


def decimal(precision: int, scale: Optional[int] = None) -> ColumnType:
    return _sized('DECIMAL', precision, scale)


def bit(length: int) -> ColumnType:
    return ColumnType('BIT', (length,))


def varbit(length: int) -> ColumnType:
    return ColumnType('VARBIT', (length,))
