"""
=========================================
Shared value types for the builders.
=========================================

Enumerations and small value objects used by every statement kind:

- SqlFlavor: identifier quoting family threaded through builders
- QueryKind: tag reported by each statement definition
- JoinType / SortDirection / SetOperator: clause keywords
- OrderBy: one ORDER BY entry
- SqlValue / check_value: the closed set of bindable value types
- copy_value: detaches container values from the caller
"""

import datetime
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple, Union

from querykit.exceptions import InvalidClauseError, UnsupportedValueError

SqlValue = Union[
    None, bool, int, float, Decimal, str, bytes,
    datetime.date, datetime.datetime, datetime.time, datetime.timedelta,
    uuid.UUID, List[Any], Tuple[Any, ...], Dict[str, Any],
]

SCALAR_VALUE_TYPES = (
    type(None), bool, int, float, Decimal, str, bytes, bytearray,
    datetime.date, datetime.time, datetime.timedelta, uuid.UUID,
)


def check_value(value: Any) -> SqlValue:
    """Ensure a value can be bound as a query parameter.

    Lists and tuples (arrays) and dicts (json) are checked element by
    element and copied, so later changes to the caller's object do not
    reach a builder or a built query.

    Args:
        value: Candidate parameter value

    Returns:
        The value, with containers replaced by copies

    Raises:
        UnsupportedValueError: If the value (or a nested element) is not
            one of the supported value types
    """
    if isinstance(value, bytearray):
        return bytearray(value)
    if isinstance(value, SCALAR_VALUE_TYPES):
        return value
    if isinstance(value, list):
        return [check_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(check_value(item) for item in value)
    if isinstance(value, dict):
        for key in value:
            if not isinstance(key, str):
                raise UnsupportedValueError(
                    f"JSON object keys must be strings, got {type(key).__name__}"
                )
        return {key: check_value(item) for key, item in value.items()}
    raise UnsupportedValueError(
        f"Unsupported parameter value of type {type(value).__name__}: {value!r}"
    )


def copy_value(value: Any) -> Any:
    """Copy list, tuple, dict and bytearray values; return anything else as is."""
    if isinstance(value, bytearray):
        return bytearray(value)
    if isinstance(value, list):
        return [copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(copy_value(item) for item in value)
    if isinstance(value, dict):
        return {key: copy_value(item) for key, item in value.items()}
    return value


class SqlFlavor(str, Enum):
    """Identifier quoting family."""

    POSTGRES = 'postgres'
    MYSQL = 'mysql'
    SQLITE = 'sqlite'
    MSSQL = 'mssql'
    ORACLE = 'oracle'

    @classmethod
    def coerce(cls, value: Union['SqlFlavor', str]) -> 'SqlFlavor':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidClauseError(f"Unsupported SQL flavor: {value}") from None

    @property
    def quote_chars(self) -> Tuple[str, str]:
        """Opening and closing identifier quote characters."""
        if self is SqlFlavor.MYSQL:
            return '`', '`'
        if self is SqlFlavor.MSSQL:
            return '[', ']'
        return '"', '"'


class QueryKind(str, Enum):
    SELECT = 'SELECT'
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
    UNION = 'UNION'
    CTE = 'CTE'
    CREATE_TABLE = 'CREATE TABLE'
    ALTER_TABLE = 'ALTER TABLE'
    DROP_TABLE = 'DROP TABLE'


def _parse_keyword(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    normalized = ' '.join(str(value).split()).upper()
    try:
        return enum_cls(normalized)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise InvalidClauseError(
            f"Invalid {label}: {value}. Allowed values are: {allowed}"
        ) from None


class JoinType(str, Enum):
    INNER = 'INNER'
    LEFT = 'LEFT'
    RIGHT = 'RIGHT'
    FULL = 'FULL'
    CROSS = 'CROSS'

    @classmethod
    def parse(cls, value: Union['JoinType', str]) -> 'JoinType':
        return _parse_keyword(cls, value, 'join type')


class SortDirection(str, Enum):
    ASC = 'ASC'
    DESC = 'DESC'

    @classmethod
    def parse(cls, value: Union['SortDirection', str]) -> 'SortDirection':
        return _parse_keyword(cls, value, 'sort direction')


class SetOperator(str, Enum):
    """Operators that combine UNION members. Input is case-insensitive."""

    UNION = 'UNION'
    UNION_ALL = 'UNION ALL'
    INTERSECT = 'INTERSECT'
    INTERSECT_ALL = 'INTERSECT ALL'
    EXCEPT = 'EXCEPT'
    EXCEPT_ALL = 'EXCEPT ALL'

    @classmethod
    def parse(cls, value: Union['SetOperator', str]) -> 'SetOperator':
        return _parse_keyword(cls, value, 'UNION type')


@dataclass(frozen=True)
class OrderBy:
    """One ORDER BY entry: a column reference and a direction."""

    field: str
    direction: SortDirection = SortDirection.ASC

    def __post_init__(self):
        object.__setattr__(self, 'direction', SortDirection.parse(self.direction))

    @classmethod
    def coerce(cls, item: Union['OrderBy', Mapping[str, Any], Tuple[str, str], str],
               direction: Union[SortDirection, str] = SortDirection.ASC) -> 'OrderBy':
        """Build an OrderBy from the accepted shorthand forms.

        Accepts an OrderBy, a mapping with 'field' (or 'column') and an
        optional 'direction', a (field, direction) pair or a bare field name.
        """
        if isinstance(item, OrderBy):
            return item
        if isinstance(item, Mapping):
            field = item.get('field', item.get('column'))
            if not field:
                raise InvalidClauseError(f"ORDER BY entry has no field: {item!r}")
            return cls(field, item.get('direction', direction))
        if isinstance(item, tuple):
            return cls(*item)
        return cls(item, direction)
