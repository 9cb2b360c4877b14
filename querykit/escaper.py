"""
===================================
Identifier quoting for SQL output.
===================================

Column and table references are split on `.` and each segment is quoted
with the flavor's identifier quotes:

- postgres / sqlite / oracle: "segment"
- mysql: `segment`
- mssql: [segment]

A quote character inside a segment is doubled. The wildcard `*` and the
schema tokens `$schema` / `$schemaN` are left bare. `$schema` tokens are
later replaced by append_schemas() with the schemas given to a builder.

Example:
    >>> escape_column('u.id')
    '"u"."id"'
    >>> escape_column('u.*')
    '"u".*'
    >>> escape_table_name('$schema.users')
    '$schema."users"'
    >>> append_schemas('$schema."users"', ['public'])
    'public."users"'
"""

import re
from typing import Iterable, List, Sequence, Union

from querykit.exceptions import InvalidIdentifierError, SchemaIndexError
from querykit.parameters import substitute_unquoted
from querykit.types import SqlFlavor

FlavorLike = Union[SqlFlavor, str]

SCHEMA_TOKEN = re.compile(r'\$schema(\d*)(?![\w])')
SCHEMA_IDENTIFIER = re.compile(r'^\$schema\d*$')
ALIAS_PATTERN = re.compile(r'^(.+?)\s+AS\s+(.+)$', re.IGNORECASE)


def _is_quoted(segment: str, flavor: SqlFlavor) -> bool:
    opening, closing = flavor.quote_chars
    return len(segment) >= 2 and segment[0] == opening and segment[-1] == closing


def quote_identifier(name: str, flavor: FlavorLike = SqlFlavor.POSTGRES) -> str:
    """Quote a single identifier segment.

    Args:
        name: Identifier without dots
        flavor: Quoting family

    Returns:
        Quoted identifier, or the name unchanged for `*`, `$schema` tokens
        and already quoted segments
    """
    flavor = SqlFlavor.coerce(flavor)
    if name == '*' or SCHEMA_IDENTIFIER.match(name) or _is_quoted(name, flavor):
        return name
    opening, closing = flavor.quote_chars
    return f'{opening}{name.replace(closing, closing * 2)}{closing}'


def _split_reference(reference: str) -> List[str]:
    segments = [segment.strip() for segment in reference.strip().split('.')]
    if any(not segment for segment in segments):
        raise InvalidIdentifierError(f"Invalid identifier '{reference}': empty segment")
    return segments


def escape_table_name(name: str, flavor: FlavorLike = SqlFlavor.POSTGRES) -> str:
    """Quote a possibly schema-qualified table name segment by segment."""
    return '.'.join(quote_identifier(segment, flavor) for segment in _split_reference(name))


def escape_column(reference: str, flavor: FlavorLike = SqlFlavor.POSTGRES) -> str:
    """Quote a column reference, keeping an optional `AS alias` suffix.

    Example:
        >>> escape_column('o.total AS amount')
        '"o"."total" AS "amount"'
    """
    match = ALIAS_PATTERN.match(reference.strip())
    if match:
        column, alias = match.groups()
        return f'{escape_table_name(column, flavor)} AS {quote_identifier(alias.strip(), flavor)}'
    return escape_table_name(reference, flavor)


def escape_columns(references: Iterable[str], flavor: FlavorLike = SqlFlavor.POSTGRES) -> List[str]:
    return [escape_column(reference, flavor) for reference in references]


def append_schemas(text: str, schemas: Sequence[str]) -> str:
    """Replace `$schema` / `$schemaN` tokens with the given schema names.

    `$schema` maps to schemas[0], `$schemaN` to schemas[N]. Text without
    tokens is returned unchanged whatever schemas are given.

    Raises:
        SchemaIndexError: If a token refers past the end of schemas
    """
    def replace(match):
        index = int(match.group(1) or 0)
        if index >= len(schemas):
            raise SchemaIndexError(
                f"Schema index {index} out of bounds for provided schemas. "
                f"Provided schemas: {list(schemas)}"
            )
        return schemas[index]

    return substitute_unquoted(text, SCHEMA_TOKEN, replace)
