"""
==================================
Exceptions raised by querykit.
==================================

All errors derive from QueryBuilderError so callers can catch the whole
family at once. Errors that describe a bad argument also derive from the
matching built-in (ValueError, TypeError, IndexError).

Example:
    >>> from querykit.exceptions import QueryConfigurationError
    >>> try:
    ...     SelectQuery().build()
    ... except QueryConfigurationError as e:
    ...     print(e)
    Table name is required for SELECT query.
"""


class QueryBuilderError(Exception):
    """Base class for every querykit error."""
    pass


class QueryConfigurationError(QueryBuilderError):
    """Exception raised by build() when a required part is missing.

    Raised for a missing target table, a CREATE TABLE without columns,
    an INSERT without values and similar omissions. Configuration calls
    never raise it, so they may be made in any order.
    """
    pass


class PlaceholderMismatchError(QueryBuilderError, ValueError):
    """Exception raised when marker and value counts disagree.

    Attributes:
        expected: Number of markers found in the fragment
        received: Number of values supplied
    """

    def __init__(self, fragment: str, expected: int, received: int):
        self.fragment = fragment
        self.expected = expected
        self.received = received
        super().__init__(
            f"Number of placeholders does not match number of values: "
            f"{expected} marker(s) in '{fragment}', {received} value(s) supplied"
        )


class UnsupportedValueError(QueryBuilderError, TypeError):
    """Exception raised for a bound value outside the supported value types."""
    pass


class InvalidIdentifierError(QueryBuilderError, ValueError):
    """Exception raised for an identifier with an empty segment."""
    pass


class InvalidClauseError(QueryBuilderError, ValueError):
    """Exception raised for a malformed clause argument.

    Covers negative LIMIT/OFFSET values, unknown ORDER BY directions,
    join types and set operators.
    """
    pass


class SchemaIndexError(QueryBuilderError, IndexError):
    """Exception raised when a $schemaN token has no matching schema."""
    pass
