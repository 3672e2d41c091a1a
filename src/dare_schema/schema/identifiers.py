"""
Identifier validation and quoting.

Table and column names are never concatenated into SQL as-is. They must
match a plain identifier pattern, be declared in the manifest safelist
when one is active, and are emitted double-quoted.
"""

import re
from typing import Set, Tuple

from ..exceptions import IdentifierError, ConfigurationError


IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# PostgreSQL truncates identifiers beyond NAMEDATALEN - 1
MAX_IDENTIFIER_LENGTH = 63


def validate_identifier(name: str) -> str:
    """Return name unchanged if it is a plain SQL identifier, else raise."""
    if not name:
        raise IdentifierError(name, "empty identifier")
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise IdentifierError(name, f"longer than {MAX_IDENTIFIER_LENGTH} characters")
    if not IDENTIFIER_PATTERN.match(name):
        raise IdentifierError(name, "only letters, digits and underscores are allowed")
    return name


def quote_ident(name: str) -> str:
    """Validate and double-quote an identifier."""
    validate_identifier(name)
    return '"' + name.replace('"', '""') + '"'


def qualified_name(schema: str, table: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(table)}"


def validate_definition(definition: str) -> str:
    """Reject column or constraint text that could smuggle extra statements."""
    text = definition.strip()
    if not text:
        raise ConfigurationError("Column definition must not be empty")
    if ";" in text or "--" in text or "/*" in text:
        raise ConfigurationError(
            f"Definition contains ';', '--' or '/*', quoted defaults included: {definition!r}"
        )
    return text


class IdentifierSafelist:
    """The set of (table, column) identifiers a run is allowed to touch."""

    def __init__(self) -> None:
        self._tables: Set[str] = set()
        self._columns: Set[Tuple[str, str]] = set()

    def add_table(self, table: str) -> None:
        self._tables.add(validate_identifier(table))

    def add_column(self, table: str, column: str) -> None:
        self.add_table(table)
        self._columns.add((table, validate_identifier(column)))

    def check_table(self, table: str) -> str:
        if table not in self._tables:
            raise IdentifierError(table, "table is not declared in the manifest")
        return table

    def check_column(self, table: str, column: str) -> str:
        if (table, column) not in self._columns:
            raise IdentifierError(
                f"{table}.{column}", "column is not declared in the manifest"
            )
        return column

    def __contains__(self, item) -> bool:
        if isinstance(item, tuple):
            return item in self._columns
        return item in self._tables

    def __len__(self) -> int:
        return len(self._columns)
