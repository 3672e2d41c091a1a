"""
Exception classes for dare-schema.
"""

from typing import Any, Dict, Optional


class DareError(Exception):
    """Base exception for all dare-schema errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(DareError):
    """Raised when there's an error in configuration or in a manifest."""

    pass


class IdentifierError(ConfigurationError):
    """Raised when a table or column identifier is invalid or not declared."""

    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(f"Invalid identifier '{identifier}': {reason}")
        self.identifier = identifier
        self.reason = reason


class DatabaseError(DareError):
    """Raised when there's an error with database operations."""

    pass


class ConnectivityError(DatabaseError):
    """Raised when the database cannot be reached."""

    pass


class SchemaError(DatabaseError):
    """Raised when there's an error with database schema operations."""

    pass


class TableReconcileError(SchemaError):
    """Raised when creating or altering a specific table fails."""

    def __init__(
        self,
        table: str,
        message: str,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(f"Failed to reconcile table '{table}': {message}", cause=cause)
        self.table = table


class ConstraintRelaxError(SchemaError):
    """Raised when dropping a NOT NULL constraint fails."""

    def __init__(
        self,
        table: str,
        column: str,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            f"Could not drop NOT NULL on '{table}.{column}'", cause=cause
        )
        self.table = table
        self.column = column


class SeedingError(DareError):
    """Raised when a one-time seeding action fails."""

    pass
