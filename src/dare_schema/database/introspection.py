"""
Database schema introspection for dare-schema.

Read-only catalog queries against information_schema used to decide
which DDL statements a reconciliation run has to issue.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .connection import ConnectionPool
from ..exceptions import SchemaError


logger = logging.getLogger(__name__)


TABLE_EXISTS_QUERY = """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = $1 AND table_name = $2
    )
"""

COLUMN_EXISTS_QUERY = """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.columns
        WHERE table_schema = $1 AND table_name = $2 AND column_name = $3
    )
"""

COLUMN_INFO_QUERY = """
    SELECT
        c.column_name,
        c.data_type,
        c.is_nullable,
        c.column_default,
        c.ordinal_position
    FROM information_schema.columns c
    WHERE c.table_schema = $1 AND c.table_name = $2
    ORDER BY c.ordinal_position
"""


@dataclass
class ColumnInfo:
    """Information about a database column."""

    name: str
    data_type: str
    is_nullable: bool
    default_value: Optional[str] = None
    ordinal_position: int = 0


class SchemaIntrospector:
    """Catalog lookups for tables and columns."""

    def __init__(self, pool: ConnectionPool, timeout: Optional[float] = None):
        self.pool = pool
        self.timeout = timeout

    async def table_exists(self, schema: str, table: str) -> bool:
        """Check if a table exists."""
        try:
            result = await self.pool.fetchval(
                TABLE_EXISTS_QUERY, schema, table, timeout=self.timeout
            )
            return bool(result)
        except Exception as e:
            logger.error(f"Error checking table existence for {schema}.{table}: {e}")
            raise SchemaError(f"Failed to check table existence: {e}", cause=e) from e

    async def column_exists(self, schema: str, table: str, column: str) -> bool:
        """Check if a column exists on a table."""
        try:
            result = await self.pool.fetchval(
                COLUMN_EXISTS_QUERY, schema, table, column, timeout=self.timeout
            )
            return bool(result)
        except Exception as e:
            logger.error(f"Error checking column {schema}.{table}.{column}: {e}")
            raise SchemaError(f"Failed to check column existence: {e}", cause=e) from e

    async def get_columns(self, schema: str, table: str) -> Dict[str, ColumnInfo]:
        """Get all columns for a table, keyed by name."""
        try:
            rows = await self.pool.fetch(
                COLUMN_INFO_QUERY, schema, table, timeout=self.timeout
            )
        except Exception as e:
            logger.error(f"Error getting columns for {schema}.{table}: {e}")
            raise SchemaError(f"Failed to get columns: {e}", cause=e) from e

        columns = {}
        for row in rows:
            col_info = ColumnInfo(
                name=row["column_name"],
                data_type=row["data_type"],
                is_nullable=row["is_nullable"] == "YES",
                default_value=row["column_default"],
                ordinal_position=row["ordinal_position"],
            )
            columns[col_info.name] = col_info

        return columns

