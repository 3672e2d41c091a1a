"""
Additive schema operations for dare-schema.

Builds and executes the individual statements a reconciliation run may
issue. Every statement is recorded as a SchemaChange so callers can
inspect what ran, what failed, and what a dry run would have done.
Nothing here drops tables, drops columns or changes column types.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from ..database.connection import ConnectionPool
from .identifiers import IdentifierSafelist, qualified_name, quote_ident
from .models import ColumnSpec, TableSpec


logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Types of schema changes."""

    CREATE_TABLE = "create_table"
    ADD_COLUMN = "add_column"
    ADD_CONSTRAINT = "add_constraint"
    DROP_NOT_NULL = "drop_not_null"
    FILL_NULLS = "fill_nulls"


# Statement kinds that change the catalog, as opposed to row data
DDL_CHANGE_TYPES = frozenset(
    {
        ChangeType.CREATE_TABLE,
        ChangeType.ADD_COLUMN,
        ChangeType.ADD_CONSTRAINT,
        ChangeType.DROP_NOT_NULL,
    }
)


class OperationMode(str, Enum):
    """Schema operation modes."""

    APPLY = "apply"
    DRY_RUN = "dry_run"


@dataclass
class SchemaChange:
    """Represents one statement issued (or planned) against the database."""

    change_type: ChangeType
    schema: str
    table: str
    description: str
    sql: str
    target_object: Optional[str] = None
    params: tuple = ()

    executed: bool = False
    planned: bool = False
    execution_time_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def full_table_name(self) -> str:
        return f"{self.schema}.{self.table}"

    @property
    def is_ddl(self) -> bool:
        return self.change_type in DDL_CHANGE_TYPES

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def change_id(self) -> str:
        target = self.target_object or self.table
        return f"{self.change_type.value}_{self.schema}_{self.table}_{target}"


class SchemaOperations:
    """Statement builder and executor bound to one pool."""

    def __init__(
        self,
        pool: ConnectionPool,
        operation_mode: OperationMode = OperationMode.APPLY,
        statement_timeout: Optional[float] = None,
        safelist: Optional[IdentifierSafelist] = None,
    ):
        self.pool = pool
        self.operation_mode = operation_mode
        self.statement_timeout = statement_timeout
        self.safelist = safelist
        self.history: List[SchemaChange] = []

    @property
    def dry_run(self) -> bool:
        return self.operation_mode == OperationMode.DRY_RUN

    async def create_table(self, table: TableSpec) -> SchemaChange:
        """Create a table with its primary key and every declared column."""
        self._check_table(table.name)
        for col in table.columns:
            self._check_column(table.name, col.column)

        parts = []
        if table.primary_key_clause:
            parts.append(table.primary_key_clause)
        parts.extend(col.column_sql() for col in table.columns)
        body = ",\n    ".join(parts)

        sql = (
            f"CREATE TABLE IF NOT EXISTS {qualified_name(table.schema_name, table.name)} (\n"
            f"    {body}\n)"
        )

        change = SchemaChange(
            change_type=ChangeType.CREATE_TABLE,
            schema=table.schema_name,
            table=table.name,
            description=f"Create table {table.full_name} with {len(table.columns)} columns",
            sql=sql,
        )
        return await self._execute_change(change)

    async def add_constraint(self, table: TableSpec, constraint: str) -> SchemaChange:
        """Add a table constraint such as UNIQUE (...)."""
        self._check_table(table.name)

        sql = f"ALTER TABLE {qualified_name(table.schema_name, table.name)} ADD {constraint}"

        change = SchemaChange(
            change_type=ChangeType.ADD_CONSTRAINT,
            schema=table.schema_name,
            table=table.name,
            description=f"Add constraint {constraint} to {table.full_name}",
            sql=sql,
            target_object=constraint,
        )
        return await self._execute_change(change)

    async def add_column(self, schema: str, column: ColumnSpec) -> SchemaChange:
        """Add a column using ADD COLUMN IF NOT EXISTS."""
        self._check_column(column.table, column.column)

        sql = (
            f"ALTER TABLE {qualified_name(schema, column.table)} "
            f"ADD COLUMN IF NOT EXISTS {column.column_sql()}"
        )

        change = SchemaChange(
            change_type=ChangeType.ADD_COLUMN,
            schema=schema,
            table=column.table,
            description=f"Add column {column.column} {column.definition}",
            sql=sql,
            target_object=column.column,
        )
        return await self._execute_change(change)

    async def drop_not_null(self, schema: str, table: str, column: str) -> SchemaChange:
        """Make an existing column nullable."""
        self._check_column(table, column)

        sql = (
            f"ALTER TABLE {qualified_name(schema, table)} "
            f"ALTER COLUMN {quote_ident(column)} DROP NOT NULL"
        )

        change = SchemaChange(
            change_type=ChangeType.DROP_NOT_NULL,
            schema=schema,
            table=table,
            description=f"Drop NOT NULL on {column}",
            sql=sql,
            target_object=column,
        )
        return await self._execute_change(change)

    async def fill_nulls(self, schema: str, table: str, column: str, value: Any) -> SchemaChange:
        """Replace NULLs in a column with a default value."""
        self._check_column(table, column)

        sql = (
            f"UPDATE {qualified_name(schema, table)} "
            f"SET {quote_ident(column)} = $1 WHERE {quote_ident(column)} IS NULL"
        )

        change = SchemaChange(
            change_type=ChangeType.FILL_NULLS,
            schema=schema,
            table=table,
            description=f"Fill NULL values in {column} with {value!r}",
            sql=sql,
            target_object=column,
            params=(value,),
        )
        return await self._execute_change(change)

    def _check_table(self, table: str) -> None:
        if self.safelist is not None:
            self.safelist.check_table(table)

    def _check_column(self, table: str, column: str) -> None:
        if self.safelist is not None:
            self.safelist.check_column(table, column)

    async def _execute_change(self, change: SchemaChange) -> SchemaChange:
        """Run a single statement, recording its outcome on the change."""
        self.history.append(change)

        if self.dry_run:
            change.planned = True
            logger.info(f"DRY RUN: would execute {change.change_id}")
            logger.debug(f"SQL: {change.sql}")
            return change

        start = time.monotonic()
        try:
            await self.pool.execute(change.sql, *change.params, timeout=self.statement_timeout)
            change.executed = True
            logger.debug(f"Executed {change.change_id}")
        except Exception as e:
            change.error = str(e)
            logger.debug(f"Failed to execute {change.change_id}: {e}")
            raise
        finally:
            change.execution_time_ms = (time.monotonic() - start) * 1000

        return change
