"""
Schema reconciliation core logic for dare-schema.

Brings a live database into agreement with declared table specifications
using additive DDL only. Tables are processed one after another; a failure
on one table is recorded and the run moves on to the next.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
from enum import Enum

from ..database.connection import ConnectionPool
from ..database.introspection import SchemaIntrospector
from ..exceptions import ConstraintRelaxError, TableReconcileError
from .models import ColumnSpec, NotNullRelaxation, TableSpec, build_safelist, normalize_specs
from .operations import OperationMode, SchemaChange, SchemaOperations


logger = logging.getLogger(__name__)


class ReconciliationStatus(str, Enum):
    """Outcome of reconciling one table."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ReconciliationResult:
    """Result of reconciling a single table."""

    table: str
    schema: str
    status: ReconciliationStatus = ReconciliationStatus.SUCCESS
    changes: List[SchemaChange] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    fallback_columns: List[str] = field(default_factory=list)
    created: bool = False
    execution_time_ms: float = 0.0

    @property
    def full_name(self) -> str:
        return f"{self.schema}.{self.table}"

    @property
    def succeeded(self) -> bool:
        return self.status != ReconciliationStatus.FAILED

    @property
    def ddl_statements(self) -> int:
        """Count of DDL statements that actually ran."""
        return sum(1 for c in self.changes if c.is_ddl and c.executed)

    @property
    def planned_statements(self) -> int:
        """Count of statements recorded but not executed (dry run)."""
        return sum(1 for c in self.changes if c.planned)

    @property
    def failed_changes(self) -> int:
        return sum(1 for c in self.changes if c.has_error)


@dataclass
class ReconciliationReport:
    """Aggregate of per-table results for one run, in processing order."""

    results: Dict[str, ReconciliationResult] = field(default_factory=dict)
    dry_run: bool = False
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return all(r.succeeded for r in self.results.values())

    @property
    def failed_tables(self) -> List[str]:
        return [name for name, r in self.results.items() if not r.succeeded]

    @property
    def skipped_tables(self) -> List[str]:
        return [
            name for name, r in self.results.items()
            if r.status == ReconciliationStatus.SKIPPED
        ]

    @property
    def ddl_count(self) -> int:
        return sum(r.ddl_statements for r in self.results.values())

    @property
    def planned_count(self) -> int:
        return sum(r.planned_statements for r in self.results.values())

    @property
    def changes(self) -> List[SchemaChange]:
        return [c for r in self.results.values() for c in r.changes]

    def __getitem__(self, table: str) -> ReconciliationResult:
        return self.results[table]

    def summary(self) -> Dict[str, Any]:
        total = len(self.results)
        return {
            "total_tables": total,
            "successful": sum(
                1 for r in self.results.values() if r.status == ReconciliationStatus.SUCCESS
            ),
            "failed": len(self.failed_tables),
            "skipped": len(self.skipped_tables),
            "ddl_statements": self.ddl_count,
            "planned_statements": self.planned_count,
            "dry_run": self.dry_run,
            "failed_tables": self.failed_tables,
        }


class SchemaReconciler:
    """
    Additive, idempotent schema reconciliation.

    For each declared table:
    - create it (with every declared column) when it does not exist
    - otherwise relax declared legacy NOT NULL constraints, then add
      missing columns and leave existing ones untouched
    """

    def __init__(
        self,
        pool: ConnectionPool,
        operation_mode: OperationMode = OperationMode.APPLY,
        schema: str = "public",
        table_timeout: Optional[float] = None,
        statement_timeout: Optional[float] = None,
    ):
        self.pool = pool
        self.operation_mode = operation_mode
        self.schema = schema
        self.table_timeout = table_timeout

        self.introspector = SchemaIntrospector(pool, timeout=statement_timeout)
        self.operations = SchemaOperations(
            pool, operation_mode, statement_timeout=statement_timeout
        )

    async def reconcile(
        self, specs: Sequence[Union[ColumnSpec, TableSpec]]
    ) -> ReconciliationReport:
        """
        Reconcile every declared table.

        Args:
            specs: ColumnSpec list (grouped by table) or TableSpec list

        Returns:
            ReconciliationReport with one result per table

        Raises:
            ConfigurationError: specs are invalid
            ConnectivityError: the database cannot be reached
        """
        tables = normalize_specs(specs, self.schema)
        self.operations.safelist = build_safelist(tables)

        # Only connectivity at the start of a run is fatal
        await self.pool.ping()

        start_time = time.monotonic()
        report = ReconciliationReport(dry_run=self.operations.dry_run)

        for table in tables:
            blocked = [
                dep for dep in table.depends_on
                if dep in report.results and not report.results[dep].succeeded
            ]
            if blocked:
                result = ReconciliationResult(
                    table=table.name,
                    schema=table.schema_name,
                    status=ReconciliationStatus.FAILED,
                    errors=[f"Not attempted: dependency failed ({', '.join(blocked)})"],
                )
                logger.error(f"Skipping {table.full_name}: dependency failed ({', '.join(blocked)})")
            else:
                result = await self.reconcile_table(table)

            report.results[table.name] = result

        report.execution_time_ms = (time.monotonic() - start_time) * 1000

        summary = report.summary()
        logger.info(
            f"Reconciliation finished: {summary['successful']} succeeded, "
            f"{summary['failed']} failed, {summary['skipped']} skipped, "
            f"{summary['ddl_statements']} DDL statements "
            f"({report.execution_time_ms:.1f}ms)"
        )

        return report

    async def reconcile_table(self, table: TableSpec) -> ReconciliationResult:
        """Reconcile one table, converting any failure into a FAILED result."""
        start_time = time.monotonic()
        history_mark = len(self.operations.history)

        result = ReconciliationResult(table=table.name, schema=table.schema_name)

        logger.info(f"Reconciling table {table.full_name}")

        try:
            if self.table_timeout:
                await asyncio.wait_for(
                    self._reconcile_table(table, result), timeout=self.table_timeout
                )
            else:
                await self._reconcile_table(table, result)

        except asyncio.TimeoutError as e:
            error = TableReconcileError(
                table.name, f"timed out after {self.table_timeout}s", cause=e
            )
            logger.error(str(error))
            result.errors.append(str(error))
            result.status = ReconciliationStatus.FAILED

        except TableReconcileError as e:
            logger.error(str(e))
            result.errors.append(str(e))
            result.status = ReconciliationStatus.FAILED

        except Exception as e:
            error = TableReconcileError(table.name, str(e), cause=e)
            logger.error(str(error))
            result.errors.append(str(error))
            result.status = ReconciliationStatus.FAILED

        finally:
            result.changes = self.operations.history[history_mark:]
            result.execution_time_ms = (time.monotonic() - start_time) * 1000

        return result

    async def _reconcile_table(self, table: TableSpec, result: ReconciliationResult) -> None:
        exists = await self.introspector.table_exists(table.schema_name, table.name)

        if not exists:
            if not table.create_if_missing:
                logger.info(f"Table {table.full_name} doesn't exist and is not created here, skipping")
                result.status = ReconciliationStatus.SKIPPED
                result.warnings.append(f"Table {table.full_name} does not exist")
                return

            await self._create_table(table, result)
            return

        await self._relax_constraints(table, result)

        for column in table.columns:
            if await self.introspector.column_exists(table.schema_name, table.name, column.column):
                logger.info(f"Column {table.name}.{column.column} already exists, skipping")
                continue

            try:
                await self.operations.add_column(table.schema_name, column)
            except Exception as e:
                raise TableReconcileError(
                    table.name, f"ADD COLUMN {column.column} failed: {e}", cause=e
                ) from e

            logger.info(f"Added column {table.name}.{column.column} {column.definition}")

    async def _create_table(self, table: TableSpec, result: ReconciliationResult) -> None:
        logger.info(f"Table {table.full_name} doesn't exist, creating it")

        try:
            await self.operations.create_table(table)
        except Exception as e:
            raise TableReconcileError(table.name, f"CREATE TABLE failed: {e}", cause=e) from e

        result.created = True
        logger.info(f"Created table {table.full_name}")

        for constraint in table.constraints:
            try:
                await self.operations.add_constraint(table, constraint)
                logger.info(f"Added constraint {constraint} to {table.full_name}")
            except Exception as e:
                message = f"Couldn't add constraint {constraint} to {table.full_name}: {e}"
                logger.warning(message)
                result.warnings.append(message)

    async def _relax_constraints(self, table: TableSpec, result: ReconciliationResult) -> None:
        if not table.relax_not_null:
            return

        columns = await self.introspector.get_columns(table.schema_name, table.name)

        for relaxation in table.relax_not_null:
            info = columns.get(relaxation.column)
            if info is None or info.is_nullable:
                continue

            try:
                await self._drop_not_null(table, relaxation)
            except ConstraintRelaxError as e:
                logger.warning(f"{e}; filling NULL values with {relaxation.fill_value!r}")
                result.warnings.append(str(e))
                await self._fill_nulls(table, relaxation, e)
                result.fallback_columns.append(relaxation.column)

    async def _drop_not_null(self, table: TableSpec, relaxation: NotNullRelaxation) -> None:
        try:
            await self.operations.drop_not_null(
                table.schema_name, table.name, relaxation.column
            )
        except Exception as e:
            raise ConstraintRelaxError(table.name, relaxation.column, cause=e) from e

        logger.info(f"Made {table.name}.{relaxation.column} nullable")

    async def _fill_nulls(
        self,
        table: TableSpec,
        relaxation: NotNullRelaxation,
        relax_error: ConstraintRelaxError,
    ) -> None:
        try:
            await self.operations.fill_nulls(
                table.schema_name, table.name, relaxation.column, relaxation.fill_value
            )
        except Exception as e:
            raise TableReconcileError(
                table.name,
                f"{relax_error.message} and default-fill failed: {e}",
                cause=e,
            ) from e

        logger.info(f"Set default value for NULL {table.name}.{relaxation.column}")
