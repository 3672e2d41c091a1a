"""
Command-line interface for dare-schema.
"""

import asyncio
import sys
from functools import wraps
from pathlib import Path
from typing import List, Optional, Sequence

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import DareConfig, DatabaseConnection, SeedingConfig
from .database.connection import ConnectionPool
from .database.introspection import SchemaIntrospector
from .exceptions import ConfigurationError, DareError
from .logging_setup import configure_logging
from .schema.manifest import default_manifest, load_manifest
from .schema.models import TableSpec
from .schema.operations import OperationMode
from .schema.reconciler import ReconciliationReport, ReconciliationStatus, SchemaReconciler
from .seeding.flags import MigrationFlagGate
from .seeding.leadership import LeaderAccount, LeadershipSeeder, SeededAccount


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DareError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
            if click.get_current_context().find_root().params.get("debug"):
                console.print_exception()
            sys.exit(1)
    return wrapper


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (defaults to environment variables)",
)

database_url_option = click.option(
    "--database-url",
    envvar="DATABASE_URL",
    help="postgres:// URL, overrides the configured connection",
)


def _load_config(config_path: Optional[str], database_url: Optional[str]) -> DareConfig:
    config = DareConfig.load(config_path)
    if database_url:
        config.database_url = database_url

    debug = click.get_current_context().find_root().params.get("debug", False)
    configure_logging(config.logging, debug=debug or config.debug)
    return config


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """dare-schema: schema reconciliation and seeding for the DARE program database."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@config_option
@database_url_option
@click.option(
    "--manifest",
    "-m",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML manifest (defaults to the built-in DARE manifest)",
)
@click.option(
    "--table",
    "-t",
    "tables",
    multiple=True,
    help="Only reconcile these tables (repeatable)",
)
@click.option("--dry-run", is_flag=True, help="Show planned statements without executing them")
@handle_errors
def reconcile(
    config_path: Optional[str],
    database_url: Optional[str],
    manifest: Optional[str],
    tables: Sequence[str],
    dry_run: bool,
):
    """Bring the database schema in line with the manifest."""
    config = _load_config(config_path, database_url)
    settings = config.reconciliation

    manifest_path = manifest or settings.manifest
    specs = load_manifest(manifest_path) if manifest_path else default_manifest(settings.schema_name)
    specs = _select_tables(specs, tables)

    mode = OperationMode.DRY_RUN if (dry_run or settings.dry_run) else OperationMode.APPLY
    connection_config = config.connection_config()

    console.print(f"[blue]Reconciling {len(specs)} tables on {connection_config.database}...[/blue]")
    if mode == OperationMode.DRY_RUN:
        console.print("[yellow]Dry run: no statements will be executed[/yellow]")

    async def run_reconcile() -> ReconciliationReport:
        async with ConnectionPool(connection_config) as pool:
            reconciler = SchemaReconciler(
                pool,
                operation_mode=mode,
                schema=settings.schema_name,
                table_timeout=settings.table_timeout_seconds,
                statement_timeout=settings.statement_timeout_seconds,
            )
            return await reconciler.reconcile(specs)

    report = asyncio.run(run_reconcile())

    _display_report(report)

    if report.success:
        console.print("\n[green]✓ Schema reconciliation completed successfully![/green]")
        return

    for name in report.failed_tables:
        for error in report[name].errors:
            console.print(f"[red]✗ {name}:[/red] {escape(error)}")
    sys.exit(1)


@main.command("seed-leaders")
@config_option
@database_url_option
@handle_errors
def seed_leaders(config_path: Optional[str], database_url: Optional[str]):
    """Create system roles and leadership accounts (runs at most once)."""
    config = _load_config(config_path, database_url)
    seeding = config.seeding

    if not seeding.leaders:
        raise ConfigurationError("No leaders configured under 'seeding.leaders'")

    schema = config.reconciliation.schema_name
    connection_config = config.connection_config()

    async def run_seed() -> Optional[List[SeededAccount]]:
        async with ConnectionPool(connection_config) as pool:
            seeder = LeadershipSeeder(
                pool,
                seeding.leaders,
                schema=schema,
                flag_name=seeding.flag_name,
                password_length=seeding.password_length,
            )
            return await seeder.seed()

    accounts = asyncio.run(run_seed())

    if accounts is None:
        console.print("[yellow]System roles and leadership users were already seeded.[/yellow]")
        return

    console.print("[green]✓ System roles and leadership users seeded successfully![/green]")
    _display_accounts(accounts)


@main.command()
@config_option
@database_url_option
@handle_errors
def flags(config_path: Optional[str], database_url: Optional[str]):
    """List migration flags and their state."""
    config = _load_config(config_path, database_url)
    schema = config.reconciliation.schema_name
    connection_config = config.connection_config()

    async def run_flags():
        async with ConnectionPool(connection_config) as pool:
            if not await SchemaIntrospector(pool).table_exists(schema, "migration_flags"):
                return None
            return await MigrationFlagGate(pool, schema=schema).list_flags()

    rows = asyncio.run(run_flags())

    if not rows:
        console.print("[yellow]No migration flags recorded[/yellow]")
        return

    table = Table(title="Migration Flags")
    table.add_column("Flag", style="cyan")
    table.add_column("Completed", style="green")
    table.add_column("Completed At", style="magenta")

    for row in rows:
        table.add_row(
            row["flag_name"],
            "yes" if row["completed"] else "no",
            str(row["completed_at"] or ""),
        )

    console.print(table)


@main.command("validate-manifest")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
@handle_errors
def validate_manifest(manifest: str):
    """Validate a YAML manifest file."""
    console.print(f"Validating manifest: {manifest}")

    specs = load_manifest(manifest)

    console.print(f"[green]✓[/green] Manifest is valid ({len(specs)} tables)")
    _display_manifest(specs)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="dare-schema.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Write a starter configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)

    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Set POSTGRES_HOST, POSTGRES_DB, POSTGRES_USER and POSTGRES_PASSWORD")
    console.print("2. Replace the example leader with your leadership team")
    console.print(f"3. Run: dare-schema reconcile --config {output} --dry-run")


def _select_tables(specs: List[TableSpec], names: Sequence[str]) -> List[TableSpec]:
    if not names:
        return specs

    known = {spec.name for spec in specs}
    unknown = sorted(set(names) - known)
    if unknown:
        raise ConfigurationError(f"Tables not in manifest: {', '.join(unknown)}")

    return [spec for spec in specs if spec.name in names]


def _create_default_config() -> DareConfig:
    """Create a default configuration with examples."""
    return DareConfig(
        database=DatabaseConnection(
            host="${POSTGRES_HOST}",
            database="${POSTGRES_DB}",
            user="${POSTGRES_USER}",
            password="${POSTGRES_PASSWORD}",
        ),
        seeding=SeedingConfig(
            leaders=[
                LeaderAccount(
                    full_name="Program Lead Name",
                    username="program_lead",
                    email="program.lead@example.org",
                    role="Program Lead",
                    district="Bekwai",
                ),
            ],
        ),
    )


def _display_report(report: ReconciliationReport):
    """Display per-table reconciliation results."""
    table = Table(title="Schema Reconciliation" + (" (dry run)" if report.dry_run else ""))
    table.add_column("Table", style="cyan")
    table.add_column("Status")
    table.add_column("Statements", justify="right")
    table.add_column("Notes", style="yellow")

    status_styles = {
        ReconciliationStatus.SUCCESS: "[green]success[/green]",
        ReconciliationStatus.FAILED: "[red]failed[/red]",
        ReconciliationStatus.SKIPPED: "[yellow]skipped[/yellow]",
    }

    for name, result in report.results.items():
        statements = result.planned_statements if report.dry_run else result.ddl_statements
        notes = []
        if result.created:
            notes.append("created")
        if result.fallback_columns:
            notes.append(f"filled NULLs: {', '.join(result.fallback_columns)}")
        notes.extend(result.warnings)

        table.add_row(name, status_styles[result.status], str(statements), escape("; ".join(notes)))

    console.print(table)

    if report.dry_run:
        for change in report.changes:
            console.print(f"[dim]{escape(change.sql)};[/dim]")


def _display_accounts(accounts: List[SeededAccount]):
    """Display the credentials of freshly created accounts."""
    table = Table(title="Leadership Team Account Credentials")
    table.add_column("Name", style="cyan")
    table.add_column("Role", style="magenta")
    table.add_column("Username", style="green")
    table.add_column("Password", style="yellow")
    table.add_column("Email")

    for account in accounts:
        table.add_row(
            account.name, account.role, account.username, account.password, account.email or ""
        )

    console.print(table)
    console.print("[yellow]Store these passwords now; they are not shown again.[/yellow]")


def _display_manifest(specs: List[TableSpec]):
    """Display a summary of manifest tables."""
    table = Table(title="Manifest Tables")
    table.add_column("Table", style="cyan")
    table.add_column("Columns", justify="right")
    table.add_column("Create", style="green")
    table.add_column("Depends On", style="magenta")

    for spec in specs:
        table.add_row(
            spec.full_name,
            str(len(spec.columns)),
            "yes" if spec.create_if_missing else "no",
            ", ".join(spec.depends_on),
        )

    console.print(table)


if __name__ == "__main__":
    main()
