"""
Pytest configuration and shared fixtures for dare-schema tests.

Provides an in-memory stand-in for the PostgreSQL catalog so the reconciler
and the seeding helpers can be exercised end to end without a database.
"""

import asyncio
import os
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock

import pytest
import yaml

from dare_schema.database.connection import ConnectionPool
from dare_schema.database.introspection import (
    COLUMN_EXISTS_QUERY,
    COLUMN_INFO_QUERY,
    TABLE_EXISTS_QUERY,
)
from dare_schema.exceptions import ConnectivityError


# ============================================================================
# Fake catalog
# ============================================================================

class FakeDatabaseError(Exception):
    """Stands in for an asyncpg.PostgresError raised by the server."""


CREATE_TABLE_RE = re.compile(
    r'^\s*CREATE TABLE IF NOT EXISTS "(\w+)"\."(\w+)" \((.*)\)\s*$', re.DOTALL
)
ADD_COLUMN_RE = re.compile(
    r'^ALTER TABLE "(\w+)"\."(\w+)" ADD COLUMN IF NOT EXISTS "(\w+)" (.+)$', re.DOTALL
)
DROP_NOT_NULL_RE = re.compile(
    r'^ALTER TABLE "(\w+)"\."(\w+)" ALTER COLUMN "(\w+)" DROP NOT NULL$'
)
ADD_CONSTRAINT_RE = re.compile(r'^ALTER TABLE "(\w+)"\."(\w+)" ADD (.+)$', re.DOTALL)
FILL_NULLS_RE = re.compile(
    r'^UPDATE "(\w+)"\."(\w+)" SET "(\w+)" = \$1 WHERE "(\w+)" IS NULL$'
)
INSERT_RE = re.compile(r'^\s*INSERT INTO "(\w+)"\."(\w+)"', re.DOTALL)
DEFAULT_RE = re.compile(r"DEFAULT\s+('([^']*)'|(\w+))", re.IGNORECASE)


def _column(definition: str) -> Dict[str, Any]:
    upper = definition.upper()
    default = None
    match = DEFAULT_RE.search(definition)
    if match:
        default = match.group(2) if match.group(2) is not None else match.group(3)
    return {
        "data_type": definition.split()[0].lower(),
        "nullable": "NOT NULL" not in upper and "PRIMARY KEY" not in upper,
        "default": default,
    }


class FakeCatalogPool:
    """
    In-memory catalog answering the queries dare-schema issues.

    Tables map column name to {data_type, nullable, default}; rows are
    plain dicts. Every executed statement is appended to `statements`.

    Fault injection:
        fail_on: substrings; a matching statement raises FakeDatabaseError
        delay_on: substring -> seconds to sleep before running a statement
        unreachable: every query raises ConnectivityError
    """

    def __init__(self):
        self.tables: Dict[Tuple[str, str], Dict[str, Dict[str, Any]]] = {}
        self.rows: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        self.constraints: Dict[Tuple[str, str], List[str]] = {}
        self.inserted: Dict[str, List[tuple]] = {}
        self.flags: Dict[str, bool] = {}

        self.statements: List[str] = []
        self.timeouts: List[Optional[float]] = []

        self.fail_on: List[str] = []
        self.delay_on: Dict[str, float] = {}
        self.unreachable = False

        self._next_id = 1

    # -- setup helpers -----------------------------------------------------

    def add_table(
        self,
        table: str,
        columns: Dict[str, str],
        rows: Optional[List[Dict[str, Any]]] = None,
        schema: str = "public",
    ) -> None:
        """Create a table from {column: definition}."""
        self.tables[(schema, table)] = {name: _column(d) for name, d in columns.items()}
        self.rows[(schema, table)] = [dict(r) for r in rows or []]

    def column(self, table: str, column: str, schema: str = "public") -> Dict[str, Any]:
        return self.tables[(schema, table)][column]

    def columns(self, table: str, schema: str = "public") -> List[str]:
        return list(self.tables[(schema, table)])

    def table_rows(self, table: str, schema: str = "public") -> List[Dict[str, Any]]:
        return self.rows[(schema, table)]

    # -- ConnectionPool surface -------------------------------------------

    @asynccontextmanager
    async def acquire(self):
        yield FakeConnection(self)

    async def __aenter__(self) -> "FakeCatalogPool":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def ping(self) -> None:
        if self.unreachable:
            raise ConnectivityError("Database did not answer ping")

    async def fetchval(self, query: str, *args, timeout: Optional[float] = None) -> Any:
        await self._before(query, timeout)

        if query == TABLE_EXISTS_QUERY:
            return (args[0], args[1]) in self.tables
        if query == COLUMN_EXISTS_QUERY:
            return args[2] in self.tables.get((args[0], args[1]), {})
        if query.strip() == "SELECT 1":
            return 1

        match = INSERT_RE.match(query)
        if match and "RETURNING id" in query:
            self.statements.append(query)
            self.inserted.setdefault(match.group(2), []).append(args)
            new_id = self._next_id
            self._next_id += 1
            return new_id

        raise AssertionError(f"Unexpected fetchval query: {query}")

    async def fetch(self, query: str, *args, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        await self._before(query, timeout)

        if query == COLUMN_INFO_QUERY:
            columns = self.tables.get((args[0], args[1]), {})
            return [
                {
                    "column_name": name,
                    "data_type": info["data_type"],
                    "is_nullable": "YES" if info["nullable"] else "NO",
                    "column_default": info["default"],
                    "ordinal_position": position,
                }
                for position, (name, info) in enumerate(columns.items(), start=1)
            ]
        if "SELECT flag_name, completed, completed_at" in query:
            return [
                {"flag_name": name, "completed": done, "completed_at": None}
                for name, done in sorted(self.flags.items())
            ]

        raise AssertionError(f"Unexpected fetch query: {query}")

    async def fetchrow(self, query: str, *args, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        await self._before(query, timeout)

        if query.startswith("SELECT completed FROM"):
            if args[0] not in self.flags:
                return None
            return {"completed": self.flags[args[0]]}

        raise AssertionError(f"Unexpected fetchrow query: {query}")

    async def execute(self, query: str, *args, timeout: Optional[float] = None) -> str:
        await self._before(query, timeout)
        self.statements.append(query)

        match = CREATE_TABLE_RE.match(query)
        if match:
            key = (match.group(1), match.group(2))
            if key not in self.tables:
                self.tables[key] = {}
                self.rows[key] = []
                for part in match.group(3).split(",\n"):
                    part = part.strip()
                    if not part or part.upper().startswith(("CONSTRAINT", "UNIQUE", "PRIMARY KEY")):
                        continue
                    name, _, definition = part.partition(" ")
                    self.tables[key][name.strip('"')] = _column(definition)
            return "CREATE TABLE"

        match = ADD_COLUMN_RE.match(query)
        if match:
            key = (match.group(1), match.group(2))
            name, definition = match.group(3), match.group(4)
            if name not in self.tables[key]:
                info = _column(definition)
                if not info["nullable"] and info["default"] is None and self.rows[key]:
                    raise FakeDatabaseError(
                        f'column "{name}" of relation "{key[1]}" contains null values'
                    )
                self.tables[key][name] = info
                for row in self.rows[key]:
                    row[name] = info["default"]
            return "ALTER TABLE"

        match = DROP_NOT_NULL_RE.match(query)
        if match:
            self.tables[(match.group(1), match.group(2))][match.group(3)]["nullable"] = True
            return "ALTER TABLE"

        match = FILL_NULLS_RE.match(query)
        if match:
            key = (match.group(1), match.group(2))
            count = 0
            for row in self.rows[key]:
                if row.get(match.group(3)) is None:
                    row[match.group(3)] = args[0]
                    count += 1
            return f"UPDATE {count}"

        match = INSERT_RE.match(query)
        if match:
            if match.group(2) == "migration_flags":
                self.flags[args[0]] = True
            else:
                self.inserted.setdefault(match.group(2), []).append(args)
            return "INSERT 0 1"

        match = ADD_CONSTRAINT_RE.match(query)
        if match:
            self.constraints.setdefault((match.group(1), match.group(2)), []).append(match.group(3))
            return "ALTER TABLE"

        raise AssertionError(f"Unexpected statement: {query}")

    async def _before(self, query: str, timeout: Optional[float]) -> None:
        if self.unreachable:
            raise ConnectivityError("Pool is not connected")

        self.timeouts.append(timeout)

        for fragment, seconds in self.delay_on.items():
            if fragment in query:
                await asyncio.sleep(seconds)

        for fragment in self.fail_on:
            if fragment in query:
                raise FakeDatabaseError(f"injected failure on {fragment!r}")


class FakeConnection:
    """Connection handed out by FakeCatalogPool.acquire()."""

    def __init__(self, pool: FakeCatalogPool):
        self.pool = pool

    async def fetchval(self, query: str, *args, timeout: Optional[float] = None) -> Any:
        return await self.pool.fetchval(query, *args, timeout=timeout)

    async def execute(self, query: str, *args, timeout: Optional[float] = None) -> str:
        return await self.pool.execute(query, *args, timeout=timeout)

    @asynccontextmanager
    async def transaction(self):
        """Discard rows inserted inside the block if it raises."""
        snapshot = {table: list(rows) for table, rows in self.pool.inserted.items()}
        try:
            yield
        except BaseException:
            self.pool.inserted = snapshot
            raise


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def fake_pool() -> FakeCatalogPool:
    """Empty in-memory catalog."""
    return FakeCatalogPool()


@pytest.fixture
def mock_pool():
    """Mock ConnectionPool for call-level assertions."""
    pool = AsyncMock(spec=ConnectionPool)
    pool.fetchval.return_value = True
    pool.fetch.return_value = []
    pool.fetchrow.return_value = None
    pool.execute.return_value = "OK"
    return pool


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_manifest_data() -> Dict[str, Any]:
    """Small manifest covering create, patch and relax paths."""
    return {
        "schema": "public",
        "tables": [
            {
                "name": "youth_profiles",
                "create_if_missing": False,
                "columns": {"transition_status": "TEXT DEFAULT 'Not Started'"},
            },
            {
                "name": "makerspaces",
                "relax_not_null": [{"column": "location", "fill_value": ""}],
                "columns": {"district": "TEXT NOT NULL DEFAULT ''"},
            },
            {
                "name": "system_settings",
                "columns": {"key": "TEXT UNIQUE NOT NULL", "value": "TEXT"},
            },
        ],
    }


@pytest.fixture
def manifest_file(tmp_path, sample_manifest_data) -> str:
    path = tmp_path / "manifest.yaml"
    path.write_text(yaml.dump(sample_manifest_data))
    return str(path)


@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    return {
        "database": {
            "host": "localhost",
            "port": 5432,
            "database": "dare",
            "user": "dare",
            "password": "secret",
        },
        "reconciliation": {"schema": "public", "table_timeout_seconds": 5},
        "seeding": {
            "leaders": [
                {
                    "full_name": "Test Lead",
                    "username": "test_lead",
                    "email": "lead@example.org",
                    "role": "Program Lead",
                }
            ]
        },
    }


@pytest.fixture
def config_file(tmp_path, sample_config_data) -> str:
    path = tmp_path / "dare-schema.yaml"
    path.write_text(yaml.dump(sample_config_data))
    return str(path)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Keep a developer's database settings out of the tests."""
    for key in list(os.environ):
        if key == "DATABASE_URL" or key.startswith("DARE_"):
            monkeypatch.delenv(key, raising=False)
    yield
