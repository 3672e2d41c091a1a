"""
Database connection management for dare-schema.

Provides an async PostgreSQL connection pool that is created once per run
and passed explicitly to the reconciler and the seeding helpers.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Any, AsyncIterator, List
from urllib.parse import urlparse, parse_qs, unquote

import asyncpg
from pydantic import BaseModel, Field, field_validator

from ..exceptions import ConnectivityError, ConfigurationError


logger = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Database connection configuration."""

    host: str = Field(..., description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field(..., description="Database name")
    user: str = Field(..., description="Database user")
    password: str = Field(..., description="Database password")

    # The reconciler issues one statement at a time
    min_size: int = Field(1, description="Minimum connections in pool")
    max_size: int = Field(4, description="Maximum connections in pool")

    connect_timeout: float = Field(30.0, description="Connection timeout in seconds")
    command_timeout: float = Field(60.0, description="Statement timeout in seconds")
    server_settings: Dict[str, str] = Field(
        default_factory=lambda: {"application_name": "dare-schema"},
        description="PostgreSQL server settings"
    )

    ssl_mode: Optional[str] = Field(None, description="SSL mode")

    @field_validator('database')
    @classmethod
    def validate_database(cls, v):
        if not v or not v.strip():
            raise ValueError("Database name is required")
        return v

    @classmethod
    def from_url(cls, url: str, **overrides: Any) -> "ConnectionConfig":
        """Create configuration from a postgres:// database URL."""
        parsed = urlparse(url)

        if parsed.scheme not in ("postgresql", "postgres"):
            raise ConfigurationError(f"Invalid database URL scheme: {parsed.scheme}")

        if not parsed.path or parsed.path == "/":
            raise ConfigurationError("Database name is required")

        query_params = parse_qs(parsed.query) if parsed.query else {}

        config_data: Dict[str, Any] = {
            "host": parsed.hostname or "localhost",
            "port": parsed.port or 5432,
            "database": parsed.path.lstrip("/"),
            "user": unquote(parsed.username or ""),
            "password": unquote(parsed.password or ""),
            "ssl_mode": query_params.get("sslmode", ["prefer"])[0],
        }
        config_data.update(overrides)

        return cls(**config_data)

    def to_connection_kwargs(self) -> Dict[str, Any]:
        """Convert to asyncpg connection kwargs."""
        kwargs = {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "timeout": self.connect_timeout,
            "command_timeout": self.command_timeout,
            "server_settings": self.server_settings,
        }

        if self.ssl_mode:
            kwargs["ssl"] = self.ssl_mode

        return kwargs


class ConnectionPool:
    """Async PostgreSQL connection pool wrapper."""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        async with self._lock:
            if self._pool is not None:
                return

            try:
                logger.info(
                    f"Connecting to {self.config.host}:{self.config.port}"
                    f"/{self.config.database}"
                )

                self._pool = await asyncpg.create_pool(
                    **self.config.to_connection_kwargs(),
                    min_size=self.config.min_size,
                    max_size=self.config.max_size,
                )

                logger.info("Connection pool initialized")

            except Exception as e:
                logger.error(f"Failed to connect to database: {e}")
                raise ConnectivityError(
                    f"Cannot reach database {self.config.host}:{self.config.port}"
                    f"/{self.config.database}",
                    cause=e,
                ) from e

    async def close(self) -> None:
        """Close the connection pool."""
        async with self._lock:
            if self._pool is not None:
                logger.info("Closing connection pool")
                await self._pool.close()
                self._pool = None

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection from the pool."""
        if self._pool is None:
            raise ConnectivityError("Pool is not connected")

        async with self._pool.acquire() as connection:
            yield connection

    async def execute(self, query: str, *args, timeout: Optional[float] = None) -> str:
        """Execute a statement and return its status tag."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def fetch(self, query: str, *args, timeout: Optional[float] = None) -> List[asyncpg.Record]:
        """Fetch all results from a query."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def fetchrow(self, query: str, *args, timeout: Optional[float] = None) -> Optional[asyncpg.Record]:
        """Fetch a single row from a query."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args, timeout=timeout)

    async def fetchval(self, query: str, *args, timeout: Optional[float] = None) -> Any:
        """Fetch a single value from a query."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)

    async def ping(self) -> None:
        """Run a trivial query, raising ConnectivityError if it fails."""
        try:
            await self.fetchval("SELECT 1", timeout=self.config.connect_timeout)
        except ConnectivityError:
            raise
        except Exception as e:
            raise ConnectivityError("Database did not answer ping", cause=e) from e

    @property
    def is_initialized(self) -> bool:
        """Check if pool is initialized."""
        return self._pool is not None

    async def __aenter__(self) -> "ConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
