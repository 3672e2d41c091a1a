"""
Migration flags guarding one-time seeding actions.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..database.connection import ConnectionPool
from ..schema.identifiers import qualified_name


logger = logging.getLogger(__name__)

T = TypeVar("T")


class FlagState(str, Enum):
    """A flag only ever moves from NOT_SEEDED to SEEDED."""

    NOT_SEEDED = "not_seeded"
    SEEDED = "seeded"


class MigrationFlagGate:
    """Reads and writes rows in the migration_flags table."""

    def __init__(
        self,
        pool: ConnectionPool,
        schema: str = "public",
        table: str = "migration_flags",
    ):
        self.pool = pool
        self.table_name = qualified_name(schema, table)

    async def ensure_table(self) -> None:
        """Create the flags table if it does not exist yet."""
        await self.pool.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                id SERIAL PRIMARY KEY,
                flag_name TEXT NOT NULL UNIQUE,
                completed BOOLEAN NOT NULL DEFAULT FALSE,
                completed_at TIMESTAMP
            )
            """
        )

    async def is_completed(self, flag_name: str) -> bool:
        row = await self.pool.fetchrow(
            f"SELECT completed FROM {self.table_name} WHERE flag_name = $1",
            flag_name,
        )
        return row is not None and bool(row["completed"])

    async def mark_completed(self, flag_name: str) -> None:
        """Upsert the flag so concurrent writers cannot collide on insert."""
        await self.pool.execute(
            f"""
            INSERT INTO {self.table_name} (flag_name, completed, completed_at)
            VALUES ($1, TRUE, NOW())
            ON CONFLICT (flag_name)
            DO UPDATE SET completed = TRUE, completed_at = NOW()
            """,
            flag_name,
        )
        logger.info(f"Marked migration flag '{flag_name}' as completed")

    async def state(self, flag_name: str) -> FlagState:
        if await self.is_completed(flag_name):
            return FlagState.SEEDED
        return FlagState.NOT_SEEDED

    async def list_flags(self) -> List[Dict[str, Any]]:
        rows = await self.pool.fetch(
            f"SELECT flag_name, completed, completed_at FROM {self.table_name} "
            f"ORDER BY flag_name"
        )
        return [dict(row) for row in rows]

    async def run_once(
        self,
        flag_name: str,
        action: Callable[[], Awaitable[T]],
    ) -> Optional[T]:
        """
        Run action unless flag_name is already completed.

        The flag is written only after action returns. If action raises,
        the flag stays unset and the exception propagates.

        Returns:
            The action's result, or None when the flag was already set
        """
        if await self.is_completed(flag_name):
            logger.info(f"Migration flag '{flag_name}' already completed, skipping")
            return None

        logger.info(f"Running one-time action '{flag_name}'")
        result = await action()
        await self.mark_completed(flag_name)
        return result
