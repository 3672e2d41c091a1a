"""
One-time seeding of system roles and leadership-team accounts.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import asyncpg
from pydantic import BaseModel, Field

from ..database.connection import ConnectionPool
from ..exceptions import SeedingError
from ..schema.identifiers import qualified_name
from .flags import MigrationFlagGate
from .passwords import generate_secure_password, hash_password


logger = logging.getLogger(__name__)


LEADERSHIP_FLAG = "system_roles_and_leaders_seeded"


class SystemRole(BaseModel):
    """A built-in role created once by the seeder."""

    name: str
    description: str = ""
    is_editable: bool = True


class LeaderAccount(BaseModel):
    """A leadership-team member who gets a login."""

    full_name: str
    username: str
    email: Optional[str] = None
    role: str = Field(..., description="System role the user is attached to")
    district: Optional[str] = None
    user_role: str = Field("manager", description="Application-level role column")


@dataclass
class SeededAccount:
    """Credentials of a freshly created account, shown once to the operator."""

    name: str
    username: str
    password: str
    role: str
    email: Optional[str]
    user_id: int


DEFAULT_SYSTEM_ROLES = [
    SystemRole(name="Program Lead", description="Overall program leadership and oversight"),
    SystemRole(name="RMEL Lead", description="Monitoring, Evaluation, and Learning leadership"),
    SystemRole(name="IHS Lead", description="Innovation Hub Services leadership"),
    SystemRole(name="MKTS Lead", description="Market and Technical Services leadership"),
    SystemRole(
        name="Communication Lead",
        description="Program communication and outreach leadership",
    ),
    SystemRole(
        name="User",
        description="Regular user with view-only access to non-administrative content",
        is_editable=False,
    ),
]


class LeadershipSeeder:
    """Creates system roles and leadership users exactly once."""

    def __init__(
        self,
        pool: ConnectionPool,
        leaders: Sequence[LeaderAccount],
        roles: Sequence[SystemRole] = tuple(DEFAULT_SYSTEM_ROLES),
        schema: str = "public",
        flag_name: str = LEADERSHIP_FLAG,
        password_length: int = 10,
        gate: Optional[MigrationFlagGate] = None,
    ):
        self.pool = pool
        self.leaders = list(leaders)
        self.roles = list(roles)
        self.flag_name = flag_name
        self.password_length = password_length
        self.gate = gate or MigrationFlagGate(pool, schema=schema)

        self._roles_table = qualified_name(schema, "roles")
        self._users_table = qualified_name(schema, "users")
        self._role_users_table = qualified_name(schema, "role_users")

    async def seed(self) -> Optional[List[SeededAccount]]:
        """
        Seed roles and accounts unless the migration flag says it already ran.

        Returns:
            Created accounts with their plaintext passwords, or None if skipped
        """
        self._check_leaders()
        await self.gate.ensure_table()
        return await self.gate.run_once(self.flag_name, self._seed)

    def _check_leaders(self) -> None:
        known = {r.name for r in self.roles}
        unknown = sorted({leader.role for leader in self.leaders} - known)
        if unknown:
            raise SeedingError(
                f"Leaders reference unknown roles: {', '.join(unknown)}",
                details={"known_roles": sorted(known)},
            )

        usernames = [leader.username for leader in self.leaders]
        duplicates = sorted({u for u in usernames if usernames.count(u) > 1})
        if duplicates:
            raise SeedingError(f"Duplicate leader usernames: {', '.join(duplicates)}")

    async def _seed(self) -> List[SeededAccount]:
        logger.info("Starting to seed system roles and leadership users")

        try:
            # Roles and users commit or roll back together
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    role_ids = await self._create_roles(conn)
                    accounts = await self._create_users(conn)
        except Exception as e:
            logger.error(f"Error seeding system roles and leadership users: {e}")
            raise SeedingError("Failed to seed system roles and leadership users", cause=e) from e

        await self._associate(role_ids, accounts)

        logger.info(
            f"Seeded {len(role_ids)} system roles and {len(accounts)} leadership accounts"
        )
        return accounts

    async def _create_roles(self, conn: asyncpg.Connection) -> Dict[str, int]:
        role_ids = {}
        for role in self.roles:
            role_ids[role.name] = await conn.fetchval(
                f"""
                INSERT INTO {self._roles_table} (name, description, is_system, is_editable)
                VALUES ($1, $2, TRUE, $3)
                RETURNING id
                """,
                role.name,
                role.description,
                role.is_editable,
            )
            logger.info(f"Created system role '{role.name}'")
        return role_ids

    async def _create_users(self, conn: asyncpg.Connection) -> List[SeededAccount]:
        accounts = []
        for leader in self.leaders:
            password = generate_secure_password(self.password_length)
            user_id = await conn.fetchval(
                f"""
                INSERT INTO {self._users_table}
                    (username, password, full_name, email, role, district, is_active)
                VALUES ($1, $2, $3, $4, $5, $6, TRUE)
                RETURNING id
                """,
                leader.username,
                hash_password(password),
                leader.full_name,
                leader.email,
                leader.user_role,
                leader.district,
            )
            accounts.append(
                SeededAccount(
                    name=leader.full_name,
                    username=leader.username,
                    password=password,
                    role=leader.role,
                    email=leader.email,
                    user_id=user_id,
                )
            )
            logger.info(f"Created user account for {leader.full_name} with ID {user_id}")
        return accounts

    async def _associate(self, role_ids: Dict[str, int], accounts: List[SeededAccount]) -> None:
        try:
            for account in accounts:
                await self.pool.execute(
                    f"INSERT INTO {self._role_users_table} (role_id, user_id) VALUES ($1, $2)",
                    role_ids[account.role],
                    account.user_id,
                )
        except Exception as e:
            # role_users may not exist yet on older databases
            logger.warning(f"Could not associate users with roles: {e}")
