"""
One-time seeding guarded by migration flags.
"""

from .flags import FlagState, MigrationFlagGate
from .leadership import (
    DEFAULT_SYSTEM_ROLES,
    LEADERSHIP_FLAG,
    LeaderAccount,
    LeadershipSeeder,
    SeededAccount,
    SystemRole,
)

__all__ = [
    "FlagState",
    "MigrationFlagGate",
    "DEFAULT_SYSTEM_ROLES",
    "LEADERSHIP_FLAG",
    "LeaderAccount",
    "LeadershipSeeder",
    "SeededAccount",
    "SystemRole",
]
