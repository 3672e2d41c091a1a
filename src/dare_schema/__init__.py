"""
dare-schema: schema reconciliation and one-time seeding for the DARE
youth-entrepreneurship program database.

Brings a live PostgreSQL database into agreement with the tables and
columns the program application expects, using additive DDL only, and
guards one-time seeding of system roles and leadership accounts with
persisted migration flags.
"""

__version__ = "0.1.0"

from .config import DareConfig
from .exceptions import (
    DareError,
    ConfigurationError,
    DatabaseError,
    ConnectivityError,
    TableReconcileError,
    ConstraintRelaxError,
)

__all__ = [
    "__version__",
    "DareConfig",
    "DareError",
    "ConfigurationError",
    "DatabaseError",
    "ConnectivityError",
    "TableReconcileError",
    "ConstraintRelaxError",
]
