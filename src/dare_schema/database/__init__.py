"""
Database integration package for dare-schema.

This package provides:
- Async PostgreSQL connection pooling
- Catalog introspection for table and column existence
"""

from .connection import ConnectionConfig, ConnectionPool
from .introspection import SchemaIntrospector, ColumnInfo

__all__ = [
    "ConnectionConfig",
    "ConnectionPool",
    "SchemaIntrospector",
    "ColumnInfo",
]
