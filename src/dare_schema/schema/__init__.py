"""
Schema management package for dare-schema.

This package provides:
- Declarative table/column specifications and manifests
- Identifier validation and quoting
- Additive schema operations (create table, add column, relax NOT NULL)
- Idempotent schema reconciliation with per-table results
"""

from .models import ColumnSpec, TableSpec, NotNullRelaxation
from .manifest import default_manifest, load_manifest, parse_manifest
from .operations import SchemaOperations, SchemaChange, ChangeType, OperationMode
from .reconciler import (
    SchemaReconciler,
    ReconciliationResult,
    ReconciliationReport,
    ReconciliationStatus,
)

__all__ = [
    "ColumnSpec",
    "TableSpec",
    "NotNullRelaxation",
    "default_manifest",
    "load_manifest",
    "parse_manifest",
    "SchemaOperations",
    "SchemaChange",
    "ChangeType",
    "OperationMode",
    "SchemaReconciler",
    "ReconciliationResult",
    "ReconciliationReport",
    "ReconciliationStatus",
]
