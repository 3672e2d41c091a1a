"""
Table manifests for dare-schema.

The built-in manifest describes the tables the DARE program application
expects. A YAML manifest file with the same shape can replace it:

    schema: public
    tables:
      - name: youth_profiles
        create_if_missing: false
        columns:
          transition_status: "TEXT DEFAULT 'Not Started'"
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .models import TableSpec, normalize_specs


logger = logging.getLogger(__name__)


DARE_MANIFEST: Dict[str, Any] = {
    "schema": "public",
    "tables": [
        {
            "name": "migration_flags",
            "columns": {
                "flag_name": "TEXT NOT NULL UNIQUE",
                "completed": "BOOLEAN NOT NULL DEFAULT FALSE",
                "completed_at": "TIMESTAMP",
            },
        },
        {
            # Owned by the application; only patched here
            "name": "youth_profiles",
            "create_if_missing": False,
            "columns": {
                "emergency_contact": "TEXT",
                "email": "TEXT",
                "transition_status": "TEXT DEFAULT 'Not Started'",
                "onboarded_to_tracker": "BOOLEAN DEFAULT FALSE",
                "local_mentor_name": "TEXT",
                "local_mentor_contact": "TEXT",
            },
        },
        {
            "name": "makerspaces",
            "relax_not_null": [{"column": "location", "fill_value": ""}],
            "columns": {
                "name": "TEXT NOT NULL DEFAULT ''",
                "description": "TEXT",
                "address": "TEXT DEFAULT ''",
                "coordinates": "TEXT",
                "district": "TEXT NOT NULL DEFAULT ''",
                "contact_phone": "TEXT",
                "contact_email": "TEXT",
                "operating_hours": "TEXT",
                "open_date": "DATE",
                "status": "TEXT DEFAULT 'Active'",
                "resource_count": "INTEGER DEFAULT 0",
                "member_count": "INTEGER DEFAULT 0",
                "facilities": "TEXT",
                "created_at": "TIMESTAMP DEFAULT NOW()",
                "updated_at": "TIMESTAMP DEFAULT NOW()",
            },
        },
        {
            "name": "business_makerspace_assignments",
            "constraints": ["CONSTRAINT unique_business_assignment UNIQUE (business_id)"],
            "columns": {
                "business_id": "INTEGER NOT NULL",
                "makerspace_id": "INTEGER NOT NULL",
                "assigned_date": "TIMESTAMP DEFAULT NOW()",
                "assigned_by": "INTEGER",
                "notes": "TEXT",
                "is_active": "BOOLEAN DEFAULT TRUE",
                "start_date": "DATE",
                "end_date": "DATE",
                "status": "TEXT DEFAULT 'active'",
                "created_at": "TIMESTAMP DEFAULT NOW()",
                "updated_at": "TIMESTAMP",
            },
        },
        {
            "name": "reports",
            "columns": {
                "title": "TEXT NOT NULL DEFAULT 'Report'",
                "description": "TEXT",
                "report_type": "TEXT NOT NULL DEFAULT 'custom'",
                "is_template": "BOOLEAN DEFAULT FALSE",
                "filters": "JSONB DEFAULT '{}'",
                "columns": "JSONB DEFAULT '[]'",
                "sort_by": "TEXT",
                "sort_direction": "TEXT DEFAULT 'asc'",
                "group_by": "TEXT",
                "chart_options": "JSONB DEFAULT '{}'",
                "report_period": "TEXT",
                "start_date": "DATE",
                "end_date": "DATE",
                "created_by": "INTEGER",
                "last_run_by": "INTEGER",
                "last_run_at": "TIMESTAMP",
                "created_at": "TIMESTAMP DEFAULT NOW()",
                "updated_at": "TIMESTAMP",
            },
        },
        {
            "name": "report_runs",
            "depends_on": ["reports"],
            "columns": {
                "report_id": "INTEGER REFERENCES reports(id)",
                "status": "TEXT NOT NULL DEFAULT 'pending'",
                "format": "TEXT NOT NULL DEFAULT 'csv'",
                "file_path": "TEXT",
                "error_message": "TEXT",
                "run_by": "INTEGER",
                "started_at": "TIMESTAMP DEFAULT NOW()",
                "completed_at": "TIMESTAMP",
                "report_data": "JSONB DEFAULT '[]'",
            },
        },
        {
            "name": "feasibility_assessments",
            "columns": {
                "business_id": "INTEGER",
                "youth_id": "INTEGER",
                "business_name": "TEXT NOT NULL DEFAULT ''",
                "district": "TEXT NOT NULL DEFAULT ''",
                "assessment_date": "DATE DEFAULT NOW()",
                "status": "TEXT DEFAULT 'Draft'",
                "market_demand": "TEXT",
                "competition_level": "TEXT",
                "customer_accessibility": "TEXT",
                "pricing_power": "TEXT",
                "marketing_effectiveness": "TEXT",
                "market_comments": "TEXT",
                "startup_costs": "TEXT",
                "operating_costs": "TEXT",
                "profit_margins": "TEXT",
                "cash_flow": "TEXT",
                "financial_sustainability": "TEXT",
                "financial_comments": "TEXT",
                "production_capability": "TEXT",
                "supply_chain": "TEXT",
                "quality_control": "TEXT",
                "scalability": "TEXT",
                "technology_needs": "TEXT",
                "operations_comments": "TEXT",
                "leadership_skills": "TEXT",
                "business_knowledge": "TEXT",
                "adaptability": "TEXT",
                "resilience": "TEXT",
                "support_network": "TEXT",
                "management_comments": "TEXT",
                "overall_score": "TEXT",
                "recommendations": "TEXT",
                "next_steps": "TEXT",
                "created_at": "TIMESTAMP DEFAULT NOW()",
                "updated_at": "TIMESTAMP DEFAULT NOW()",
                "created_by": "INTEGER",
                "updated_by": "INTEGER",
            },
        },
        {
            "name": "system_settings",
            "columns": {
                "key": "TEXT UNIQUE NOT NULL",
                "value": "TEXT",
                "created_at": "TIMESTAMP DEFAULT NOW()",
                "updated_at": "TIMESTAMP",
            },
        },
        {
            "name": "roles",
            "columns": {
                "name": "VARCHAR(50) NOT NULL UNIQUE",
                "display_name": "VARCHAR(100)",
                "description": "TEXT",
                "is_system": "BOOLEAN NOT NULL DEFAULT FALSE",
                "is_editable": "BOOLEAN NOT NULL DEFAULT TRUE",
                "is_active": "BOOLEAN NOT NULL DEFAULT TRUE",
                "created_at": "TIMESTAMP DEFAULT NOW()",
                "updated_at": "TIMESTAMP",
            },
        },
        {
            "name": "users",
            "columns": {
                "username": "TEXT NOT NULL UNIQUE",
                "password": "TEXT NOT NULL",
                "email": "TEXT",
                "full_name": "TEXT NOT NULL",
                "role": "TEXT NOT NULL DEFAULT 'mentee'",
                "district": "TEXT",
                "profile_picture": "TEXT",
                "is_active": "BOOLEAN NOT NULL DEFAULT TRUE",
                "last_login": "TIMESTAMP",
                "created_at": "TIMESTAMP DEFAULT NOW()",
                "updated_at": "TIMESTAMP",
            },
        },
        {
            "name": "role_users",
            "depends_on": ["roles", "users"],
            "constraints": ["CONSTRAINT role_users_unique UNIQUE (role_id, user_id)"],
            "columns": {
                "role_id": "INTEGER NOT NULL REFERENCES roles(id)",
                "user_id": "INTEGER NOT NULL REFERENCES users(id)",
                "created_at": "TIMESTAMP DEFAULT NOW()",
            },
        },
    ],
}


def parse_manifest(data: Dict[str, Any]) -> List[TableSpec]:
    """Build TableSpecs from manifest data (the YAML document shape)."""
    if not isinstance(data, dict) or not isinstance(data.get("tables"), list):
        raise ConfigurationError("Manifest must be a mapping with a 'tables' list")

    schema = data.get("schema", "public")

    try:
        tables = [
            TableSpec(**{"schema": schema, **table}) for table in data["tables"]
        ]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid manifest: {e}") from e
    except TypeError as e:
        raise ConfigurationError(f"Invalid manifest entry: {e}") from e

    tables = normalize_specs(tables, schema)

    known = {t.name for t in tables}
    for table in tables:
        for dep in table.depends_on:
            if dep not in known:
                logger.debug(f"{table.name} depends on {dep}, which is not in the manifest")

    return tables


def default_manifest(schema: Optional[str] = None) -> List[TableSpec]:
    """The built-in DARE manifest, optionally retargeted to another schema."""
    data = dict(DARE_MANIFEST)
    if schema:
        data["schema"] = schema
    return parse_manifest(data)


def load_manifest(path: Union[str, Path]) -> List[TableSpec]:
    """Load a manifest from a YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Manifest file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in manifest file: {e}")

    return parse_manifest(data)
