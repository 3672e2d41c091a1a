"""
Configuration system for dare-schema using Pydantic.
"""

import os
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import ConnectionConfig
from .exceptions import ConfigurationError
from .seeding.leadership import LEADERSHIP_FLAG, LeaderAccount


class DatabaseConnection(BaseModel):
    """Database connection configuration."""

    host: str = Field(..., description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field(..., description="Database name")
    user: str = Field(..., description="Database user")
    password: str = Field(..., description="Database password")
    ssl_mode: str = Field("prefer", description="SSL mode")
    connect_timeout: int = Field(30, description="Connection timeout in seconds")
    command_timeout: int = Field(60, description="Command timeout in seconds")


class ReconciliationConfig(BaseModel):
    """Schema reconciliation settings."""

    schema_name: str = Field("public", alias="schema", description="Target schema")
    dry_run: bool = Field(False, description="Plan statements without executing them")
    manifest: Optional[str] = Field(
        None, description="YAML manifest path; the built-in manifest is used when unset"
    )
    table_timeout_seconds: Optional[float] = Field(
        120.0, description="Upper bound for reconciling one table"
    )
    statement_timeout_seconds: Optional[float] = Field(
        30.0, description="Timeout passed to every catalog or DDL statement"
    )

    model_config = ConfigDict(populate_by_name=True)


class SeedingConfig(BaseModel):
    """Leadership seeding settings."""

    flag_name: str = Field(LEADERSHIP_FLAG, description="Migration flag guarding the seeding")
    password_length: int = Field(10, ge=8, description="Length of generated passwords")
    leaders: List[LeaderAccount] = Field(
        default_factory=list, description="Leadership-team accounts to create"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format for the log file",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class DareConfig(BaseSettings):
    """Main dare-schema configuration."""

    debug: bool = Field(False, description="Enable debug mode")

    database: Optional[DatabaseConnection] = Field(
        None, description="Database connection details"
    )
    database_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("database_url", "DARE_DATABASE_URL", "DATABASE_URL"),
        description="postgres:// URL; takes precedence over 'database'",
    )

    reconciliation: ReconciliationConfig = Field(
        default_factory=ReconciliationConfig,
        description="Schema reconciliation configuration",
    )
    seeding: SeedingConfig = Field(
        default_factory=SeedingConfig, description="Leadership seeding configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DARE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "DareConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")
        except TypeError as e:
            raise ConfigurationError(f"Configuration file must contain a mapping: {e}")

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "DareConfig":
        """Load from a YAML file when given, otherwise from the environment."""
        if path:
            return cls.from_yaml(path)
        try:
            return cls()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def connection_config(self) -> ConnectionConfig:
        """Build the pool configuration from database_url or the database section."""
        timeout = self.reconciliation.statement_timeout_seconds
        overrides = {"command_timeout": timeout} if timeout else {}

        if self.database_url:
            return ConnectionConfig.from_url(self.database_url, **overrides)

        if self.database is None:
            raise ConfigurationError(
                "No database configured: set DATABASE_URL or the 'database' section"
            )

        db = self.database
        return ConnectionConfig(
            host=db.host,
            port=db.port,
            database=db.database,
            user=db.user,
            password=db.password,
            ssl_mode=db.ssl_mode,
            connect_timeout=db.connect_timeout,
            command_timeout=timeout or db.command_timeout,
        )

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True, by_alias=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
