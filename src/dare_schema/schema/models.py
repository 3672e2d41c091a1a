"""
Declarative table and column specifications.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..exceptions import ConfigurationError
from .identifiers import (
    IdentifierSafelist,
    quote_ident,
    validate_definition,
    validate_identifier,
)


DEFAULT_PRIMARY_KEY = "id SERIAL PRIMARY KEY"


def _identifier(value: str) -> str:
    try:
        return validate_identifier(value)
    except ConfigurationError as e:
        raise ValueError(e.message) from e


def _definition(value: str) -> str:
    try:
        return validate_definition(value)
    except ConfigurationError as e:
        raise ValueError(e.message) from e


class ColumnSpec(BaseModel):
    """A single expected column: table, column name and SQL definition."""

    table: str = Field(..., description="Target table")
    column: str = Field(..., description="Column name")
    definition: str = Field(..., description="Type clause plus optional default/constraints")

    @field_validator("table", "column")
    @classmethod
    def check_identifier(cls, v: str) -> str:
        return _identifier(v)

    @field_validator("definition")
    @classmethod
    def check_definition(cls, v: str) -> str:
        return _definition(v)

    @property
    def key(self):
        return (self.table, self.column)

    def column_sql(self) -> str:
        return f"{quote_ident(self.column)} {self.definition}"


class NotNullRelaxation(BaseModel):
    """A legacy column whose NOT NULL constraint blocks newer inserts."""

    column: str
    fill_value: str = Field("", description="Value written into NULL rows if relaxing fails")

    @field_validator("column")
    @classmethod
    def check_identifier(cls, v: str) -> str:
        return _identifier(v)


class TableSpec(BaseModel):
    """Expected shape of one table."""

    name: str
    schema_name: str = Field("public", alias="schema")
    columns: List[ColumnSpec] = Field(default_factory=list)
    primary_key: Optional[str] = Field(DEFAULT_PRIMARY_KEY)
    create_if_missing: bool = True
    constraints: List[str] = Field(default_factory=list)
    relax_not_null: List[NotNullRelaxation] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def expand_columns(cls, data):
        # Manifests write columns as {name: definition} or [{column, definition}]
        if isinstance(data, dict):
            name = data.get("name")
            columns = data.get("columns")
            if isinstance(columns, dict):
                columns = [
                    {"column": column, "definition": definition}
                    for column, definition in columns.items()
                ]
            if isinstance(columns, list):
                data = dict(data)
                data["columns"] = [
                    {"table": name, **c} if isinstance(c, dict) and "table" not in c else c
                    for c in columns
                ]
        return data

    @field_validator("name", "schema_name")
    @classmethod
    def check_identifier(cls, v: str) -> str:
        return _identifier(v)

    @field_validator("primary_key")
    @classmethod
    def check_primary_key(cls, v: Optional[str]) -> Optional[str]:
        return _definition(v) if v else None

    @field_validator("constraints")
    @classmethod
    def check_constraints(cls, v: List[str]) -> List[str]:
        return [_definition(c) for c in v]

    @model_validator(mode="after")
    def check_columns(self) -> "TableSpec":
        seen = set()
        for col in self.columns:
            if col.table != self.name:
                raise ValueError(
                    f"Column {col.table}.{col.column} declared under table {self.name}"
                )
            if col.column in seen:
                raise ValueError(f"Column {self.name}.{col.column} declared twice")
            seen.add(col.column)
        if not self.columns and not self.primary_key:
            raise ValueError(f"Table {self.name} needs at least one column or a primary key")
        return self

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.name}"

    @property
    def column_names(self) -> List[str]:
        return [c.column for c in self.columns]

    @property
    def primary_key_clause(self) -> Optional[str]:
        """primary_key, unless a declared column already provides the key."""
        if not self.primary_key:
            return None
        key_column = self.primary_key.split()[0].strip('"')
        for col in self.columns:
            if col.column == key_column or "PRIMARY KEY" in col.definition.upper():
                return None
        return self.primary_key


def group_column_specs(
    specs: Iterable[ColumnSpec], schema: str = "public"
) -> List[TableSpec]:
    """Group flat column specs by table, keeping first-appearance order."""
    grouped: Dict[str, List[ColumnSpec]] = {}
    for spec in specs:
        grouped.setdefault(spec.table, []).append(spec)

    try:
        return [
            TableSpec(name=table, schema=schema, columns=columns)
            for table, columns in grouped.items()
        ]
    except ValueError as e:
        raise ConfigurationError(f"Invalid column specifications: {e}") from e


def normalize_specs(
    specs: Sequence[Union[ColumnSpec, TableSpec]], schema: str = "public"
) -> List[TableSpec]:
    """Accept a list of ColumnSpec or a list of TableSpec and return TableSpecs."""
    if all(isinstance(s, TableSpec) for s in specs):
        tables = list(specs)
    elif all(isinstance(s, ColumnSpec) for s in specs):
        tables = group_column_specs(specs, schema)
    else:
        raise ConfigurationError("Cannot mix ColumnSpec and TableSpec in one run")

    names = [t.name for t in tables]
    duplicates = {n for n in names if names.count(n) > 1}
    if duplicates:
        raise ConfigurationError(f"Tables declared more than once: {sorted(duplicates)}")

    return tables


def build_safelist(tables: Iterable[TableSpec]) -> IdentifierSafelist:
    """Collect every identifier the given table specs declare."""
    safelist = IdentifierSafelist()
    for table in tables:
        safelist.add_table(table.name)
        for col in table.columns:
            safelist.add_column(table.name, col.column)
        for relaxation in table.relax_not_null:
            safelist.add_column(table.name, relaxation.column)
    return safelist
