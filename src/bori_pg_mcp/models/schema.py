"""Catalog models for table listing and column schemas.

These are the JSON shapes returned to MCP clients when they list tables or
read a table's schema resource.
"""

from pydantic import BaseModel, ConfigDict, Field

SCHEMA_PATH = "schema"
RESOURCE_MIME_TYPE = "application/json"


def table_schema_uri(database: str, table: str) -> str:
    """Build the resource URI for a table's column schema."""
    return f"postgres://{database}/{table}/{SCHEMA_PATH}"


class TableResource(BaseModel):
    """A table exposed as a readable MCP resource."""

    model_config = ConfigDict(populate_by_name=True)

    uri: str = Field(..., description="Resource URI of the table schema")
    mime_type: str = Field(default=RESOURCE_MIME_TYPE, alias="mimeType")
    name: str = Field(..., description="Display name")

    @classmethod
    def for_table(cls, database: str, table: str) -> "TableResource":
        return cls(
            uri=table_schema_uri(database, table),
            name=f'"{table}" table from {database} database',
        )


class ColumnSchema(BaseModel):
    """One row of information_schema.columns."""

    column_name: str
    data_type: str
    is_nullable: str
