"""Table introspection through ``information_schema``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .database import QueryExecutor

DESCRIBE_TABLE_SQL = (
    "SELECT column_name, data_type FROM information_schema.columns "
    "WHERE table_name = %s AND table_schema = %s ORDER BY ordinal_position"
)


class TableSchema(BaseModel):
    """Snapshot of a table's columns, in ordinal order.

    Taken once when a store is created; later DDL is not reflected.
    """

    model_config = ConfigDict(frozen=True)

    table_name: str = Field(description="Table name")
    schema_name: str = Field(description="Database schema name")
    columns: dict[str, str] = Field(
        default_factory=dict,
        description="Column name to declared data type"
    )

    def __contains__(self, column: object) -> bool:
        return column in self.columns

    def type_of(self, column: str) -> str | None:
        """Return the declared type of ``column`` or None if unknown."""
        return self.columns.get(column)

    @property
    def exists(self) -> bool:
        """Whether the table reported any column."""
        return bool(self.columns)


def describe_table(
    executor: QueryExecutor,
    table_name: str,
    schema_name: str = "public",
) -> TableSchema:
    """
    Read column names and types of a table.

    Args:
        executor: Query executor
        table_name: Table to describe
        schema_name: Schema of the table

    Returns:
        TableSchema; empty when the table does not exist

    Raises:
        ExecutionError: If the catalog query fails
    """
    rows = executor.execute(DESCRIBE_TABLE_SQL, (table_name, schema_name))
    columns = {row["column_name"]: row["data_type"] for row in rows}

    if not columns:
        logger.warning("Table {}.{} not found or has no columns", schema_name, table_name)
    else:
        logger.debug(
            "Described {}.{} ({} columns)",
            schema_name,
            table_name,
            len(columns)
        )

    return TableSchema(table_name=table_name, schema_name=schema_name, columns=columns)
