"""Resolution of logical column roles against a table schema."""

from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .catalog import TableSchema
from .exceptions import ConfigurationError

VECTOR_DATA_TYPE = "USER-DEFINED"


class ColumnMapping(BaseModel):
    """Resolved assignment of document roles to table columns.

    Attributes:
        id_column: Column holding the document id
        content_column: Character-string column holding the text
        embedding_column: pgvector column holding the embedding
        metadata_columns: Columns mapped one to one onto metadata keys
        metadata_json_column: JSON column for the remaining metadata, if any
        ignore_metadata_columns: Columns excluded from metadata, if that mode was used
    """

    model_config = ConfigDict(frozen=True)

    id_column: str
    content_column: str
    embedding_column: str
    metadata_columns: tuple[str, ...] = Field(default=())
    metadata_json_column: Optional[str] = None
    ignore_metadata_columns: Optional[frozenset[str]] = None

    @property
    def projection(self) -> list[str]:
        """Columns read back by a search, in select order."""
        columns = [self.id_column, self.content_column, self.embedding_column]
        columns.extend(self.metadata_columns)
        if self.metadata_json_column:
            columns.append(self.metadata_json_column)
        return columns


def check_metadata_options(
    metadata_columns: Optional[Iterable[str]],
    ignore_metadata_columns: Optional[Iterable[str]],
) -> None:
    """
    Reject the combination of explicit and ignored metadata columns.

    Raises:
        ConfigurationError: If both are supplied
    """
    if metadata_columns is not None and ignore_metadata_columns is not None:
        raise ConfigurationError(
            "Can not use both metadata_columns and ignore_metadata_columns."
        )


def _is_character_type(data_type: str) -> bool:
    return data_type == "text" or "char" in data_type


def resolve_columns(
    schema: TableSchema,
    *,
    id_column: str,
    content_column: str,
    embedding_column: str,
    metadata_columns: Optional[Iterable[str]] = None,
    ignore_metadata_columns: Optional[Iterable[str]] = None,
    metadata_json_column: Optional[str] = None,
) -> ColumnMapping:
    """
    Validate desired column roles and resolve the metadata columns.

    Args:
        schema: Table snapshot from :func:`describe_table`
        id_column: Desired id column
        content_column: Desired content column
        embedding_column: Desired embedding column
        metadata_columns: Explicit metadata columns
        ignore_metadata_columns: Columns to leave out when every other column is metadata
        metadata_json_column: Desired JSON metadata column

    Returns:
        Immutable ColumnMapping

    Raises:
        ConfigurationError: If a role does not match the schema
    """
    check_metadata_options(metadata_columns, ignore_metadata_columns)

    table = f"{schema.schema_name}.{schema.table_name}"
    known = list(schema.columns)

    if id_column not in schema:
        raise ConfigurationError(
            f"Id column: {id_column}, does not exist in {table}. Known columns: {known}"
        )

    if content_column not in schema:
        raise ConfigurationError(
            f"Content column: {content_column}, does not exist in {table}. Known columns: {known}"
        )

    content_type = schema.columns[content_column]
    if not _is_character_type(content_type):
        raise ConfigurationError(
            f"Content column: {content_column}, is type: {content_type}. "
            "It must be a type of character string."
        )

    if embedding_column not in schema:
        raise ConfigurationError(
            f"Embedding column: {embedding_column}, does not exist in {table}. Known columns: {known}"
        )

    if schema.columns[embedding_column] != VECTOR_DATA_TYPE:
        raise ConfigurationError(
            f"Embedding column: {embedding_column}, is type: "
            f"{schema.columns[embedding_column]}. It must be of type vector."
        )

    if metadata_json_column and metadata_json_column not in schema:
        logger.warning(
            "Metadata JSON column {} not found in {}; extra metadata will not be stored",
            metadata_json_column,
            table
        )
        metadata_json_column = None

    ignored: Optional[frozenset[str]] = None
    if ignore_metadata_columns is not None:
        ignored = frozenset(ignore_metadata_columns)
        excluded = ignored | {id_column, content_column, embedding_column}
        if metadata_json_column:
            excluded = excluded | {metadata_json_column}
        resolved = tuple(c for c in schema.columns if c not in excluded)
    else:
        resolved = tuple(metadata_columns or ())
        for column in resolved:
            if column not in schema:
                raise ConfigurationError(
                    f"Metadata column: {column}, does not exist in {table}. Known columns: {known}"
                )

    mapping = ColumnMapping(
        id_column=id_column,
        content_column=content_column,
        embedding_column=embedding_column,
        metadata_columns=resolved,
        metadata_json_column=metadata_json_column,
        ignore_metadata_columns=ignored,
    )
    logger.debug("Resolved column mapping for {}: {}", table, mapping)
    return mapping
