"""SQL construction for the vector store.

Every statement is returned together with its bound parameters and uses
psycopg2 ``%s`` placeholders. Identifiers are always double-quoted; values
never appear in the SQL text.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Mapping, NamedTuple, Optional, Sequence

from loguru import logger

from .indexes import DistanceStrategy, QueryOptions

if TYPE_CHECKING:
    from .columns import ColumnMapping
    from .indexes import BaseIndex


class Statement(NamedTuple):
    """A SQL statement and its bound parameters."""

    sql: str
    params: tuple[Any, ...] = ()


class SelectQuery(NamedTuple):
    """A search statement plus the settings to apply before it."""

    sql: str
    params: tuple[Any, ...]
    setup: tuple[str, ...] = ()


def quote_identifier(name: str) -> str:
    """Quote a SQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def qualified_table(schema_name: str, table_name: str) -> str:
    """Return ``"schema"."table"``."""
    return f"{quote_identifier(schema_name)}.{quote_identifier(table_name)}"


def vector_literal(embedding: Sequence[float]) -> str:
    """Serialize an embedding to the pgvector text input format.

    Example:
        ```python
        vector_literal([1, 0.5, 0])  # '[1.0,0.5,0.0]'
        ```
    """
    return "[" + ",".join(str(float(value)) for value in embedding) + "]"


def parse_vector(value: Any) -> list[float]:
    """
    Convert a vector read from the database into a list of floats.

    Args:
        value: pgvector text output (``'[1,2,3]'``) or an already decoded sequence

    Returns:
        List of floats
    """
    if value is None:
        return []
    if isinstance(value, str):
        body = value.strip().lstrip("[").rstrip("]")
        return [float(part) for part in body.split(",") if part.strip()]
    return [float(v) for v in value]


def build_insert(
    table: str,
    mapping: ColumnMapping,
    doc_id: str,
    content: str,
    embedding: Sequence[float],
    metadata: Optional[Mapping[str, Any]] = None,
) -> Statement:
    """
    Build the INSERT for one document.

    Metadata keys named like a metadata column are bound to that column
    (``None`` when missing). The remaining keys go to the JSON column as one
    serialized object; without a JSON column they are dropped.

    Args:
        table: Qualified, quoted table name
        mapping: Resolved column mapping
        doc_id: Document id
        content: Document text
        embedding: Embedding vector
        metadata: Document metadata

    Returns:
        INSERT statement with bound parameters
    """
    metadata = metadata or {}

    columns = [mapping.id_column, mapping.content_column, mapping.embedding_column]
    placeholders = ["%s", "%s", "%s::vector"]
    params: list[Any] = [doc_id, content, vector_literal(embedding)]

    for column in mapping.metadata_columns:
        columns.append(column)
        placeholders.append("%s")
        params.append(metadata.get(column))

    extra = {k: v for k, v in metadata.items() if k not in mapping.metadata_columns}
    if mapping.metadata_json_column:
        columns.append(mapping.metadata_json_column)
        placeholders.append("%s")
        params.append(json.dumps(extra, default=str))
    elif extra:
        logger.warning(
            "No metadata JSON column configured; dropping keys {} of document {}",
            sorted(extra),
            doc_id
        )

    sql = (
        f"INSERT INTO {table} ({', '.join(quote_identifier(c) for c in columns)}) "
        f"VALUES ({', '.join(placeholders)})"
    )
    return Statement(sql, tuple(params))


def build_select(
    table: str,
    mapping: ColumnMapping,
    strategy: DistanceStrategy,
    embedding: Sequence[float],
    k: int,
    filter: Optional[str] = None,
    query_options: Optional[QueryOptions] = None,
) -> SelectQuery:
    """
    Build the nearest-neighbor SELECT.

    The filter is a raw SQL predicate inserted verbatim after ``WHERE``; it
    is not sanitized and must come from a trusted caller. Ties on distance
    are broken by id so that results are deterministic.

    Args:
        table: Qualified, quoted table name
        mapping: Resolved column mapping
        strategy: Distance strategy
        embedding: Query embedding
        k: Maximum number of rows
        filter: Optional SQL predicate
        query_options: Optional index query options applied with ``SET LOCAL``

    Returns:
        SelectQuery with the statements to run before it
    """
    literal = vector_literal(embedding)
    embedding_column = quote_identifier(mapping.embedding_column)
    projection = ", ".join(quote_identifier(c) for c in mapping.projection)

    sql = (
        f"SELECT {projection}, "
        f"{strategy.search_function}({embedding_column}, %s::vector) AS distance "
        f"FROM {table}"
    )
    if filter:
        # Escape percent signs so the driver does not treat them as placeholders
        sql += f" WHERE {filter.replace('%', '%%')}"
    sql += (
        f" ORDER BY {embedding_column} {strategy.operator} %s::vector, "
        f"{quote_identifier(mapping.id_column)} LIMIT %s"
    )

    setup: tuple[str, ...] = ()
    if query_options is not None:
        setup = (f"SET LOCAL {query_options.to_string()}",)

    return SelectQuery(sql, (literal, literal, k), setup)


def build_delete(
    table: str,
    mapping: ColumnMapping,
    ids: Optional[Sequence[str]],
) -> Optional[Statement]:
    """
    Build the DELETE for a list of ids.

    Returns:
        DELETE statement, or None when there is nothing to delete
    """
    if not ids:
        return None
    sql = f"DELETE FROM {table} WHERE {quote_identifier(mapping.id_column)} IN %s"
    return Statement(sql, (tuple(ids),))


def build_create_table(
    table_name: str,
    vector_size: int,
    *,
    schema_name: str = "public",
    content_column: str = "content",
    embedding_column: str = "embedding",
    metadata_columns: Sequence[tuple[str, str, bool]] = (),
    metadata_json_column: Optional[str] = "metadata",
    id_column: tuple[str, str] = ("id", "UUID"),
    overwrite_existing: bool = False,
) -> list[str]:
    """
    Build the DDL creating a vector store table.

    Args:
        table_name: Table to create
        vector_size: Embedding dimension
        schema_name: Database schema
        content_column: Text column name
        embedding_column: Vector column name
        metadata_columns: ``(name, data_type, nullable)`` triples
        metadata_json_column: JSON column name, or None for no JSON column
        id_column: ``(name, data_type)`` of the primary key
        overwrite_existing: Prepend a DROP TABLE

    Returns:
        Statements in execution order
    """
    if vector_size < 1:
        raise ValueError("vector_size must be a positive integer")

    table = qualified_table(schema_name, table_name)
    statements: list[str] = []
    if overwrite_existing:
        statements.append(f"DROP TABLE IF EXISTS {table}")

    definitions = [
        f"{quote_identifier(id_column[0])} {id_column[1]} PRIMARY KEY",
        f"{quote_identifier(content_column)} TEXT NOT NULL",
        f"{quote_identifier(embedding_column)} vector({int(vector_size)}) NOT NULL",
    ]
    for name, data_type, nullable in metadata_columns:
        definitions.append(
            f"{quote_identifier(name)} {data_type}{'' if nullable else ' NOT NULL'}"
        )
    if metadata_json_column:
        definitions.append(f"{quote_identifier(metadata_json_column)} JSON")

    statements.append(f"CREATE TABLE {table} ({', '.join(definitions)})")
    return statements


def build_create_index(
    table: str,
    embedding_column: str,
    index: BaseIndex,
    name: str,
    *,
    concurrently: bool = False,
) -> str:
    """Build ``CREATE INDEX`` for a vector index definition."""
    options = index.index_options()
    sql = (
        f"CREATE INDEX {'CONCURRENTLY ' if concurrently else ''}{quote_identifier(name)} "
        f"ON {table} USING {index.index_type} "
        f"({quote_identifier(embedding_column)} {index.distance_strategy.index_function})"
    )
    if options:
        sql += f" WITH {options}"
    if index.partial_indexes:
        sql += " WHERE " + " AND ".join(f"({p})" for p in index.partial_indexes)
    return sql


def build_drop_index(schema_name: str, name: str) -> str:
    return f"DROP INDEX IF EXISTS {qualified_table(schema_name, name)}"


def build_reindex(schema_name: str, name: str) -> str:
    return f"REINDEX INDEX {qualified_table(schema_name, name)}"


def build_index_lookup(schema_name: str, table_name: str, name: str) -> Statement:
    return Statement(
        "SELECT indexname FROM pg_indexes "
        "WHERE schemaname = %s AND tablename = %s AND indexname = %s",
        (schema_name, table_name, name),
    )
