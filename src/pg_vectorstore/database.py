"""Database connection management for PostgreSQL with the pgvector extension."""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Optional, Protocol, Sequence, Union
from uuid import uuid4

import psycopg2
from loguru import logger
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool
from pydantic import BaseModel, Field, field_validator

from .config import EngineSettings
from .exceptions import ExecutionError
from .queries import build_create_table

Params = Optional[Union[Sequence[Any], Mapping[str, Any]]]


class QueryExecutor(Protocol):
    """Anything able to run a parameterized statement and return rows."""

    def execute(
        self,
        query: str,
        params: Params = None,
        *,
        setup: Sequence[str] = (),
        autocommit: bool = False,
    ) -> list[dict[str, Any]]:
        ...


class Column(BaseModel):
    """Definition of an extra column for :meth:`PostgresEngine.init_vectorstore_table`."""

    name: str = Field(description="Column name")
    data_type: str = Field(description="SQL data type, e.g. TEXT or INTEGER")
    nullable: bool = Field(default=True, description="Whether NULL is allowed")

    @field_validator("name", "data_type")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate that name and type are not empty."""
        if not v or not v.strip():
            raise ValueError("Column name and data type cannot be empty")
        return v


class PostgresEngine:
    """Executes statements against PostgreSQL through a psycopg2 connection pool.

    Every call to :meth:`execute` borrows one connection, runs the optional
    setup statements and the query inside a single transaction, commits and
    returns the connection. The pool belongs to this engine instance.

    Example:
        ```python
        engine = PostgresEngine.from_dsn("postgresql://user:pw@localhost/db")
        engine.init_vectorstore_table("docs", vector_size=384)
        rows = engine.execute("SELECT count(*) AS n FROM docs")
        engine.close()
        ```
    """

    def __init__(self, pool: ThreadedConnectionPool) -> None:
        """
        Initialize the engine.

        Args:
            pool: Connection pool owned by this engine
        """
        self._pool = pool

    @classmethod
    def from_settings(cls, settings: EngineSettings | None = None) -> "PostgresEngine":
        """
        Create an engine from settings (``PGVS_*`` environment by default).

        Args:
            settings: Engine settings

        Returns:
            PostgresEngine with an open pool

        Raises:
            ExecutionError: If the pool cannot be opened
        """
        settings = settings or EngineSettings()
        try:
            pool = ThreadedConnectionPool(
                settings.min_connections,
                settings.max_connections,
                **settings.connection_kwargs(),
            )
        except psycopg2.Error as e:
            logger.error("Failed to open connection pool: {}", e)
            raise ExecutionError(f"Failed to open connection pool: {e}") from e

        logger.info(
            "Connection pool opened (min={}, max={})",
            settings.min_connections,
            settings.max_connections
        )
        return cls(pool)

    @classmethod
    def from_dsn(cls, dsn: str, *, min_connections: int = 1, max_connections: int = 10) -> "PostgresEngine":
        """Create an engine from a libpq connection string."""
        return cls.from_settings(
            EngineSettings(dsn=dsn, min_connections=min_connections, max_connections=max_connections)
        )

    def execute(
        self,
        query: str,
        params: Params = None,
        *,
        setup: Sequence[str] = (),
        autocommit: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Execute a statement and return its rows.

        Args:
            query: SQL with ``%s`` placeholders
            params: Bound parameters
            setup: Statements run first on the same connection and transaction
            autocommit: Run outside a transaction (needed for CONCURRENTLY)

        Returns:
            Rows as dictionaries; empty list for statements without a result

        Raises:
            ExecutionError: If the database reports a failure
        """
        conn = self._pool.getconn()
        try:
            conn.autocommit = autocommit
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                for statement in setup:
                    cursor.execute(statement)
                cursor.execute(query, params)
                rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
            if not autocommit:
                conn.commit()
            return rows
        except psycopg2.Error as e:
            if not autocommit and not conn.closed:
                conn.rollback()
            logger.error("Query failed: {}", e)
            raise ExecutionError(f"Query failed: {e}") from e
        finally:
            if not conn.closed:
                conn.autocommit = False
            self._pool.putconn(conn)

    def stream(
        self,
        query: str,
        params: Params = None,
        *,
        batch_size: int = 1000,
    ) -> Iterator[dict[str, Any]]:
        """
        Yield rows from a server-side cursor.

        The cursor stays open until the generator is exhausted or closed.

        Args:
            query: SQL with ``%s`` placeholders
            params: Bound parameters
            batch_size: Rows fetched per network round trip

        Yields:
            Rows as dictionaries

        Raises:
            ExecutionError: If the database reports a failure
        """
        conn = self._pool.getconn()
        try:
            with conn.cursor(name=f"pgvs_{uuid4().hex}", cursor_factory=RealDictCursor) as cursor:
                cursor.itersize = batch_size
                cursor.execute(query, params)
                for row in cursor:
                    yield dict(row)
            conn.commit()
        except psycopg2.Error as e:
            if not conn.closed:
                conn.rollback()
            logger.error("Streaming query failed: {}", e)
            raise ExecutionError(f"Streaming query failed: {e}") from e
        finally:
            self._pool.putconn(conn)

    def init_vectorstore_table(
        self,
        table_name: str,
        vector_size: int,
        *,
        schema_name: str = "public",
        content_column: str = "content",
        embedding_column: str = "embedding",
        metadata_columns: Sequence[Column] = (),
        metadata_json_column: str = "metadata",
        id_column: Union[str, Column] = "id",
        overwrite_existing: bool = False,
        store_metadata: bool = True,
    ) -> None:
        """
        Create a table suitable for :class:`PostgresVectorStore`.

        Args:
            table_name: Table to create
            vector_size: Embedding dimension
            schema_name: Database schema
            content_column: Text column name
            embedding_column: Vector column name
            metadata_columns: Extra typed metadata columns
            metadata_json_column: JSON column for remaining metadata
            id_column: Id column name (UUID) or full column definition
            overwrite_existing: Drop the table first if it exists
            store_metadata: Whether to create the JSON metadata column

        Raises:
            ExecutionError: If a statement fails
        """
        self.execute("CREATE EXTENSION IF NOT EXISTS vector")

        statements = build_create_table(
            table_name,
            vector_size,
            schema_name=schema_name,
            content_column=content_column,
            embedding_column=embedding_column,
            metadata_columns=[(c.name, c.data_type, c.nullable) for c in metadata_columns],
            metadata_json_column=metadata_json_column if store_metadata else None,
            id_column=(
                (id_column.name, id_column.data_type)
                if isinstance(id_column, Column)
                else (id_column, "UUID")
            ),
            overwrite_existing=overwrite_existing,
        )
        for statement in statements:
            self.execute(statement)

        logger.info("Initialized vector store table {}.{}", schema_name, table_name)

    def close(self) -> None:
        """Close every connection in the pool."""
        self._pool.closeall()
        logger.debug("Connection pool closed")
