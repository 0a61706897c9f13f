"""Vector store over an existing PostgreSQL table with a pgvector column.

This module provides the PostgresVectorStore class. It validates a
user-defined table against the id/content/embedding/metadata roles once, at
creation, and then stores and searches documents with parameterized SQL.
Distances are computed by pgvector; maximal marginal relevance re-ranking
runs in Python over the fetched candidates.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Optional, Sequence
from uuid import uuid4

from loguru import logger
from pydantic import ValidationError

from .catalog import describe_table
from .columns import ColumnMapping, check_metadata_options, resolve_columns
from .config import VectorStoreConfig
from .documents import Document
from .exceptions import ArityMismatchError, ConfigurationError, ExecutionError
from .indexes import DEFAULT_INDEX_NAME_SUFFIX, BaseIndex, ExactNearestNeighbor
from .mmr import maximal_marginal_relevance
from .queries import (
    build_create_index,
    build_delete,
    build_drop_index,
    build_index_lookup,
    build_insert,
    build_reindex,
    build_select,
    parse_vector,
    qualified_table,
)

if TYPE_CHECKING:
    from .database import QueryExecutor
    from .embeddings import Embeddings


class PostgresVectorStore:
    """Similarity search over a PostgreSQL table.

    Instances are created through :meth:`create` (or
    :func:`create_vector_store`), which introspects the table and fails with
    ConfigurationError before any instance exists. The resolved column
    mapping never changes afterwards, so one store can serve concurrent
    callers as long as the executor can.

    Example:
        ```python
        from pg_vectorstore import PostgresEngine, PostgresVectorStore, HashingEmbeddings

        engine = PostgresEngine.from_dsn("postgresql://localhost/db")
        store = PostgresVectorStore.create(
            engine,
            HashingEmbeddings(dimension=128),
            "docs",
            metadata_columns=["page", "source"],
        )

        ids = store.add_texts(["foo", "bar"], metadatas=[{"page": 0}, {"page": 1}])
        for doc, distance in store.similarity_search("foo", k=1):
            print(doc.content, distance)
        ```

    Attributes:
        table_name: Table holding the documents
        config: Store options
        mapping: Resolved column mapping
    """

    def __init__(
        self,
        engine: QueryExecutor,
        embedding_service: Embeddings,
        table_name: str,
        config: VectorStoreConfig,
        mapping: ColumnMapping,
    ) -> None:
        """Initialize from an already validated mapping.

        Use :meth:`create` instead; it performs the validation.
        """
        self._engine = engine
        self._embeddings = embedding_service
        self.table_name = table_name
        self.config = config
        self.mapping = mapping
        self._table = qualified_table(config.schema_name, table_name)

        logger.debug(
            "PostgresVectorStore ready (table={}, strategy={})",
            self._table,
            config.distance_strategy.name
        )

    @classmethod
    def create(
        cls,
        engine: QueryExecutor,
        embedding_service: Embeddings,
        table_name: str,
        config: VectorStoreConfig | None = None,
        **options: Any,
    ) -> "PostgresVectorStore":
        """
        Validate a table and return a store bound to it.

        Args:
            engine: Query executor, usually a PostgresEngine
            embedding_service: Text embedding service
            table_name: Existing table name
            config: Store options
            **options: VectorStoreConfig fields, applied on top of ``config``

        Returns:
            Ready PostgresVectorStore

        Raises:
            ConfigurationError: If options are invalid or the table does not match them
            ExecutionError: If the table cannot be introspected
        """
        try:
            if config is None:
                config = VectorStoreConfig(**options)
            elif options:
                config = VectorStoreConfig(**{**dict(config), **options})
        except ValidationError as e:
            logger.error("Invalid vector store options: {}", e)
            raise ConfigurationError(f"Invalid vector store options: {e}") from e

        check_metadata_options(config.metadata_columns, config.ignore_metadata_columns)

        schema = describe_table(engine, table_name, config.schema_name)
        mapping = resolve_columns(
            schema,
            id_column=config.id_column,
            content_column=config.content_column,
            embedding_column=config.embedding_column,
            metadata_columns=config.metadata_columns,
            ignore_metadata_columns=config.ignore_metadata_columns,
            metadata_json_column=config.metadata_json_column,
        )
        return cls(engine, embedding_service, table_name, config, mapping)

    @property
    def embeddings(self) -> Embeddings:
        """Embedding service used for documents and queries."""
        return self._embeddings

    # =========================================================================
    # Writes
    # =========================================================================

    def add_vectors(
        self,
        vectors: Sequence[Sequence[float]],
        documents: Sequence[Document],
        ids: Optional[Sequence[Optional[str]]] = None,
    ) -> list[str]:
        """
        Store precomputed embeddings with their documents.

        Rows are inserted one statement at a time. The batch is not atomic:
        if a row fails, the rows before it stay committed.

        Args:
            vectors: One embedding per document
            documents: Documents to store
            ids: Optional ids; missing entries are generated

        Returns:
            Ids of the stored rows, in input order

        Raises:
            ArityMismatchError: If the counts disagree
            ExecutionError: If an insert fails
        """
        if len(vectors) != len(documents):
            raise ArityMismatchError(
                f"Got {len(vectors)} vectors for {len(documents)} documents"
            )
        if ids is not None and len(ids) != len(documents):
            raise ArityMismatchError(
                f"Got {len(ids)} ids for {len(documents)} documents"
            )

        resolved_ids = [
            str(doc_id) if doc_id else str(uuid4())
            for doc_id in (ids if ids is not None else [None] * len(documents))
        ]

        for position, (doc_id, document, vector) in enumerate(
            zip(resolved_ids, documents, vectors)
        ):
            statement = build_insert(
                self._table,
                self.mapping,
                doc_id,
                document.content,
                vector,
                document.metadata,
            )
            try:
                self._engine.execute(statement.sql, statement.params)
            except ExecutionError:
                logger.error(
                    "Insert failed after {} of {} rows in {}",
                    position,
                    len(documents),
                    self._table
                )
                raise

        logger.info("Added {} documents to {}", len(resolved_ids), self._table)
        return resolved_ids

    def add_documents(
        self,
        documents: Sequence[Document],
        ids: Optional[Sequence[Optional[str]]] = None,
    ) -> list[str]:
        """
        Embed documents in one batch call and store them.

        When ``ids`` is not given, each document's own ``id`` is used
        (generated when empty).

        Raises:
            ArityMismatchError: If ``ids`` does not match the document count
            ExecutionError: If an insert fails
        """
        if ids is not None and len(ids) != len(documents):
            raise ArityMismatchError(
                f"Got {len(ids)} ids for {len(documents)} documents"
            )
        if not documents:
            return []

        if ids is None:
            ids = [document.id for document in documents]

        vectors = self._embeddings.embed_documents([d.content for d in documents])
        return self.add_vectors(vectors, documents, ids)

    def add_texts(
        self,
        texts: Sequence[str],
        metadatas: Optional[Sequence[dict[str, Any]]] = None,
        ids: Optional[Sequence[Optional[str]]] = None,
    ) -> list[str]:
        """Store plain texts with optional metadata."""
        if metadatas is not None and len(metadatas) != len(texts):
            raise ArityMismatchError(
                f"Got {len(metadatas)} metadatas for {len(texts)} texts"
            )
        documents = [
            Document(content=text, metadata=dict(metadatas[i]) if metadatas else {})
            for i, text in enumerate(texts)
        ]
        return self.add_documents(documents, ids)

    def delete(self, ids: Optional[Sequence[str]] = None) -> None:
        """
        Delete rows by id.

        An empty or missing id list deletes nothing.

        Raises:
            ExecutionError: If the delete fails
        """
        statement = build_delete(self._table, self.mapping, ids)
        if statement is None:
            logger.debug("Delete called without ids; nothing to do")
            return

        self._engine.execute(statement.sql, statement.params)
        logger.debug("Deleted up to {} rows from {}", len(statement.params[0]), self._table)

    # =========================================================================
    # Search
    # =========================================================================

    def similarity_search(
        self,
        query: str,
        k: int | None = None,
        filter: str | None = None,
    ) -> list[tuple[Document, float]]:
        """
        Nearest documents to a text query.

        Args:
            query: Query text
            k: Maximum number of results (config default when omitted)
            filter: Raw SQL predicate for the WHERE clause (trusted input only)

        Returns:
            (document, distance) pairs, nearest first

        Raises:
            ExecutionError: If the query fails
        """
        embedding = self._embeddings.embed_query(query)
        return self.similarity_search_by_vector(embedding, k=k, filter=filter)

    def similarity_search_by_vector(
        self,
        embedding: Sequence[float],
        k: int | None = None,
        filter: str | None = None,
    ) -> list[tuple[Document, float]]:
        """Nearest documents to an embedding, as (document, distance) pairs."""
        if k is None:
            k = self.config.k
        rows = self._query(embedding, k, filter)
        return [(self._row_to_document(row), float(row["distance"])) for row in rows]

    def max_marginal_relevance_search(
        self,
        query: str,
        k: int | None = None,
        fetch_k: int | None = None,
        lambda_mult: float | None = None,
        filter: str | None = None,
    ) -> list[Document]:
        """
        Relevant and mutually diverse documents for a text query.

        Fetches ``fetch_k`` nearest candidates, then keeps ``k`` of them
        chosen by maximal marginal relevance, in selection order.

        Args:
            query: Query text
            k: Number of documents to return
            fetch_k: Number of candidates to fetch
            lambda_mult: 1 is pure relevance, 0 is maximum diversity
            filter: Raw SQL predicate for the WHERE clause

        Returns:
            Selected documents
        """
        embedding = self._embeddings.embed_query(query)
        return self.max_marginal_relevance_search_by_vector(
            embedding,
            k=k,
            fetch_k=fetch_k,
            lambda_mult=lambda_mult,
            filter=filter,
        )

    def max_marginal_relevance_search_by_vector(
        self,
        embedding: Sequence[float],
        k: int | None = None,
        fetch_k: int | None = None,
        lambda_mult: float | None = None,
        filter: str | None = None,
    ) -> list[Document]:
        """Maximal marginal relevance search from an embedding."""
        if k is None:
            k = self.config.k
        if fetch_k is None:
            fetch_k = self.config.fetch_k
        if lambda_mult is None:
            lambda_mult = self.config.lambda_mult

        rows = self._query(embedding, fetch_k, filter)
        candidates = [parse_vector(row[self.mapping.embedding_column]) for row in rows]
        selected = maximal_marginal_relevance(embedding, candidates, lambda_mult, k)

        logger.debug(
            "MMR selected {} of {} candidates (lambda={})",
            len(selected),
            len(rows),
            lambda_mult
        )
        return [self._row_to_document(rows[i]) for i in selected]

    def _query(
        self,
        embedding: Sequence[float],
        k: int,
        filter: str | None,
    ) -> list[dict[str, Any]]:
        query = build_select(
            self._table,
            self.mapping,
            self.config.distance_strategy,
            embedding,
            k,
            filter=filter,
            query_options=self.config.index_query_options,
        )
        return self._engine.execute(query.sql, query.params, setup=query.setup)

    def _row_to_document(self, row: dict[str, Any]) -> Document:
        """Merge JSON metadata and metadata columns back into one mapping."""
        metadata: dict[str, Any] = {}

        json_column = self.mapping.metadata_json_column
        if json_column:
            value = row.get(json_column)
            if isinstance(value, (str, bytes)):
                value = json.loads(value)
            if value:
                metadata.update(value)

        for column in self.mapping.metadata_columns:
            metadata[column] = row.get(column)

        return Document(
            id=str(row[self.mapping.id_column]),
            content=row[self.mapping.content_column],
            metadata=metadata,
        )

    # =========================================================================
    # Index management
    # =========================================================================

    def _index_name(self, name: str | None) -> str:
        return name or f"{self.table_name}_{DEFAULT_INDEX_NAME_SUFFIX}"

    def apply_vector_index(
        self,
        index: BaseIndex,
        name: str | None = None,
        *,
        concurrently: bool = False,
    ) -> None:
        """
        Create a vector index on the embedding column.

        Applying ExactNearestNeighbor drops the index instead.

        Args:
            index: Index definition
            name: Index name (defaults to the index's name, then ``<table>_vector_index``)
            concurrently: Build without locking writes (runs outside a transaction)

        Raises:
            ExecutionError: If the DDL fails
        """
        if isinstance(index, ExactNearestNeighbor):
            self.drop_vector_index(name or index.name)
            return

        index_name = self._index_name(name or index.name)
        sql = build_create_index(
            self._table,
            self.mapping.embedding_column,
            index,
            index_name,
            concurrently=concurrently,
        )
        self._engine.execute(sql, autocommit=concurrently)
        logger.info("Created {} index {} on {}", index.index_type, index_name, self._table)

    def reindex(self, name: str | None = None) -> None:
        """Rebuild the vector index."""
        index_name = self._index_name(name)
        self._engine.execute(build_reindex(self.config.schema_name, index_name))
        logger.info("Reindexed {}", index_name)

    def drop_vector_index(self, name: str | None = None) -> None:
        """Drop the vector index if it exists."""
        index_name = self._index_name(name)
        self._engine.execute(build_drop_index(self.config.schema_name, index_name))
        logger.info("Dropped index {}", index_name)

    def is_valid_index(self, name: str | None = None) -> bool:
        """Check whether the vector index exists on the table."""
        statement = build_index_lookup(
            self.config.schema_name,
            self.table_name,
            self._index_name(name),
        )
        return bool(self._engine.execute(statement.sql, statement.params))


def create_vector_store(
    engine: QueryExecutor,
    embedding_service: Embeddings,
    table_name: str,
    **options: Any,
) -> PostgresVectorStore:
    """Factory function to create a validated PostgresVectorStore.

    Args:
        engine: Query executor
        embedding_service: Text embedding service
        table_name: Existing table name
        **options: VectorStoreConfig fields

    Returns:
        Ready PostgresVectorStore

    Example:
        ```python
        store = create_vector_store(engine, embeddings, "docs", metadata_columns=["page"])
        ```
    """
    return PostgresVectorStore.create(engine, embedding_service, table_name, **options)
