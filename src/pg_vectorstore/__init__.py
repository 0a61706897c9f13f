"""pg-vectorstore: document storage and similarity search on PostgreSQL with pgvector."""

from .catalog import TableSchema, describe_table
from .columns import ColumnMapping, resolve_columns
from .config import EngineSettings, VectorStoreConfig
from .database import Column, PostgresEngine, QueryExecutor
from .documents import Document
from .embeddings import (
    EmbeddingConfig,
    Embeddings,
    HashingEmbeddings,
    SentenceTransformerEmbeddings,
)
from .exceptions import (
    ArityMismatchError,
    ConfigurationError,
    EmbeddingError,
    EncodingError,
    ExecutionError,
    ModelLoadError,
    VectorStoreError,
)
from .indexes import (
    DEFAULT_DISTANCE_STRATEGY,
    BaseIndex,
    DistanceStrategy,
    ExactNearestNeighbor,
    HNSWIndex,
    HNSWQueryOptions,
    IVFFlatIndex,
    IVFFlatQueryOptions,
    QueryOptions,
)
from .loader import PostgresLoader
from .logging import setup_logging
from .mmr import maximal_marginal_relevance
from .vector_store import PostgresVectorStore, create_vector_store

__version__ = "0.1.0"

__all__ = [
    "ArityMismatchError",
    "BaseIndex",
    "Column",
    "ColumnMapping",
    "ConfigurationError",
    "DEFAULT_DISTANCE_STRATEGY",
    "DistanceStrategy",
    "Document",
    "EmbeddingConfig",
    "EmbeddingError",
    "Embeddings",
    "EncodingError",
    "EngineSettings",
    "ExactNearestNeighbor",
    "ExecutionError",
    "HNSWIndex",
    "HNSWQueryOptions",
    "HashingEmbeddings",
    "IVFFlatIndex",
    "IVFFlatQueryOptions",
    "ModelLoadError",
    "PostgresEngine",
    "PostgresLoader",
    "PostgresVectorStore",
    "QueryExecutor",
    "QueryOptions",
    "SentenceTransformerEmbeddings",
    "TableSchema",
    "VectorStoreConfig",
    "VectorStoreError",
    "create_vector_store",
    "describe_table",
    "maximal_marginal_relevance",
    "resolve_columns",
    "setup_logging",
]
