"""Exception hierarchy for the Postgres vector store."""


class VectorStoreError(Exception):
    """Base exception for vector store errors."""
    pass


class ConfigurationError(VectorStoreError):
    """Raised when the table schema or store options are invalid."""
    pass


class ArityMismatchError(VectorStoreError):
    """Raised when ids, vectors and documents counts disagree."""
    pass


class ExecutionError(VectorStoreError):
    """Raised when the query executor reports a failure.

    The driver exception is always chained as ``__cause__``.
    """
    pass


class EmbeddingError(VectorStoreError):
    """Base exception for embedding service errors."""
    pass


class ModelLoadError(EmbeddingError):
    """Raised when model loading fails."""
    pass


class EncodingError(EmbeddingError):
    """Raised when text encoding fails."""
    pass
