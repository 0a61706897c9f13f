"""Embedding services consumed by the vector store.

Any object with ``embed_documents`` and ``embed_query`` can back a store.
Two implementations ship with the package:

- SentenceTransformerEmbeddings: wraps a sentence-transformers model
  (all-MiniLM-L6-v2 by default, 384 dimensions), loaded lazily
- HashingEmbeddings: deterministic token-hashing vectors with no model,
  for tests and offline use
"""

from __future__ import annotations

import hashlib
import math
import re
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, Sequence, runtime_checkable

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from .exceptions import EncodingError, ModelLoadError

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


@runtime_checkable
class Embeddings(Protocol):
    """Capability turning text into vectors."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        ...

    def embed_query(self, text: str) -> list[float]:
        ...


class EmbeddingConfig(BaseModel):
    """Configuration for sentence-transformers embeddings.

    Attributes:
        model_name: Name of the sentence-transformers model to use
        max_seq_length: Maximum sequence length for input text
        normalize_embeddings: Whether to L2-normalize output embeddings
        batch_size: Batch size for document encoding
        show_progress: Whether to show progress bar during batch encoding
    """

    model_name: str = Field(
        default="all-MiniLM-L6-v2",
        description="Sentence-transformers model name"
    )
    max_seq_length: int = Field(
        default=256,
        ge=1,
        le=8192,
        description="Maximum sequence length for input text"
    )
    normalize_embeddings: bool = Field(
        default=True,
        description="Whether to L2-normalize embeddings for cosine similarity"
    )
    batch_size: int = Field(
        default=32,
        ge=1,
        le=1024,
        description="Batch size for encoding"
    )
    show_progress: bool = Field(
        default=False,
        description="Show progress bar during batch encoding"
    )

    @field_validator("model_name")
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        """Validate that model name is not empty."""
        if not v or not v.strip():
            raise ValueError("Model name cannot be empty")
        return v.strip()


class SentenceTransformerEmbeddings:
    """Embeddings computed by a sentence-transformers model.

    Example:
        ```python
        embeddings = SentenceTransformerEmbeddings()
        vectors = embeddings.embed_documents(["read file contents", "write to database"])
        query = embeddings.embed_query("open a file")
        ```

    Attributes:
        config: Embedding configuration
        model: Loaded sentence-transformers model (lazy loaded)
    """

    # Class-level cache for model instances
    _model_cache: ClassVar[dict[str, Any]] = {}

    def __init__(self, config: EmbeddingConfig | None = None, *, model_name: str | None = None) -> None:
        """Initialize embeddings.

        Args:
            config: Full configuration object (takes precedence)
            model_name: Model name override (if config not provided)
        """
        if config is not None:
            self.config = config
        else:
            self.config = EmbeddingConfig(model_name=model_name or "all-MiniLM-L6-v2")

        self._model: SentenceTransformer | None = None

    @property
    def model(self) -> "SentenceTransformer":
        """Get or load the sentence-transformers model.

        Raises:
            ModelLoadError: If model loading fails
        """
        if self._model is None:
            self._load_model()
        return self._model  # type: ignore

    def _load_model(self) -> None:
        model_name = self.config.model_name

        if model_name in self._model_cache:
            self._model = self._model_cache[model_name]
            logger.debug("Model '{}' loaded from cache", model_name)
            return

        try:
            logger.info("Loading sentence-transformers model: {}", model_name)

            # Import here to avoid import-time dependency
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(model_name)
            self._model.max_seq_length = self.config.max_seq_length
            self._model_cache[model_name] = self._model

            logger.info(
                "Model '{}' loaded successfully (dim={})",
                model_name,
                self._model.get_sentence_embedding_dimension()
            )

        except ImportError as e:
            logger.error("sentence-transformers not installed: {}", e)
            raise ModelLoadError(
                "sentence-transformers package not installed. "
                "Install with: pip install 'pg-vectorstore[embeddings]'"
            ) from e
        except Exception as e:
            logger.error("Failed to load model '{}': {}", model_name, e)
            raise ModelLoadError(f"Failed to load model '{model_name}': {e}") from e

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts in one model call.

        Args:
            texts: Input texts

        Returns:
            One vector per text, in input order

        Raises:
            EncodingError: If encoding fails
        """
        if not texts:
            return []

        try:
            vectors = self.model.encode(
                texts,
                normalize_embeddings=self.config.normalize_embeddings,
                batch_size=self.config.batch_size,
                show_progress_bar=self.config.show_progress,
            )
        except ModelLoadError:
            raise
        except Exception as e:
            logger.error("Failed to generate batch embeddings: {}", e)
            raise EncodingError(f"Failed to generate batch embeddings: {e}") from e

        logger.debug("Generated {} embeddings", len(texts))
        return [vector.tolist() for vector in vectors]

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query text.

        Raises:
            EncodingError: If encoding fails
        """
        try:
            vector = self.model.encode(
                text,
                normalize_embeddings=self.config.normalize_embeddings,
                show_progress_bar=False,
            )
        except ModelLoadError:
            raise
        except Exception as e:
            logger.error("Failed to generate embedding: {}", e)
            raise EncodingError(f"Failed to generate embedding: {e}") from e

        return vector.tolist()


class HashingEmbeddings:
    """Deterministic embeddings from hashed tokens.

    No model is involved: each token is hashed to a position and the
    resulting bag of tokens is L2-normalized. Equal texts always map to equal
    vectors, texts sharing no token are orthogonal.
    """

    def __init__(self, dimension: int = 128) -> None:
        if dimension < 1:
            raise ValueError("dimension must be a positive integer")
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        tokens = self._tokenize(text)
        embedding = [0.0] * self.dimension
        if not tokens:
            return embedding

        for token in tokens:
            token_hash = int(hashlib.md5(token.encode()).hexdigest(), 16)
            embedding[token_hash % self.dimension] += 1.0 / len(tokens)

        magnitude = math.sqrt(sum(x * x for x in embedding))
        return [x / magnitude for x in embedding]

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        return re.findall(r"\b[a-z0-9]+\b", (text or "").lower())


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Calculate cosine similarity between two embeddings.

    Args:
        a: First embedding vector
        b: Second embedding vector

    Returns:
        Cosine similarity score (-1 to 1, higher is more similar); 0 for zero vectors

    Raises:
        ValueError: If embeddings have different dimensions
    """
    if len(a) != len(b):
        raise ValueError(
            f"Embedding dimensions must match: {len(a)} != {len(b)}"
        )

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a) ** 0.5
    norm_b = sum(x * x for x in b) ** 0.5

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)
