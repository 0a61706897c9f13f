"""Distance strategies, vector index definitions and search-time query options.

The distance strategy decides three things at once: the pgvector operator
used in ``ORDER BY``, the scalar function used to report the distance, and
the operator class an index must be built with for the planner to use it.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar, Optional

from pydantic import BaseModel, Field


class DistanceStrategy(Enum):
    """Distance metrics supported by pgvector."""

    EUCLIDEAN = ("<->", "l2_distance", "vector_l2_ops")
    COSINE_DISTANCE = ("<=>", "cosine_distance", "vector_cosine_ops")
    INNER_PRODUCT = ("<#>", "inner_product", "vector_ip_ops")

    def __init__(self, operator: str, search_function: str, index_function: str) -> None:
        self.operator = operator
        self.search_function = search_function
        self.index_function = index_function


DEFAULT_DISTANCE_STRATEGY = DistanceStrategy.COSINE_DISTANCE
DEFAULT_INDEX_NAME_SUFFIX = "vector_index"


class BaseIndex(BaseModel):
    """Base definition of a vector index.

    Attributes:
        name: Index name (defaults to ``<table>_vector_index``)
        distance_strategy: Metric the index is built for
        partial_indexes: Optional predicates for a partial index
    """

    index_type: ClassVar[str] = "base"

    name: Optional[str] = Field(default=None, description="Index name")
    distance_strategy: DistanceStrategy = Field(
        default=DEFAULT_DISTANCE_STRATEGY,
        description="Distance strategy the index operator class is derived from"
    )
    partial_indexes: Optional[list[str]] = Field(
        default=None,
        description="Predicates restricting the indexed rows"
    )

    def index_options(self) -> str:
        """Render the ``WITH (...)`` storage parameters of the index."""
        raise NotImplementedError("index_options must be implemented by subclasses")


class ExactNearestNeighbor(BaseIndex):
    """No index: every search is an exact sequential scan."""

    index_type: ClassVar[str] = "exactnearestneighbor"

    def index_options(self) -> str:
        return ""


class HNSWIndex(BaseIndex):
    """Hierarchical navigable small world graph index."""

    index_type: ClassVar[str] = "hnsw"

    m: int = Field(default=16, ge=2, le=100, description="Max connections per layer")
    ef_construction: int = Field(
        default=64,
        ge=4,
        le=1000,
        description="Size of the dynamic candidate list during build"
    )

    def index_options(self) -> str:
        return f"(m = {self.m}, ef_construction = {self.ef_construction})"


class IVFFlatIndex(BaseIndex):
    """Inverted file index with flat (uncompressed) lists."""

    index_type: ClassVar[str] = "ivfflat"

    lists: int = Field(default=100, ge=1, le=32768, description="Number of inverted lists")

    def index_options(self) -> str:
        return f"(lists = {self.lists})"


class QueryOptions(BaseModel):
    """Search-time tunables applied with ``SET LOCAL`` before a query."""

    def to_string(self) -> str:
        raise NotImplementedError("to_string must be implemented by subclasses")


class HNSWQueryOptions(QueryOptions):
    """Query options for HNSW indexes."""

    ef_search: int = Field(default=40, ge=1, le=1000, description="Candidate list size at search time")

    def to_string(self) -> str:
        return f"hnsw.ef_search = {self.ef_search}"


class IVFFlatQueryOptions(QueryOptions):
    """Query options for IVFFlat indexes."""

    probes: int = Field(default=1, ge=1, description="Number of lists to probe")

    def to_string(self) -> str:
        return f"ivfflat.probes = {self.probes}"
