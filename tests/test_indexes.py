"""Tests for distance strategies, index definitions and query options."""

import pytest
from pydantic import ValidationError

from pg_vectorstore.indexes import (
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


class TestDistanceStrategy:
    """Test the distance strategy registry."""

    @pytest.mark.parametrize("strategy,operator,function,index_function", [
        (DistanceStrategy.EUCLIDEAN, "<->", "l2_distance", "vector_l2_ops"),
        (DistanceStrategy.COSINE_DISTANCE, "<=>", "cosine_distance", "vector_cosine_ops"),
        (DistanceStrategy.INNER_PRODUCT, "<#>", "inner_product", "vector_ip_ops"),
    ])
    def test_strategy_fields(self, strategy, operator, function, index_function):
        """Test the SQL pieces carried by each strategy."""
        assert strategy.operator == operator
        assert strategy.search_function == function
        assert strategy.index_function == index_function

    def test_default_is_cosine(self):
        """Test the default strategy."""
        assert DEFAULT_DISTANCE_STRATEGY is DistanceStrategy.COSINE_DISTANCE

    def test_lookup_by_name(self):
        """Test that strategies resolve by name."""
        assert DistanceStrategy["EUCLIDEAN"] is DistanceStrategy.EUCLIDEAN


class TestIndexes:
    """Test index definitions."""

    def test_hnsw_defaults(self):
        """Test HNSW defaults."""
        index = HNSWIndex()

        assert index.index_type == "hnsw"
        assert index.index_options() == "(m = 16, ef_construction = 64)"
        assert index.distance_strategy is DistanceStrategy.COSINE_DISTANCE

    def test_hnsw_custom(self):
        """Test HNSW parameters."""
        assert HNSWIndex(m=32, ef_construction=128).index_options() == "(m = 32, ef_construction = 128)"

    def test_hnsw_rejects_invalid_m(self):
        """Test HNSW validation."""
        with pytest.raises(ValidationError):
            HNSWIndex(m=1)

    def test_ivfflat(self):
        """Test IVFFlat options."""
        index = IVFFlatIndex(lists=50)

        assert index.index_type == "ivfflat"
        assert index.index_options() == "(lists = 50)"

    def test_exact_nearest_neighbor_has_no_options(self):
        """Test the no-index definition."""
        assert ExactNearestNeighbor().index_options() == ""

    def test_base_index_is_abstract(self):
        """Test that the base definition renders nothing."""
        with pytest.raises(NotImplementedError):
            BaseIndex().index_options()


class TestQueryOptions:
    """Test search-time query options."""

    def test_hnsw_query_options(self):
        """Test HNSW query options."""
        assert HNSWQueryOptions().to_string() == "hnsw.ef_search = 40"
        assert HNSWQueryOptions(ef_search=100).to_string() == "hnsw.ef_search = 100"

    def test_ivfflat_query_options(self):
        """Test IVFFlat query options."""
        assert IVFFlatQueryOptions().to_string() == "ivfflat.probes = 1"
        assert IVFFlatQueryOptions(probes=8).to_string() == "ivfflat.probes = 8"

    def test_base_query_options_is_abstract(self):
        """Test that the base options render nothing."""
        with pytest.raises(NotImplementedError):
            QueryOptions().to_string()
