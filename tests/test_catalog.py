"""Tests for table introspection and column role resolution."""

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from pg_vectorstore.catalog import DESCRIBE_TABLE_SQL, TableSchema, describe_table
from pg_vectorstore.columns import check_metadata_options, resolve_columns
from pg_vectorstore.exceptions import ConfigurationError


def make_schema(**columns: str) -> TableSchema:
    return TableSchema(table_name="docs", schema_name="public", columns=columns)


class TestDescribeTable:
    """Test reading the catalog."""

    def test_describe_table(self):
        """Test that rows become an ordered column mapping."""
        executor = MagicMock()
        executor.execute.return_value = [
            {"column_name": "id", "data_type": "uuid"},
            {"column_name": "content", "data_type": "text"},
            {"column_name": "embedding", "data_type": "USER-DEFINED"},
        ]

        schema = describe_table(executor, "docs", "library")

        executor.execute.assert_called_once_with(DESCRIBE_TABLE_SQL, ("docs", "library"))
        assert list(schema.columns) == ["id", "content", "embedding"]
        assert schema.type_of("embedding") == "USER-DEFINED"
        assert schema.schema_name == "library"
        assert "content" in schema
        assert schema.exists

    def test_describe_missing_table(self):
        """Test that an unknown table yields an empty schema."""
        executor = MagicMock()
        executor.execute.return_value = []

        schema = describe_table(executor, "missing")

        assert not schema.exists
        assert schema.type_of("id") is None

    def test_schema_is_immutable(self):
        """Test that the snapshot cannot be reassigned."""
        schema = make_schema(id="text")

        with pytest.raises(ValidationError):
            schema.table_name = "other"


class TestResolveColumns:
    """Test column role resolution."""

    def setup_method(self):
        """Set up test fixtures."""
        self.schema = make_schema(
            id="uuid",
            content="text",
            embedding="USER-DEFINED",
            page="integer",
            source="character varying",
            metadata="json",
        )

    def resolve(self, **overrides):
        options = {
            "id_column": "id",
            "content_column": "content",
            "embedding_column": "embedding",
        }
        options.update(overrides)
        return resolve_columns(self.schema, **options)

    def test_explicit_metadata_columns(self):
        """Test that explicit columns are kept in the given order."""
        mapping = self.resolve(metadata_columns=["source", "page"], metadata_json_column="metadata")

        assert mapping.metadata_columns == ("source", "page")
        assert mapping.metadata_json_column == "metadata"
        assert mapping.projection == ["id", "content", "embedding", "source", "page", "metadata"]

    def test_no_metadata_columns(self):
        """Test that metadata columns default to none."""
        mapping = self.resolve()

        assert mapping.metadata_columns == ()
        assert mapping.ignore_metadata_columns is None

    def test_ignore_metadata_columns(self):
        """Test that ignore mode keeps schema order and skips role columns."""
        mapping = self.resolve(ignore_metadata_columns=["page"], metadata_json_column="metadata")

        assert mapping.metadata_columns == ("source",)

    def test_ignore_unknown_column_is_harmless(self):
        """Test that ignored names absent from the schema are skipped."""
        mapping = self.resolve(ignore_metadata_columns=["nope"])

        assert mapping.metadata_columns == ("page", "source", "metadata")

    def test_both_metadata_options(self):
        """Test that metadata and ignore columns are exclusive."""
        with pytest.raises(ConfigurationError, match="Can not use both"):
            self.resolve(metadata_columns=["page"], ignore_metadata_columns=["source"])

    def test_check_metadata_options_allows_one(self):
        """Test that one option alone is accepted."""
        check_metadata_options(["page"], None)
        check_metadata_options(None, ["page"])
        check_metadata_options(None, None)

    def test_missing_metadata_column(self):
        """Test the message for a missing metadata column."""
        with pytest.raises(ConfigurationError) as exc_info:
            self.resolve(metadata_columns=["nonexistent"])

        assert str(exc_info.value) == (
            "Metadata column: nonexistent, does not exist in public.docs. "
            "Known columns: ['id', 'content', 'embedding', 'page', 'source', 'metadata']"
        )

    def test_id_checked_before_content(self):
        """Test that the id column is validated first."""
        with pytest.raises(ConfigurationError, match="Id column"):
            self.resolve(id_column="nope", content_column="nope")

    def test_content_type_checked_before_embedding(self):
        """Test that the content type is validated before the embedding column."""
        with pytest.raises(ConfigurationError, match="Content column: page, is type: integer"):
            self.resolve(content_column="page", embedding_column="nope")

    def test_character_varying_content(self):
        """Test that varchar content is accepted."""
        assert self.resolve(content_column="source").content_column == "source"

    def test_embedding_must_be_vector(self):
        """Test that the embedding type is checked."""
        with pytest.raises(ConfigurationError, match="Embedding column: page, is type: integer"):
            self.resolve(embedding_column="page")

    def test_unknown_json_column_is_dropped(self):
        """Test that a missing JSON column disables JSON metadata."""
        mapping = self.resolve(metadata_json_column="extra")

        assert mapping.metadata_json_column is None
