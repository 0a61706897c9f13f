"""Configuration management for pg-vectorstore."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .indexes import DEFAULT_DISTANCE_STRATEGY, DistanceStrategy, QueryOptions


class EngineSettings(BaseSettings):
    """Connection and logging settings, read from ``PGVS_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PGVS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    database: str = Field(default="postgres", description="Database name")
    user: str = Field(default="postgres", description="Database user")
    password: SecretStr = Field(default=SecretStr(""), description="Database password")
    dsn: Optional[str] = Field(
        default=None,
        description="Full libpq connection string; overrides the discrete fields"
    )
    min_connections: int = Field(default=1, ge=1, description="Connections kept open")
    max_connections: int = Field(default=10, ge=1, description="Upper bound of the pool")
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[Path] = Field(default=None, description="Directory for rotating log files")

    def connection_kwargs(self) -> dict[str, object]:
        """
        Build the keyword arguments handed to psycopg2.

        Returns:
            Dictionary with either ``dsn`` or discrete connection fields
        """
        if self.dsn:
            return {"dsn": self.dsn}
        kwargs: dict[str, object] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
        }
        if self.password.get_secret_value():
            kwargs["password"] = self.password.get_secret_value()
        return kwargs


class VectorStoreConfig(BaseModel):
    """Options for a vector store over an existing table.

    Attributes:
        schema_name: Database schema of the table
        id_column: Column holding the document id
        content_column: Column holding the document text
        embedding_column: Column of pgvector type holding the embedding
        metadata_columns: Columns mapped one to one onto metadata keys
        ignore_metadata_columns: Columns excluded when every other column is metadata
        metadata_json_column: JSON column for metadata not covered by columns
        distance_strategy: Metric used for search
        k: Default number of results for search
        fetch_k: Default number of candidates passed to MMR
        lambda_mult: Default MMR diversity parameter
        index_query_options: Search-time index tunables
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_name: str = Field(default="public", description="Database schema name")
    id_column: str = Field(default="id", description="Id column name")
    content_column: str = Field(default="content", description="Content column name")
    embedding_column: str = Field(default="embedding", description="Embedding column name")
    metadata_columns: Optional[list[str]] = Field(
        default=None,
        description="Explicit metadata columns"
    )
    ignore_metadata_columns: Optional[list[str]] = Field(
        default=None,
        description="Columns to leave out when all remaining columns are metadata"
    )
    metadata_json_column: Optional[str] = Field(
        default="metadata",
        description="JSON column holding the remaining metadata"
    )
    distance_strategy: DistanceStrategy = Field(
        default=DEFAULT_DISTANCE_STRATEGY,
        description="Distance strategy for similarity search"
    )
    k: int = Field(default=4, ge=1, description="Default number of search results")
    fetch_k: int = Field(default=20, ge=1, description="Default number of MMR candidates")
    lambda_mult: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="MMR diversity: 0 is maximum diversity, 1 is minimum"
    )
    index_query_options: Optional[QueryOptions] = Field(
        default=None,
        description="Index query options applied before each search"
    )

    @field_validator("schema_name", "id_column", "content_column", "embedding_column")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Validate that identifiers are not empty."""
        if not v or not v.strip():
            raise ValueError("Identifier cannot be empty")
        return v
