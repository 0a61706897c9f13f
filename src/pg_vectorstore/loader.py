"""Load documents from a PostgreSQL table or query."""

from __future__ import annotations

import csv
import io
import json
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Sequence

import yaml
from loguru import logger

from .documents import Document
from .exceptions import ConfigurationError
from .queries import qualified_table

if TYPE_CHECKING:
    from .database import PostgresEngine

Formatter = Callable[[dict[str, Any], Sequence[str]], str]


def text_formatter(row: dict[str, Any], content_columns: Sequence[str]) -> str:
    """Join the content values with spaces."""
    return " ".join(str(row[column]) for column in content_columns if column in row)


def json_formatter(row: dict[str, Any], content_columns: Sequence[str]) -> str:
    """Render the content values as a JSON object."""
    return json.dumps(
        {column: row[column] for column in content_columns if column in row},
        default=str,
    )


def csv_formatter(row: dict[str, Any], content_columns: Sequence[str]) -> str:
    """Render the content values as one CSV line."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="")
    writer.writerow([row[column] for column in content_columns if column in row])
    return buffer.getvalue()


def yaml_formatter(row: dict[str, Any], content_columns: Sequence[str]) -> str:
    """Render the content values as a YAML mapping."""
    return yaml.safe_dump(
        {column: row[column] for column in content_columns if column in row},
        default_flow_style=False,
        sort_keys=False,
    ).rstrip("\n")


FORMATTERS: dict[str, Formatter] = {
    "text": text_formatter,
    "json": json_formatter,
    "csv": csv_formatter,
    "yaml": yaml_formatter,
}


class PostgresLoader:
    """Turn the rows of a table or query into documents.

    Example:
        ```python
        loader = PostgresLoader(
            engine,
            table_name="fruits",
            content_columns=["fruit_name", "variety"],
            metadata_columns=["fruit_id"],
        )
        for doc in loader.lazy_load():
            print(doc.content, doc.metadata)
        ```
    """

    def __init__(
        self,
        engine: PostgresEngine,
        *,
        table_name: str | None = None,
        schema_name: str = "public",
        query: str | None = None,
        content_columns: Optional[Sequence[str]] = None,
        metadata_columns: Optional[Sequence[str]] = None,
        metadata_json_column: str | None = None,
        format: str | None = None,
        formatter: Formatter | None = None,
    ) -> None:
        """
        Initialize the loader.

        Args:
            engine: Engine used to stream rows
            table_name: Table to read entirely
            schema_name: Schema of ``table_name``
            query: SELECT statement to read instead of a table
            content_columns: Columns rendered into the content (first column by default)
            metadata_columns: Columns copied into metadata (all others by default)
            metadata_json_column: JSON column whose object is merged into metadata
            format: Name of a built-in formatter: text, json, csv or yaml
            formatter: Custom ``(row, content_columns) -> str`` callable

        Raises:
            ConfigurationError: If the arguments conflict or name an unknown format
        """
        if table_name and query:
            raise ConfigurationError("Only one of 'table_name' or 'query' should be specified.")
        if not table_name and not query:
            raise ConfigurationError(
                "At least one of the parameters 'table_name' or 'query' needs to be provided"
            )
        if format is not None and formatter is not None:
            raise ConfigurationError("Only one of 'format' or 'formatter' should be specified.")
        if format is not None and format not in FORMATTERS:
            raise ConfigurationError(
                f"format must be one of: {', '.join(repr(f) for f in FORMATTERS)}"
            )

        self._engine = engine
        self.query = query or f"SELECT * FROM {qualified_table(schema_name, table_name or '')}"
        self.content_columns = list(content_columns) if content_columns else None
        self.metadata_columns = list(metadata_columns) if metadata_columns else None
        self.metadata_json_column = metadata_json_column
        self.formatter: Formatter = formatter or FORMATTERS[format or "text"]

    def _resolve_columns(self, row: dict[str, Any]) -> tuple[list[str], list[str]]:
        result_columns = list(row)
        content_columns = self.content_columns or result_columns[:1]
        metadata_columns = self.metadata_columns or [
            c for c in result_columns
            if c not in content_columns and c != self.metadata_json_column
        ]

        for column in [*content_columns, *metadata_columns]:
            if column not in row:
                raise ConfigurationError(
                    f"Column {column} not found in query result {result_columns}."
                )
        return content_columns, metadata_columns

    def lazy_load(self) -> Iterator[Document]:
        """
        Yield one document per row.

        Rows are read through a server-side cursor; column names are checked
        against the first row.

        Raises:
            ConfigurationError: If a configured column is not in the result
            ExecutionError: If the query fails
        """
        columns: tuple[list[str], list[str]] | None = None
        count = 0

        for row in self._engine.stream(self.query):
            if columns is None:
                columns = self._resolve_columns(row)
            content_columns, metadata_columns = columns

            metadata: dict[str, Any] = {}
            if self.metadata_json_column and row.get(self.metadata_json_column):
                value = row[self.metadata_json_column]
                metadata.update(json.loads(value) if isinstance(value, str) else value)
            for column in metadata_columns:
                metadata[column] = row[column]

            count += 1
            yield Document(content=self.formatter(row, content_columns), metadata=metadata)

        logger.debug("Loaded {} documents", count)

    def load(self) -> list[Document]:
        """Load every document into a list."""
        return list(self.lazy_load())
