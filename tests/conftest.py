"""Shared test doubles: an in-memory executor speaking the store's SQL dialect."""

import json
import math
import re
from typing import Any, Optional, Sequence

from pg_vectorstore.catalog import DESCRIBE_TABLE_SQL
from pg_vectorstore.exceptions import ExecutionError
from pg_vectorstore.queries import vector_literal

INSERT_RE = re.compile(r"^INSERT INTO (\S+) \((.*?)\) VALUES")
SELECT_RE = re.compile(
    r"^SELECT (.*), (\w+)\(\"[^\"]+\", %s::vector\) AS distance FROM (\S+)"
    r"(?: WHERE (.*?))? ORDER BY"
)
DELETE_RE = re.compile(r"^DELETE FROM (\S+) WHERE \"([^\"]+)\" IN %s")
CREATE_INDEX_RE = re.compile(r"^CREATE INDEX (?:CONCURRENTLY )?\"([^\"]+)\"")
DROP_INDEX_RE = re.compile(r"^DROP INDEX IF EXISTS \S+\.\"([^\"]+)\"")
EQUALS_FILTER_RE = re.compile(r"^\"?(\w+)\"?\s*=\s*'(.*)'$")

DOCS_COLUMNS = {
    "id": "text",
    "body": "text",
    "vec": "USER-DEFINED",
    "page": "integer",
    "source": "text",
}


def _names(quoted: str) -> list[str]:
    return re.findall(r'"([^"]+)"', quoted)


def _l2_distance(a: Sequence[float], b: Sequence[float]) -> float:
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def _inner_product(a: Sequence[float], b: Sequence[float]) -> float:
    return sum(x * y for x, y in zip(a, b))


def _cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    norm = math.sqrt(_inner_product(a, a)) * math.sqrt(_inner_product(b, b))
    return 1.0 - _inner_product(a, b) / norm if norm else 1.0


DISTANCE_FUNCTIONS = {
    "l2_distance": _l2_distance,
    "cosine_distance": _cosine_distance,
    "inner_product": _inner_product,
}


class FakeEngine:
    """Executor keeping tables in memory.

    Understands the catalog query and the INSERT, SELECT and DELETE
    statements built by ``pg_vectorstore.queries``. Every call is recorded.
    """

    def __init__(self, tables: Optional[dict[str, dict[str, str]]] = None) -> None:
        self.tables = tables if tables is not None else {"docs": dict(DOCS_COLUMNS)}
        self.rows: dict[str, list[dict[str, Any]]] = {name: [] for name in self.tables}
        self.indexes: set[str] = set()
        self.calls: list[tuple[str, Any, tuple[str, ...], bool]] = []
        self.fail_after_inserts: Optional[int] = None
        self._inserts = 0

    def execute(
        self,
        query: str,
        params: Any = None,
        *,
        setup: Sequence[str] = (),
        autocommit: bool = False,
    ) -> list[dict[str, Any]]:
        self.calls.append((query, params, tuple(setup), autocommit))

        if query == DESCRIBE_TABLE_SQL:
            table_name, _schema = params
            return [
                {"column_name": name, "data_type": data_type}
                for name, data_type in self.tables.get(table_name, {}).items()
            ]
        if match := INSERT_RE.match(query):
            return self._insert(_names(match.group(1))[-1], _names(match.group(2)), params)
        if match := SELECT_RE.match(query):
            return self._select(match, params)
        if match := DELETE_RE.match(query):
            table = _names(match.group(1))[-1]
            ids = set(params[0])
            column = match.group(2)
            self.rows[table] = [r for r in self.rows[table] if r[column] not in ids]
            return []
        if match := CREATE_INDEX_RE.match(query):
            self.indexes.add(match.group(1))
            return []
        if match := DROP_INDEX_RE.match(query):
            self.indexes.discard(match.group(1))
            return []
        if query.startswith("SELECT indexname FROM pg_indexes"):
            name = params[2]
            return [{"indexname": name}] if name in self.indexes else []
        return []

    def _insert(self, table: str, columns: list[str], params: tuple) -> list[dict[str, Any]]:
        if self.fail_after_inserts is not None and self._inserts >= self.fail_after_inserts:
            raise ExecutionError("Query failed: simulated failure")
        self._inserts += 1

        types = self.tables[table]
        row = {}
        for column, value in zip(columns, params):
            if types[column] == "USER-DEFINED" or types[column] in ("json", "jsonb"):
                value = json.loads(value) if value is not None else None
            row[column] = value
        self.rows[table].append(row)
        return []

    def _select(self, match: re.Match, params: tuple) -> list[dict[str, Any]]:
        projection = _names(match.group(1))
        function = match.group(2)
        table = _names(match.group(3))[-1]
        predicate = match.group(4)
        query_vector = json.loads(params[0])
        limit = params[2]

        types = self.tables[table]
        vector_column = next(c for c in projection if types[c] == "USER-DEFINED")
        id_column = projection[0]

        rows = self.rows[table]
        if predicate:
            column, value = EQUALS_FILTER_RE.match(predicate).groups()
            rows = [r for r in rows if str(r.get(column)) == value]

        scored = []
        for row in rows:
            distance = DISTANCE_FUNCTIONS[function](row[vector_column], query_vector)
            # pgvector orders inner product by its negation
            sort_key = -distance if function == "inner_product" else distance
            scored.append((sort_key, str(row[id_column]), distance, row))
        scored.sort(key=lambda item: (item[0], item[1]))

        result = []
        for _key, _id, distance, row in scored[:limit]:
            out = {c: row.get(c) for c in projection}
            out[vector_column] = vector_literal(row[vector_column])
            out["distance"] = distance
            result.append(out)
        return result


class FixedEmbeddings:
    """Embeddings looked up from a fixed table; unknown text raises KeyError."""

    def __init__(self, vectors: dict[str, list[float]]) -> None:
        self.vectors = vectors
        self.document_calls: list[list[str]] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [list(self.vectors[text]) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return list(self.vectors[text])
