"""DuckDB backend for entities and the cache table."""

import logging
import threading
from typing import Any

import duckdb

from reliefmap.core.backends.base import (
    ConnectionError,
    QueryExecutionError,
    QueryResult,
)

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS entities (
        id VARCHAR PRIMARY KEY,
        kind VARCHAR NOT NULL,
        name VARCHAR NOT NULL,
        location_name VARCHAR NOT NULL,
        lat DOUBLE,
        lng DOUBLE,
        location_text VARCHAR,
        display_name VARCHAR,
        type VARCHAR NOT NULL DEFAULT '',
        metadata VARCHAR,
        disaster_id VARCHAR,
        created_at TIMESTAMP DEFAULT current_timestamp
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cache (
        key VARCHAR PRIMARY KEY,
        value VARCHAR NOT NULL,
        expires_at TIMESTAMP NOT NULL
    )
    """,
)


class DuckDBBackend:
    """Single-connection DuckDB backend.

    The connection is shared across threads and serialized with a lock;
    DuckDB connections are not safe for concurrent use.
    """

    name = "duckdb"

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn = duckdb.connect(db_path)
        except duckdb.Error as e:
            raise ConnectionError(
                f"Could not open DuckDB database at {db_path}: {e}", backend=self.name
            ) from e
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._lock:
            for statement in SCHEMA_STATEMENTS:
                self._conn.execute(statement)
        logger.debug("DuckDB schema ready at %s", self.db_path)

    def execute_query(
        self, sql: str, params: list[Any] | None = None
    ) -> QueryResult:
        try:
            with self._lock:
                df = self._conn.execute(sql, params or []).df()
        except duckdb.Error as e:
            logger.error("DuckDB query failed: %s", e)
            return QueryResult(error=str(e))
        return QueryResult(dataframe=df, row_count=len(df))

    def execute(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        try:
            with self._lock:
                cursor = self._conn.execute(sql, params or [])
                if cursor.description is None:
                    return []
                return cursor.fetchall()
        except duckdb.Error as e:
            raise QueryExecutionError(str(e), sql=sql, backend=self.name) from e

    def get_backend_info(self) -> str:
        return f"**Backend:** DuckDB ({self.db_path})"

    def close(self) -> None:
        with self._lock:
            self._conn.close()
