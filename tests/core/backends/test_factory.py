"""Tests for reliefmap.core.backends factory functions.

Tests cover:
- get_backend() factory function
- Backend caching
- Environment variable handling
- DuckDB schema bootstrap and error reporting
"""

import os
from unittest.mock import patch

import pytest

from reliefmap.core.backends import (
    BackendError,
    DuckDBBackend,
    QueryExecutionError,
    get_backend,
    reset_backend_cache,
)


class TestGetBackend:
    """Test get_backend factory function."""

    def setup_method(self):
        """Reset backend cache before each test."""
        reset_backend_cache()

    def teardown_method(self):
        reset_backend_cache()

    def test_get_duckdb_backend_explicit(self):
        """Test getting DuckDB backend explicitly."""
        backend = get_backend("duckdb")

        assert isinstance(backend, DuckDBBackend)
        assert backend.name == "duckdb"

    def test_get_backend_case_insensitive(self):
        """Test that backend type is case-insensitive."""
        assert isinstance(get_backend("DuckDB"), DuckDBBackend)

    def test_get_backend_default_is_in_memory_duckdb(self):
        """Without env vars the default is an in-memory DuckDB."""
        with patch.dict(os.environ, {}, clear=True):
            backend = get_backend()

        assert isinstance(backend, DuckDBBackend)
        assert backend.db_path == ":memory:"

    def test_db_path_from_env_var(self, tmp_path):
        """RELIEFMAP_DB_PATH selects the database file."""
        db_file = str(tmp_path / "relief.duckdb")
        with patch.dict(os.environ, {"RELIEFMAP_DB_PATH": db_file}):
            backend = get_backend()

        assert backend.db_path == db_file
        assert os.path.exists(db_file)

    def test_invalid_backend_raises_error(self):
        """Test that invalid backend type raises BackendError."""
        with pytest.raises(BackendError) as exc_info:
            get_backend("invalid_backend")

        assert "Unsupported backend" in str(exc_info.value)
        assert "duckdb" in str(exc_info.value).lower()


class TestBackendCaching:
    """Test backend caching behavior."""

    def setup_method(self):
        reset_backend_cache()

    def teardown_method(self):
        reset_backend_cache()

    def test_same_path_returns_same_instance(self):
        """Test that repeated calls share one backend."""
        assert get_backend("duckdb", ":memory:") is get_backend("duckdb", ":memory:")

    def test_different_paths_are_distinct(self, tmp_path):
        """Each database path gets its own backend."""
        a = get_backend("duckdb", str(tmp_path / "a.duckdb"))
        b = get_backend("duckdb", str(tmp_path / "b.duckdb"))
        assert a is not b

    def test_reset_creates_new_instance(self):
        """Test that reset_backend_cache() forces a new backend."""
        first = get_backend("duckdb")
        reset_backend_cache()
        assert get_backend("duckdb") is not first


class TestDuckDBBackend:
    """Test the DuckDB backend itself."""

    def test_schema_created(self, backend):
        """Both tables exist on a fresh database."""
        tables = {
            row[0]
            for row in backend.execute(
                "SELECT table_name FROM information_schema.tables"
            )
        }
        assert {"entities", "cache"} <= tables

    def test_execute_query_returns_dataframe(self, backend):
        result = backend.execute_query("SELECT 1 AS one")
        assert result.success
        assert result.row_count == 1
        assert result.dataframe["one"].tolist() == [1]

    def test_execute_query_reports_errors(self, backend):
        """Read failures are carried in the result, not raised."""
        result = backend.execute_query("SELECT * FROM no_such_table")
        assert not result.success
        assert result.dataframe is None

    def test_execute_raises_on_failure(self, backend):
        with pytest.raises(QueryExecutionError) as exc_info:
            backend.execute("INSERT INTO no_such_table VALUES (1)")
        assert exc_info.value.backend == "duckdb"

    def test_backend_info(self, backend):
        assert "DuckDB" in backend.get_backend_info()

    def test_schema_is_idempotent(self, tmp_path):
        """Reopening an existing file keeps its rows."""
        path = str(tmp_path / "relief.duckdb")
        first = DuckDBBackend(path)
        first.execute(
            "INSERT INTO cache VALUES (?, ?, ?)", ["k", '"v"', "2099-01-01 00:00:00"]
        )
        first.close()

        second = DuckDBBackend(path)
        assert second.execute("SELECT key FROM cache") == [("k",)]
        second.close()
