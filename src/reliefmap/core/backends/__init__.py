"""ReliefMap Core Backends - Store backend implementations.

This package provides the backend abstraction layer for ReliefMap:
- Backend protocol: Interface for all store backends
- DuckDBBackend: Embedded DuckDB store for entities and cache rows
- get_backend(): Factory function for backend selection
"""

import os
import threading

from reliefmap.core.backends.base import (
    Backend,
    BackendError,
    ConnectionError,
    QueryExecutionError,
    QueryResult,
)
from reliefmap.core.backends.duckdb import DuckDBBackend

# Cache for backend instances with thread safety
_backend_lock = threading.Lock()
_backend_cache: dict[tuple[str, str], Backend] = {}


def get_backend(backend_type: str | None = None, db_path: str | None = None) -> Backend:
    """Get a backend instance based on type.

    Args:
        backend_type: Type of backend ('duckdb').
                     If None, uses RELIEFMAP_BACKEND environment variable,
                     defaulting to 'duckdb'.
        db_path: Database location. If None, uses RELIEFMAP_DB_PATH,
                 defaulting to an in-memory database.

    Returns:
        Backend instance (cached per type and path)

    Raises:
        BackendError: If an unsupported backend type is requested
    """
    if backend_type is None:
        backend_type = os.getenv("RELIEFMAP_BACKEND", "duckdb")
    if db_path is None:
        db_path = os.getenv("RELIEFMAP_DB_PATH") or ":memory:"

    backend_type = backend_type.lower()
    key = (backend_type, db_path)

    with _backend_lock:
        if key in _backend_cache:
            return _backend_cache[key]

        if backend_type == "duckdb":
            backend = DuckDBBackend(db_path)
        else:
            raise BackendError(
                f"Unsupported backend: {backend_type}. "
                "Supported backends: duckdb"
            )

        _backend_cache[key] = backend
        return backend


def reset_backend_cache() -> None:
    """Close and forget every cached backend."""
    with _backend_lock:
        for backend in _backend_cache.values():
            backend.close()
        _backend_cache.clear()


__all__ = [
    "Backend",
    "BackendError",
    "ConnectionError",
    "DuckDBBackend",
    "QueryExecutionError",
    "QueryResult",
    "get_backend",
    "reset_backend_cache",
]
