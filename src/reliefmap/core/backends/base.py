"""Backend protocol and query result container."""

from dataclasses import dataclass
from typing import Any, Protocol

import pandas as pd

from reliefmap.core.exceptions import (
    BackendError,
    ConnectionError,
    QueryExecutionError,
)


@dataclass
class QueryResult:
    """Result of a read query.

    Attributes:
        dataframe: Result rows (None when the query failed)
        row_count: Number of rows returned
        error: Error message when the query failed
    """

    dataframe: pd.DataFrame | None = None
    row_count: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class Backend(Protocol):
    """Interface every store backend implements."""

    name: str

    def execute_query(
        self, sql: str, params: list[Any] | None = None
    ) -> QueryResult:
        """Run a read query. Failures are reported in the result, not raised."""
        ...

    def execute(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        """Run a write statement and return any RETURNING rows.

        Raises:
            QueryExecutionError: If the statement fails
        """
        ...

    def get_backend_info(self) -> str: ...

    def close(self) -> None: ...


__all__ = [
    "Backend",
    "BackendError",
    "ConnectionError",
    "QueryExecutionError",
    "QueryResult",
]
