"""Expiring key/value cache backed by the ``cache`` table.

Rows are ``(key, value JSON, expires_at)``. A row past its ``expires_at``
is a miss even before ``clear_expired`` removes it. Store failures never
reach callers: reads degrade to a miss and writes report ``False``.
"""

import base64
import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from reliefmap.config import DEFAULT_CACHE_TTL_SECONDS
from reliefmap.core.backends import Backend
from reliefmap.core.exceptions import BackendError, CacheUnavailable
from reliefmap.core.models import utcnow

logger = logging.getLogger(__name__)


def make_cache_key(purpose: str, context: str, subject: str) -> str:
    """Build ``{purpose}_{context}_{base64(subject)}``.

    The same logical input always yields the same key.
    """
    encoded = base64.b64encode(subject.encode("utf-8")).decode("ascii")
    return f"{purpose}_{context}_{encoded}"


class TTLCache:
    """Cache with per-entry expiry stored in a backend table.

    No locking across ``get``/``set`` pairs: concurrent writers to the same
    key race and the last write wins.
    """

    def __init__(
        self,
        backend: Backend,
        default_ttl: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._backend = backend
        self.default_ttl = default_ttl
        self._clock = clock

    def _execute(self, sql: str, params: list) -> list[tuple]:
        try:
            return self._backend.execute(sql, params)
        except BackendError as e:
            raise CacheUnavailable(f"Cache store error: {e}") from e

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss, expiry or store error."""
        try:
            rows = self._execute(
                "SELECT value FROM cache WHERE key = ? AND expires_at > ?",
                [key, self._clock()],
            )
        except CacheUnavailable as e:
            logger.error("Cache get failed for key %s: %s", key, e)
            return None

        if not rows:
            return None

        try:
            value = json.loads(rows[0][0])
        except (TypeError, ValueError) as e:
            logger.error("Discarding undecodable cache value for key %s: %s", key, e)
            return None

        logger.debug("Cache hit: %s", key)
        return value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """Upsert ``value`` under ``key`` with a fresh expiry.

        Returns:
            True on success, False if the value could not be stored.
        """
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        expires_at = self._clock() + timedelta(seconds=ttl)
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("Cache value for key %s is not serializable: %s", key, e)
            return False

        try:
            self._execute(
                """
                INSERT INTO cache (key, value, expires_at) VALUES (?, ?, ?)
                ON CONFLICT (key) DO UPDATE
                SET value = excluded.value, expires_at = excluded.expires_at
                """,
                [key, payload, expires_at],
            )
        except CacheUnavailable as e:
            logger.error("Cache set failed for key %s: %s", key, e)
            return False

        logger.debug("Cache set: %s (ttl=%ss)", key, ttl)
        return True

    def delete(self, key: str) -> bool:
        """Remove ``key``. Deleting a missing key succeeds."""
        try:
            self._execute("DELETE FROM cache WHERE key = ?", [key])
        except CacheUnavailable as e:
            logger.error("Cache delete failed for key %s: %s", key, e)
            return False
        logger.debug("Cache deleted: %s", key)
        return True

    def clear_expired(self) -> int:
        """Delete rows whose expiry has passed.

        Returns:
            Number of rows removed (0 if the sweep failed).
        """
        try:
            rows = self._execute(
                "DELETE FROM cache WHERE expires_at <= ? RETURNING key",
                [self._clock()],
            )
        except CacheUnavailable as e:
            logger.error("Error clearing expired cache entries: %s", e)
            return 0
        logger.debug("Cleared %d expired cache entries", len(rows))
        return len(rows)
