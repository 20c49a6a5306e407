"""Entity persistence over the ``entities`` table.

Points are stored as ``lat``/``lng`` doubles plus the canonical
``POINT(lng lat)`` text in ``location_text``. Rows with NULL ``lat`` are
unresolved entities: listable, but never returned by bounding-box scans.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import pandas as pd

from reliefmap.core.backends import Backend, QueryExecutionError
from reliefmap.core.exceptions import QueryError
from reliefmap.core.models import (
    Coordinates,
    EntityKind,
    EntityMetadata,
    GeoEntity,
    utcnow,
)

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, kind, name, location_name, lat, lng, location_text, display_name, "
    "type, metadata, disaster_id, created_at"
)


def _clean(value: Any) -> Any:
    """Map pandas missing markers (NaN/NaT/None) to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _row_to_entity(row: pd.Series) -> GeoEntity:
    lat, lng = _clean(row["lat"]), _clean(row["lng"])
    point = None
    if lat is not None and lng is not None:
        point = Coordinates(
            lat=float(lat),
            lng=float(lng),
            display_name=_clean(row["display_name"]) or "",
        )

    raw_metadata = _clean(row["metadata"])
    metadata = EntityMetadata.from_dict(json.loads(raw_metadata) if raw_metadata else None)

    created_at = _clean(row["created_at"])
    if isinstance(created_at, pd.Timestamp):
        created_at = created_at.to_pydatetime()

    return GeoEntity(
        id=str(row["id"]),
        kind=EntityKind(row["kind"]),
        name=row["name"],
        location_name=row["location_name"],
        point=point,
        type=_clean(row["type"]) or "",
        metadata=metadata,
        created_at=created_at if isinstance(created_at, datetime) else None,
        disaster_id=_clean(row["disaster_id"]),
    )


def _point_params(entity: GeoEntity) -> list[Any]:
    point = entity.point
    if point is None:
        return [None, None, None, None]
    return [point.lat, point.lng, point.point, point.display_name]


class EntityStore:
    """CRUD and candidate scans for GeoEntity rows."""

    def __init__(self, backend: Backend):
        self.backend = backend

    def _select(self, where: str, params: list[Any]) -> list[GeoEntity]:
        sql = f"SELECT {_COLUMNS} FROM entities WHERE {where} ORDER BY created_at, id"
        result = self.backend.execute_query(sql, params)
        if not result.success:
            raise QueryError(result.error or "Query failed", sql=sql)
        df = result.dataframe
        if df is None or df.empty:
            return []
        return [_row_to_entity(row) for _, row in df.iterrows()]

    def _write(self, sql: str, params: list[Any]) -> list[tuple]:
        try:
            return self.backend.execute(sql, params)
        except QueryExecutionError as e:
            raise QueryError(str(e), sql=sql) from e

    def get(self, kind: EntityKind, entity_id: str) -> GeoEntity | None:
        rows = self._select("kind = ? AND id = ?", [kind.value, entity_id])
        return rows[0] if rows else None

    def insert(self, entity: GeoEntity) -> GeoEntity:
        """Insert a new row and return it with the store-assigned timestamp."""
        rows = self._write(
            f"""
            INSERT INTO entities ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING created_at
            """,
            [
                entity.id,
                entity.kind.value,
                entity.name,
                entity.location_name,
                *_point_params(entity),
                entity.type,
                json.dumps(entity.metadata.to_dict()),
                entity.disaster_id,
                entity.created_at or utcnow(),
            ],
        )
        created_at = rows[0][0] if rows else entity.created_at
        return entity.with_changes(created_at=created_at)

    def update(self, entity: GeoEntity) -> GeoEntity:
        """Overwrite the mutable columns of an existing row."""
        rows = self._write(
            """
            UPDATE entities
            SET name = ?, location_name = ?, lat = ?, lng = ?, location_text = ?,
                display_name = ?, type = ?, metadata = ?, disaster_id = ?
            WHERE kind = ? AND id = ?
            RETURNING id
            """,
            [
                entity.name,
                entity.location_name,
                *_point_params(entity),
                entity.type,
                json.dumps(entity.metadata.to_dict()),
                entity.disaster_id,
                entity.kind.value,
                entity.id,
            ],
        )
        if not rows:
            raise QueryError(f"Update matched no {entity.kind.value} with ID {entity.id}")
        return entity

    def delete(self, kind: EntityKind, entity_id: str) -> bool:
        rows = self._write(
            "DELETE FROM entities WHERE kind = ? AND id = ? RETURNING id",
            [kind.value, entity_id],
        )
        return bool(rows)

    def list(
        self,
        kind: EntityKind,
        type_filter: str | None = None,
        disaster_id: str | None = None,
    ) -> list[GeoEntity]:
        """All entities of ``kind``, resolved or not."""
        where = "kind = ?"
        params: list[Any] = [kind.value]
        if type_filter is not None:
            where += " AND type = ?"
            params.append(type_filter)
        if disaster_id is not None:
            where += " AND disaster_id = ?"
            params.append(disaster_id)
        return self._select(where, params)

    def within_bounds(
        self,
        kind: EntityKind,
        min_lat: float,
        max_lat: float,
        min_lng: float,
        max_lng: float,
        type_filter: str | None = None,
    ) -> list[GeoEntity]:
        """Resolved entities inside a lat/lng box (the distance prefilter).

        ``min_lng > max_lng`` denotes a box crossing the antimeridian.
        """
        where = "kind = ? AND lat IS NOT NULL AND lng IS NOT NULL AND lat BETWEEN ? AND ?"
        params: list[Any] = [kind.value, min_lat, max_lat]
        if min_lng <= max_lng:
            where += " AND lng BETWEEN ? AND ?"
        else:
            where += " AND (lng >= ? OR lng <= ?)"
        params += [min_lng, max_lng]
        if type_filter is not None:
            where += " AND type = ?"
            params.append(type_filter)
        return self._select(where, params)
