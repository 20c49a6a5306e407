"""Radius-bounded proximity search over point-tagged entities.

This module provides:
- haversine_distance: great-circle distance in kilometers
- GeoQueryEngine.find_near: entities within X meters of a center point
- GeoQueryEngine.list_entities: non-geospatial listing (includes unresolved)
- GeoQueryEngine.find_near_entity: entities within X meters of a stored entity

Architecture Note:
    Uses the Haversine formula for great-circle distance on a spherical Earth
    (radius 6371 km). Radii span tens of kilometers, so planar distance would
    be visibly wrong. The store only narrows candidates with a lat/lng
    bounding box; the exact distance test happens here.

    Entities whose point is unresolved are skipped by every radius search
    but still show up in list_entities.
"""

import logging
import math

from reliefmap.core.exceptions import (
    EntityNotFoundError,
    InvalidLocationError,
    InvalidRadiusError,
)
from reliefmap.core.models import Coordinates, EntityKind, GeoEntity, validate_lat_lng
from reliefmap.core.store import EntityStore

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000.0

# Slack for floating-point error at the radius boundary (radius 0 included)
DISTANCE_TOLERANCE_M = 1e-6
_BOX_MARGIN_DEG = 1e-7


# =============================================================================
# HAVERSINE DISTANCE
# =============================================================================


def haversine_distance(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """Calculate great-circle distance between two points on Earth.

    Args:
        lat1, lon1: Coordinates of point 1 (degrees)
        lat2, lon2: Coordinates of point 2 (degrees)

    Returns:
        Distance in kilometers
    """
    lat1_r, lon1_r = math.radians(lat1), math.radians(lon1)
    lat2_r, lon2_r = math.radians(lat2), math.radians(lon2)

    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_meters(a: Coordinates, b: Coordinates) -> float:
    return haversine_distance(a.lat, a.lng, b.lat, b.lng) * 1000.0


# =============================================================================
# INPUT VALIDATION
# =============================================================================


def validate_radius(radius_meters: float) -> float:
    """Return the radius as float, rejecting negative and non-finite values."""
    try:
        radius = float(radius_meters)
    except (TypeError, ValueError) as e:
        raise InvalidRadiusError(
            f"Radius should be a number, got '{radius_meters}'"
        ) from e
    if not math.isfinite(radius) or radius < 0:
        raise InvalidRadiusError(
            f"Radius should be a non-negative number, got '{radius_meters}'"
        )
    return radius


def km_to_meters(radius_km: float | str) -> float:
    """Convert a client radius in kilometers to meters."""
    try:
        km = float(radius_km)
    except (TypeError, ValueError) as e:
        raise InvalidRadiusError(
            "Radius should be a number in kilometers"
        ) from e
    return validate_radius(km * 1000.0)


def bounding_box(
    center: Coordinates, radius_meters: float
) -> tuple[float, float, float, float]:
    """Lat/lng box enclosing the circle; ``min_lng > max_lng`` wraps 180°.

    Returns:
        (min_lat, max_lat, min_lng, max_lng)
    """
    angular = radius_meters / EARTH_RADIUS_M
    if angular >= math.pi:
        return -90.0, 90.0, -180.0, 180.0

    dlat = math.degrees(angular) + _BOX_MARGIN_DEG
    min_lat = center.lat - dlat
    max_lat = center.lat + dlat
    if min_lat <= -90.0 or max_lat >= 90.0:
        # The circle covers a pole: every longitude is reachable
        return max(min_lat, -90.0), min(max_lat, 90.0), -180.0, 180.0

    ratio = math.sin(angular) / math.cos(math.radians(center.lat))
    if ratio >= 1.0:
        return min_lat, max_lat, -180.0, 180.0
    dlng = math.degrees(math.asin(ratio)) + _BOX_MARGIN_DEG

    min_lng = center.lng - dlng
    max_lng = center.lng + dlng
    if min_lng < -180.0:
        min_lng += 360.0
    if max_lng > 180.0:
        max_lng -= 360.0
    return min_lat, max_lat, min_lng, max_lng


# =============================================================================
# QUERY ENGINE
# =============================================================================


class GeoQueryEngine:
    """Find entities near a point.

    Callers resolve place names first (see LocationResolver); the engine
    only deals in coordinates. Result order is unspecified unless
    ``sort_by_distance`` is requested.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    def find_near_with_distances(
        self,
        center: Coordinates,
        radius_meters: float,
        type_filter: str | None = None,
        kind: EntityKind = EntityKind.RESOURCE,
        sort_by_distance: bool = False,
        limit: int | None = None,
    ) -> list[tuple[GeoEntity, float]]:
        """Like ``find_near`` but pairs each entity with its distance in meters.

        Raises:
            InvalidRadiusError: If the radius is negative or not a number
            InvalidLocationError: If the center is out of range
            QueryError: If the store query fails
        """
        radius = validate_radius(radius_meters)
        validate_lat_lng(center.lat, center.lng)

        min_lat, max_lat, min_lng, max_lng = bounding_box(center, radius)
        candidates = self.store.within_bounds(
            kind, min_lat, max_lat, min_lng, max_lng, type_filter=type_filter
        )

        matches: list[tuple[GeoEntity, float]] = []
        for entity in candidates:
            if entity.point is None:
                continue
            dist = distance_meters(center, entity.point)
            if dist <= radius + DISTANCE_TOLERANCE_M:
                matches.append((entity, dist))

        if sort_by_distance:
            matches.sort(key=lambda pair: pair[1])
        if limit is not None:
            matches = matches[:limit]

        logger.info(
            "Found %d %s(s) within %.0f m of (%s, %s)%s (%d candidates)",
            len(matches),
            kind.value,
            radius,
            center.lat,
            center.lng,
            f" of type '{type_filter}'" if type_filter else "",
            len(candidates),
        )
        return matches

    def find_near(
        self,
        center: Coordinates,
        radius_meters: float,
        type_filter: str | None = None,
        kind: EntityKind = EntityKind.RESOURCE,
        sort_by_distance: bool = False,
        limit: int | None = None,
    ) -> list[GeoEntity]:
        """Entities whose point lies within ``radius_meters`` of ``center``.

        Args:
            center: Search center
            radius_meters: Great-circle radius; 0 matches only identical points
            type_filter: Exact match on entity type; None returns all types
            kind: Which entity table to search
            sort_by_distance: Order results nearest first
            limit: Maximum number of results

        Returns:
            Matching entities (unresolved entities never included)
        """
        return [
            entity
            for entity, _ in self.find_near_with_distances(
                center,
                radius_meters,
                type_filter=type_filter,
                kind=kind,
                sort_by_distance=sort_by_distance,
                limit=limit,
            )
        ]

    def list_entities(
        self,
        type_filter: str | None = None,
        kind: EntityKind = EntityKind.RESOURCE,
        disaster_id: str | None = None,
    ) -> list[GeoEntity]:
        """Non-geospatial listing; includes entities without a point."""
        return self.store.list(kind, type_filter=type_filter, disaster_id=disaster_id)

    def find_near_entity(
        self,
        anchor_id: str,
        radius_meters: float,
        type_filter: str | None = None,
        anchor_kind: EntityKind = EntityKind.DISASTER,
        kind: EntityKind = EntityKind.RESOURCE,
        sort_by_distance: bool = False,
    ) -> list[GeoEntity]:
        """Entities of ``kind`` near a stored anchor (e.g. resources near a disaster).

        Raises:
            EntityNotFoundError: If the anchor does not exist
            InvalidLocationError: If the anchor has no resolved point
        """
        anchor = self.store.get(anchor_kind, anchor_id)
        if anchor is None:
            raise EntityNotFoundError(anchor_kind.value, anchor_id)
        if anchor.point is None:
            raise InvalidLocationError(
                f"{anchor_kind.value.capitalize()} {anchor_id} does not have "
                "valid location coordinates",
                field="location",
            )
        return self.find_near(
            anchor.point,
            radius_meters,
            type_filter=type_filter,
            kind=kind,
            sort_by_distance=sort_by_distance,
        )

    @staticmethod
    def distance_to(center: Coordinates, entity: GeoEntity) -> float | None:
        """Meters from ``center`` to ``entity``; None when unresolved."""
        if entity.point is None:
            return None
        return distance_meters(center, entity.point)
