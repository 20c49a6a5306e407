"""ReliefMap Python API for direct access to the location core.

This module wires the components together and exposes them with native
Python return types. The HTTP server and the CLI both go through it, so
behavior is identical across interfaces.

Example:
    from reliefmap import ReliefMap
    from reliefmap.config import ReliefMapConfig

    app = ReliefMap.from_config(ReliefMapConfig.from_env())
    shelter = app.create_resource("Shelter A", "Manhattan, NYC", "shelter")
    nearby = app.find_near(40.71, -74.00, radius_km=5)

All writes broadcast a MutationEvent on ``app.bus``.
"""

from reliefmap.config import ReliefMapConfig
from reliefmap.core.backends import Backend, get_backend
from reliefmap.core.cache import TTLCache
from reliefmap.core.entities import EntityService
from reliefmap.core.exceptions import (
    EntityNotFoundError,
    InvalidInputError,
    InvalidLocationError,
    InvalidRadiusError,
    QueryError,
    ReliefMapError,
    ResolutionNotFound,
)
from reliefmap.core.geocoding import LocationResolver
from reliefmap.core.geospatial import GeoQueryEngine, km_to_meters
from reliefmap.core.models import (
    Coordinates,
    EntityKind,
    EntityMetadata,
    GeoEntity,
    validate_lat_lng,
)
from reliefmap.core.store import EntityStore
from reliefmap.realtime.broadcaster import MessageBus

__all__ = [
    "EntityNotFoundError",
    "InvalidInputError",
    "InvalidLocationError",
    "InvalidRadiusError",
    "QueryError",
    "ReliefMap",
    "ReliefMapError",
    "ResolutionNotFound",
]


class ReliefMap:
    """Container for one running instance of the location core.

    Attributes:
        config: Application configuration
        backend: Store backend shared by cache and entities
        cache: TTL cache (geocoding results)
        resolver: Provider-chain location resolver
        store: Entity persistence
        engine: Geospatial query engine
        bus: Mutation broadcaster
        entities: Write path (publishes to ``bus``)
    """

    def __init__(
        self,
        config: ReliefMapConfig,
        backend: Backend,
        resolver: LocationResolver | None = None,
        bus: MessageBus | None = None,
    ):
        self.config = config
        self.backend = backend
        self.cache = TTLCache(backend, default_ttl=config.cache_ttl_seconds)
        self.resolver = resolver or LocationResolver.from_config(
            config.resolver, self.cache
        )
        self.store = EntityStore(backend)
        self.engine = GeoQueryEngine(self.store)
        self.bus = bus or MessageBus()
        self.entities = EntityService(self.store, self.resolver, self.bus)

    @classmethod
    def from_config(cls, config: ReliefMapConfig | None = None) -> "ReliefMap":
        config = config or ReliefMapConfig.from_env()
        return cls(config, get_backend("duckdb", config.db_path))

    # =========================================================================
    # Geocoding
    # =========================================================================

    def geocode(self, location_name: str) -> Coordinates:
        """Resolve a place name (or a raw "lat,lng" pair).

        Raises:
            InvalidLocationError: If the input is blank or out of range
            ResolutionNotFound: If no provider could resolve it
        """
        return self.resolver.resolve_or_parse(location_name)

    # =========================================================================
    # Search
    # =========================================================================

    def find_near(
        self,
        lat: float,
        lng: float,
        radius_km: float | str | None = None,
        type_filter: str | None = None,
        kind: EntityKind = EntityKind.RESOURCE,
        sort_by_distance: bool = False,
    ) -> list[tuple[GeoEntity, float]]:
        """Entities within ``radius_km`` of ``(lat, lng)`` with distances in meters.

        Raises:
            InvalidRadiusError: If the radius is invalid
            InvalidLocationError: If the center is out of range
        """
        validate_lat_lng(lat, lng)
        radius_km = self.config.default_radius_km if radius_km is None else radius_km
        return self.engine.find_near_with_distances(
            Coordinates(lat, lng),
            km_to_meters(radius_km),
            type_filter=type_filter,
            kind=kind,
            sort_by_distance=sort_by_distance,
        )

    def find_near_location(
        self,
        location_name: str,
        radius_km: float | str | None = None,
        type_filter: str | None = None,
        kind: EntityKind = EntityKind.RESOURCE,
    ) -> tuple[Coordinates, list[tuple[GeoEntity, float]]]:
        """Resolve ``location_name`` then search around it, nearest first."""
        center = self.geocode(location_name)
        return center, self.find_near(
            center.lat,
            center.lng,
            radius_km=radius_km,
            type_filter=type_filter,
            kind=kind,
            sort_by_distance=True,
        )

    def list_entities(
        self,
        kind: EntityKind = EntityKind.RESOURCE,
        type_filter: str | None = None,
        tag: str | None = None,
    ) -> list[GeoEntity]:
        """Non-geospatial listing, optionally filtered by type or tag."""
        entities = self.engine.list_entities(type_filter=type_filter, kind=kind)
        if tag:
            entities = [e for e in entities if tag in e.metadata.tags]
        return entities

    def resources_near_disaster(
        self,
        disaster_id: str,
        radius_km: float | str | None = None,
        type_filter: str | None = None,
    ) -> list[GeoEntity]:
        radius_km = self.config.default_radius_km if radius_km is None else radius_km
        return self.engine.find_near_entity(
            disaster_id, km_to_meters(radius_km), type_filter=type_filter
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def create_resource(
        self,
        name: str,
        location_name: str,
        type: str,
        metadata: EntityMetadata | None = None,
        disaster_id: str | None = None,
    ) -> GeoEntity:
        return self.entities.create(
            EntityKind.RESOURCE,
            name,
            location_name,
            type,
            metadata=metadata,
            disaster_id=disaster_id,
        )

    def create_disaster(
        self,
        title: str,
        location_name: str,
        category: str = "",
        metadata: EntityMetadata | None = None,
    ) -> GeoEntity:
        return self.entities.create(
            EntityKind.DISASTER,
            title,
            location_name,
            category or "general",
            metadata=metadata,
        )

    def sweep_cache(self) -> int:
        """Remove expired cache rows; returns how many were deleted."""
        return self.cache.clear_expired()
