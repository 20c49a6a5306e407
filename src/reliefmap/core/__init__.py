"""ReliefMap Core - transport-agnostic location and search core.

This package contains:
- Data model (Coordinates, GeoEntity, MutationEvent)
- TTL cache and store backends
- Provider-chain location resolver
- Geospatial query engine and entity write path

The core has no HTTP dependency so it can be tested and reused directly.
"""

from reliefmap.core.models import (
    Coordinates,
    EntityKind,
    EntityMetadata,
    GeoEntity,
    MutationAction,
    MutationEvent,
)

__all__ = [
    "Coordinates",
    "EntityKind",
    "EntityMetadata",
    "GeoEntity",
    "MutationAction",
    "MutationEvent",
]
