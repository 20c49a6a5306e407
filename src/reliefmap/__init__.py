"""ReliefMap: location resolution and geospatial discovery for disaster coordination.

ReliefMap turns free-text places into coordinates through a fallback chain
of geocoding providers, answers radius searches over resources and
disasters, and pushes every committed write to connected viewers so their
maps stay current without a full reload.

Quick Start:
    from reliefmap import ReliefMap

    app = ReliefMap.from_config()
    app.create_resource("Shelter A", "Manhattan, NYC", "shelter")
    print(app.find_near(40.71, -74.00, radius_km=5))

For the HTTP server, run: reliefmap serve
"""

__version__ = "0.3.0"

from reliefmap.api import (
    EntityNotFoundError,
    InvalidInputError,
    InvalidLocationError,
    InvalidRadiusError,
    QueryError,
    ReliefMap,
    ReliefMapError,
    ResolutionNotFound,
)

__all__ = [
    "EntityNotFoundError",
    "InvalidInputError",
    "InvalidLocationError",
    "InvalidRadiusError",
    "QueryError",
    "ReliefMap",
    "ReliefMapError",
    "ResolutionNotFound",
    "__version__",
]
