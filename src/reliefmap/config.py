"""ReliefMap configuration from environment variables.

Every component receives its configuration explicitly at construction;
nothing here is read lazily from a process-wide singleton.

Environment variables:
    RELIEFMAP_DB_PATH: DuckDB file for entities and cache (default: in-memory)
    RELIEFMAP_DEFAULT_RADIUS_KM: Search radius when the client gives none (10)
    RELIEFMAP_PORT: HTTP port for ``reliefmap serve`` (8000)
    RELIEFMAP_CACHE_TTL: Cache entry lifetime in seconds (3600)
    RELIEFMAP_GEOCODERS: Ordered provider chain, e.g. "nominatim,google,mapbox"
    RELIEFMAP_GEOCODE_TIMEOUT: Per-provider request timeout in seconds (10)
    GOOGLE_MAPS_API_KEY: Credentials for the Google provider
    MAPBOX_API_KEY: Credentials for the Mapbox provider
    RELIEFMAP_GAZETTEER: JSON file of {name: [lat, lng]} for the gazetteer provider
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger("reliefmap")

DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_GEOCODE_TIMEOUT_SECONDS = 10.0
DEFAULT_RADIUS_KM = 10.0
DEFAULT_PORT = 8000
DEFAULT_PROVIDERS: tuple[str, ...] = ("nominatim",)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
MAPBOX_GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"
USER_AGENT = "ReliefMap/1.0"


def setup_logging(level: int = logging.INFO) -> None:
    """Attach a stream handler to the ``reliefmap`` logger once."""
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def load_env_file(path: Path) -> int:
    """Load KEY=VALUE lines from a .env file without overriding os.environ.

    Returns:
        Number of variables that were newly set.
    """
    if not path.is_file():
        return 0
    loaded = 0
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key and key not in os.environ:
            os.environ[key] = value.strip()
            loaded += 1
    return loaded


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class ResolverConfig:
    """Immutable geocoding configuration.

    ``providers`` lists provider names in the order they are tried.
    Paid providers without credentials are skipped when the chain is built.
    """

    providers: tuple[str, ...] = DEFAULT_PROVIDERS
    google_api_key: str | None = None
    mapbox_access_token: str | None = None
    gazetteer_path: str | None = None
    nominatim_url: str = NOMINATIM_URL
    google_url: str = GOOGLE_GEOCODE_URL
    mapbox_url: str = MAPBOX_GEOCODE_URL
    user_agent: str = USER_AGENT
    timeout_seconds: float = DEFAULT_GEOCODE_TIMEOUT_SECONDS
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS

    @property
    def chain_id(self) -> str:
        """Stable identifier of the provider order, used in cache keys."""
        return "-".join(self.providers)

    @classmethod
    def from_env(cls) -> "ResolverConfig":
        """Read resolver config from the environment."""
        raw = os.getenv("RELIEFMAP_GEOCODERS", "")
        providers = tuple(p.strip().lower() for p in raw.split(",") if p.strip())
        return cls(
            providers=providers or DEFAULT_PROVIDERS,
            google_api_key=os.getenv("GOOGLE_MAPS_API_KEY") or None,
            mapbox_access_token=os.getenv("MAPBOX_API_KEY") or None,
            gazetteer_path=os.getenv("RELIEFMAP_GAZETTEER") or None,
            timeout_seconds=_env_float(
                "RELIEFMAP_GEOCODE_TIMEOUT", DEFAULT_GEOCODE_TIMEOUT_SECONDS
            ),
            cache_ttl_seconds=_env_int(
                "RELIEFMAP_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS
            ),
        )


@dataclass(frozen=True)
class ReliefMapConfig:
    """Immutable application config."""

    db_path: str = ":memory:"
    default_radius_km: float = DEFAULT_RADIUS_KM
    port: int = DEFAULT_PORT
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    resolver: ResolverConfig = field(default_factory=ResolverConfig)

    @classmethod
    def from_env(cls) -> "ReliefMapConfig":
        """Read application config from the environment."""
        resolver = ResolverConfig.from_env()
        return cls(
            db_path=os.getenv("RELIEFMAP_DB_PATH") or ":memory:",
            default_radius_km=_env_float(
                "RELIEFMAP_DEFAULT_RADIUS_KM", DEFAULT_RADIUS_KM
            ),
            port=_env_int("RELIEFMAP_PORT", DEFAULT_PORT),
            cache_ttl_seconds=resolver.cache_ttl_seconds,
            resolver=resolver,
        )
