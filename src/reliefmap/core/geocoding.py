"""Free-text location resolution through an ordered provider chain.

Providers are tried one at a time in configured order (free Nominatim
first by default, paid Google/Mapbox as fallbacks). The first provider
that returns a result wins; a provider that errors or finds nothing just
hands over to the next one. Successful resolutions are cached under
``geocode_{chain}_{base64(name)}``; failures are never cached so a later
retry can still succeed.

Usage:
    from reliefmap.config import ResolverConfig
    from reliefmap.core.geocoding import LocationResolver

    resolver = LocationResolver.from_config(ResolverConfig.from_env(), cache)
    coords = resolver.resolve("Manhattan, NYC")
    coords.point  # 'POINT(-74.006 40.7128)'
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import requests

from reliefmap.config import ResolverConfig
from reliefmap.core.cache import TTLCache, make_cache_key
from reliefmap.core.exceptions import (
    InvalidLocationError,
    ProviderUnavailable,
    ResolutionNotFound,
)
from reliefmap.core.models import Coordinates, validate_lat_lng

logger = logging.getLogger(__name__)

CACHE_PURPOSE = "geocode"


# ── Provider interface ────────────────────────────────────────────────


class GeocodingProvider(Protocol):
    """A single lookup backend.

    ``resolve_one`` returns None when the provider has no match and raises
    ProviderUnavailable when the provider itself failed.
    """

    name: str

    def resolve_one(self, location_name: str) -> Coordinates | None: ...


def _get_json(provider: str, url: str, params: dict, timeout: float, headers=None):
    """GET ``url`` and decode JSON, mapping transport errors to ProviderUnavailable."""
    try:
        resp = requests.get(url, params=params, headers=headers, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except requests.RequestException as e:
        raise ProviderUnavailable(f"{provider} request failed: {e}", provider) from e
    except ValueError as e:
        raise ProviderUnavailable(f"{provider} returned invalid JSON: {e}", provider) from e


# ── Providers ─────────────────────────────────────────────────────────


class NominatimProvider:
    """OpenStreetMap Nominatim search (free, no key)."""

    name = "nominatim"

    def __init__(self, url: str, user_agent: str, timeout: float):
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout

    def resolve_one(self, location_name: str) -> Coordinates | None:
        data = _get_json(
            self.name,
            self.url,
            {"q": location_name, "format": "json", "limit": 1},
            self.timeout,
            headers={"User-Agent": self.user_agent},
        )
        if not isinstance(data, list):
            raise ProviderUnavailable(
                f"Unexpected Nominatim response: {type(data).__name__}", self.name
            )
        if not data:
            logger.debug("Nominatim: no results for '%s'", location_name)
            return None
        try:
            item = data[0]
            return Coordinates(
                lat=float(item["lat"]),
                lng=float(item["lon"]),
                display_name=item.get("display_name") or location_name,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailable(f"Malformed Nominatim result: {e}", self.name) from e


class GoogleProvider:
    """Google Geocoding API (requires an API key)."""

    name = "google"

    def __init__(self, url: str, api_key: str, timeout: float):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def resolve_one(self, location_name: str) -> Coordinates | None:
        data = _get_json(
            self.name,
            self.url,
            {"address": location_name, "key": self.api_key},
            self.timeout,
        )
        if not isinstance(data, dict):
            raise ProviderUnavailable(
                f"Unexpected Google response: {type(data).__name__}", self.name
            )
        status = data.get("status")

        if status == "OK" and data.get("results"):
            try:
                result = data["results"][0]
                location = result["geometry"]["location"]
                return Coordinates(
                    lat=float(location["lat"]),
                    lng=float(location["lng"]),
                    display_name=result.get("formatted_address") or location_name,
                )
            except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
                raise ProviderUnavailable(f"Malformed Google result: {e}", self.name) from e

        if status == "ZERO_RESULTS":
            logger.debug("Google: no results for '%s'", location_name)
            return None

        raise ProviderUnavailable(
            f"Google Geocoding API status '{status}': {data.get('error_message', '')}",
            self.name,
        )


class MapboxProvider:
    """Mapbox forward geocoding (requires an access token)."""

    name = "mapbox"

    def __init__(self, url: str, access_token: str, timeout: float):
        self.url = url
        self.access_token = access_token
        self.timeout = timeout

    def resolve_one(self, location_name: str) -> Coordinates | None:
        data = _get_json(
            self.name,
            f"{self.url}/{quote(location_name, safe='')}.json",
            {"access_token": self.access_token, "limit": 1},
            self.timeout,
        )
        if not isinstance(data, dict):
            raise ProviderUnavailable(
                f"Unexpected Mapbox response: {type(data).__name__}", self.name
            )
        features = data.get("features") or []
        if not features:
            logger.debug("Mapbox: no results for '%s'", location_name)
            return None
        try:
            feature = features[0]
            # Mapbox centers are [lng, lat]
            lng, lat = feature["center"][0], feature["center"][1]
            return Coordinates(
                lat=float(lat),
                lng=float(lng),
                display_name=feature.get("place_name") or location_name,
            )
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise ProviderUnavailable(f"Malformed Mapbox result: {e}", self.name) from e


class GazetteerProvider:
    """Curated ``{name: (lat, lng)}`` lookup table.

    Exact (case-insensitive) match first, then substring match either way.
    """

    name = "gazetteer"

    def __init__(self, entries: dict[str, tuple[float, float]]):
        self.entries = {k.strip().lower(): v for k, v in entries.items()}

    @classmethod
    def from_file(cls, path: Path) -> GazetteerProvider:
        """Load a JSON object mapping place names to ``[lat, lng]``."""
        raw = json.loads(Path(path).read_text())
        return cls({name: (float(v[0]), float(v[1])) for name, v in raw.items()})

    def resolve_one(self, location_name: str) -> Coordinates | None:
        name = location_name.strip().lower()

        if name in self.entries:
            lat, lng = self.entries[name]
            return Coordinates(lat, lng, location_name.strip())

        for key, (lat, lng) in self.entries.items():
            if name in key or key in name:
                return Coordinates(lat, lng, key.title())

        return None


def build_providers(config: ResolverConfig) -> list[GeocodingProvider]:
    """Instantiate the provider chain in configured order.

    Paid providers without credentials, and unknown names, are skipped
    with a warning rather than failing at every lookup.
    """
    providers: list[GeocodingProvider] = []
    for name in config.providers:
        if name in ("nominatim", "openstreetmap"):
            providers.append(
                NominatimProvider(
                    config.nominatim_url, config.user_agent, config.timeout_seconds
                )
            )
        elif name == "google":
            if not config.google_api_key:
                logger.warning("Skipping google geocoder: GOOGLE_MAPS_API_KEY not set")
                continue
            providers.append(
                GoogleProvider(
                    config.google_url, config.google_api_key, config.timeout_seconds
                )
            )
        elif name == "mapbox":
            if not config.mapbox_access_token:
                logger.warning("Skipping mapbox geocoder: MAPBOX_API_KEY not set")
                continue
            providers.append(
                MapboxProvider(
                    config.mapbox_url,
                    config.mapbox_access_token,
                    config.timeout_seconds,
                )
            )
        elif name == "gazetteer":
            if not config.gazetteer_path:
                logger.warning("Skipping gazetteer: RELIEFMAP_GAZETTEER not set")
                continue
            providers.append(GazetteerProvider.from_file(Path(config.gazetteer_path)))
        else:
            logger.warning("Unknown geocoding provider '%s' ignored", name)
    return providers


# ── Coordinate parsing ────────────────────────────────────────────────


def parse_coordinates(text: str) -> Coordinates | None:
    """Parse a ``"lat,lng"`` string.

    Returns:
        Coordinates, or None if the text is not a numeric pair.

    Raises:
        InvalidLocationError: If the pair is numeric but out of range
    """
    parts = text.split(",")
    if len(parts) != 2:
        return None
    try:
        lat = float(parts[0].strip())
        lng = float(parts[1].strip())
    except ValueError:
        return None
    validate_lat_lng(lat, lng)
    return Coordinates(lat, lng, f"{lat},{lng}")


# ── Resolver ──────────────────────────────────────────────────────────


class LocationResolver:
    """Resolve place names via a sequential provider chain with caching."""

    def __init__(
        self,
        providers: list[GeocodingProvider],
        cache: TTLCache | None = None,
        chain_id: str | None = None,
        cache_ttl: int | None = None,
    ):
        self.providers = list(providers)
        self.cache = cache
        self.chain_id = chain_id or "-".join(p.name for p in self.providers)
        self.cache_ttl = cache_ttl

    @classmethod
    def from_config(
        cls, config: ResolverConfig, cache: TTLCache | None = None
    ) -> LocationResolver:
        return cls(
            build_providers(config),
            cache=cache,
            chain_id=config.chain_id,
            cache_ttl=config.cache_ttl_seconds,
        )

    def cache_key(self, location_name: str) -> str:
        return make_cache_key(CACHE_PURPOSE, self.chain_id, location_name)

    def _cached(self, key: str) -> Coordinates | None:
        if self.cache is None:
            return None
        value = self.cache.get(key)
        if value is None:
            return None
        try:
            return Coordinates.from_cache(value)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed cached coordinates under %s", key)
            return None

    def resolve(self, location_name: str) -> Coordinates:
        """Resolve ``location_name`` to coordinates.

        Raises:
            InvalidLocationError: If the name is blank
            ResolutionNotFound: If every provider failed or found nothing
        """
        if not location_name or not location_name.strip():
            raise InvalidLocationError("location_name is required")

        key = self.cache_key(location_name)
        cached = self._cached(key)
        if cached is not None:
            logger.info("Retrieved geocoding for '%s' from cache", location_name)
            return cached

        for provider in self.providers:
            try:
                coords = provider.resolve_one(location_name)
            except ProviderUnavailable as e:
                logger.warning("Geocoder %s unavailable: %s", provider.name, e)
                continue

            if coords is None:
                continue

            if self.cache is not None:
                self.cache.set(key, coords.to_cache(), self.cache_ttl)
            logger.info(
                "Geocoded '%s' via %s -> (%s, %s)",
                location_name,
                provider.name,
                coords.lat,
                coords.lng,
            )
            return coords

        logger.warning("Failed to geocode location '%s'", location_name)
        raise ResolutionNotFound(location_name)

    def resolve_or_parse(self, location: str) -> Coordinates:
        """Accept a raw ``"lat,lng"`` pair or resolve a place name."""
        coords = parse_coordinates(location) if location else None
        if coords is not None:
            return coords
        return self.resolve(location)
