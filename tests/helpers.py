"""Test doubles and geometry helpers shared across test modules."""

from datetime import datetime, timedelta

from reliefmap.core.exceptions import ProviderUnavailable
from reliefmap.core.models import Coordinates

# Kilometers per degree of latitude on a 6371 km sphere
KM_PER_DEG_LAT = 111.19492664455873

GAZETTEER = {
    "Manhattan, NYC": (40.7831, -73.9712),
    "Brooklyn, NYC": (40.6782, -73.9442),
    "Queens, NYC": (40.7282, -73.7949),
    "Lower Manhattan": (40.7128, -74.0060),
    "Jersey City": (40.7178, -74.0431),
    "Newark": (40.7357, -74.1724),
}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeProvider:
    """Geocoding provider with scripted answers that records every call."""

    def __init__(self, name: str, results: dict | None = None, fail: bool = False):
        self.name = name
        self.results = results or {}
        self.fail = fail
        self.calls: list[str] = []

    def resolve_one(self, location_name: str) -> Coordinates | None:
        self.calls.append(location_name)
        if self.fail:
            raise ProviderUnavailable(f"{self.name} is down", self.name)
        return self.results.get(location_name)


def north_of(lat: float, lng: float, km: float) -> tuple[float, float]:
    """Point ``km`` kilometers due north of (lat, lng)."""
    return lat + km / KM_PER_DEG_LAT, lng
