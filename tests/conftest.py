"""Shared fixtures: in-memory store, controllable clock, offline geocoder."""

import pytest

from reliefmap.api import ReliefMap
from reliefmap.config import ReliefMapConfig
from reliefmap.core.backends import DuckDBBackend
from reliefmap.core.cache import TTLCache
from reliefmap.core.geocoding import GazetteerProvider, LocationResolver

from tests.helpers import GAZETTEER, FakeClock


@pytest.fixture
def backend():
    db = DuckDBBackend(":memory:")
    yield db
    db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(backend, clock):
    return TTLCache(backend, default_ttl=3600, clock=clock)


@pytest.fixture
def resolver(cache):
    return LocationResolver(
        [GazetteerProvider(GAZETTEER)], cache=cache, chain_id="gazetteer"
    )


@pytest.fixture
def core(backend, resolver):
    """ReliefMap wired to an in-memory store and the offline gazetteer."""
    return ReliefMap(ReliefMapConfig(), backend, resolver=resolver)
