import logging
import os
from unittest.mock import patch

from reliefmap.config import (
    DEFAULT_PROVIDERS,
    DEFAULT_RADIUS_KM,
    ReliefMapConfig,
    ResolverConfig,
    load_env_file,
    logger,
    setup_logging,
)


def test_defaults_without_env():
    """Test that an empty environment yields the documented defaults."""
    with patch.dict(os.environ, {}, clear=True):
        cfg = ReliefMapConfig.from_env()

    assert cfg.db_path == ":memory:"
    assert cfg.default_radius_km == DEFAULT_RADIUS_KM
    assert cfg.port == 8000
    assert cfg.cache_ttl_seconds == 3600
    assert cfg.resolver.providers == DEFAULT_PROVIDERS
    assert cfg.resolver.google_api_key is None


def test_values_from_env():
    env = {
        "RELIEFMAP_DB_PATH": "/tmp/relief.duckdb",
        "RELIEFMAP_DEFAULT_RADIUS_KM": "25",
        "RELIEFMAP_PORT": "9000",
        "RELIEFMAP_CACHE_TTL": "60",
        "RELIEFMAP_GEOCODERS": " Nominatim, google ,",
        "RELIEFMAP_GEOCODE_TIMEOUT": "2.5",
        "GOOGLE_MAPS_API_KEY": "gkey",
    }
    with patch.dict(os.environ, env, clear=True):
        cfg = ReliefMapConfig.from_env()

    assert cfg.db_path == "/tmp/relief.duckdb"
    assert cfg.default_radius_km == 25.0
    assert cfg.port == 9000
    assert cfg.cache_ttl_seconds == 60
    assert cfg.resolver.providers == ("nominatim", "google")
    assert cfg.resolver.timeout_seconds == 2.5
    assert cfg.resolver.google_api_key == "gkey"


def test_bad_number_falls_back_to_default():
    """Test that a non-numeric value is ignored rather than crashing startup."""
    with patch.dict(os.environ, {"RELIEFMAP_PORT": "eighty"}, clear=True):
        cfg = ReliefMapConfig.from_env()
    assert cfg.port == 8000


def test_chain_id_follows_provider_order():
    assert ResolverConfig(providers=("google", "nominatim")).chain_id == (
        "google-nominatim"
    )
    assert ResolverConfig(providers=("nominatim", "google")).chain_id == (
        "nominatim-google"
    )


def test_load_env_file_does_not_override(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\n"
        "RELIEFMAP_PORT=9100\n"
        "MAPBOX_API_KEY = token\n"
        "not a pair\n"
    )

    with patch.dict(os.environ, {"RELIEFMAP_PORT": "8001"}, clear=True):
        loaded = load_env_file(env_file)
        assert loaded == 1
        assert os.environ["RELIEFMAP_PORT"] == "8001"
        assert os.environ["MAPBOX_API_KEY"] == "token"


def test_load_env_file_missing(tmp_path):
    assert load_env_file(tmp_path / "absent.env") == 0


def test_setup_logging_adds_one_handler():
    """Test that repeated setup does not stack handlers."""
    setup_logging(logging.DEBUG)
    count = len(logger.handlers)
    setup_logging(logging.WARNING)

    assert len(logger.handlers) == count
    assert logger.level == logging.WARNING
