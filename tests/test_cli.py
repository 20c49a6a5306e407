import os
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from reliefmap.cli import app

from tests.helpers import north_of

runner = CliRunner()


@pytest.fixture(autouse=True)
def inject_version(monkeypatch):
    # print_logo imports __version__ from the package at call time
    monkeypatch.setattr("reliefmap.__version__", "0.0.1")


@pytest.fixture
def use_core(core):
    with patch("reliefmap.cli._core", return_value=core):
        yield core


def test_help_shows_app_name():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "ReliefMap CLI" in result.stdout


def test_version_option_exits_zero_and_shows_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "v0.0.1" in result.stdout


def test_unknown_command_reports_error():
    result = runner.invoke(app, ["not-a-cmd"])
    assert result.exit_code != 0
    error_message = "No such command 'not-a-cmd'"
    assert (
        error_message in result.stdout
        or (hasattr(result, "stderr") and error_message in result.stderr)
        or error_message in result.output
    )


def test_geocode_prints_point(use_core):
    result = runner.invoke(app, ["geocode", "Newark"])
    assert result.exit_code == 0
    assert "POINT(-74.1724 40.7357)" in result.stdout


def test_geocode_unresolvable_exits_one(use_core):
    result = runner.invoke(app, ["geocode", "Atlantis"])
    assert result.exit_code == 1
    assert "ResolutionNotFound" in result.stdout


def test_near_lists_results(use_core):
    """Resources within the radius are counted in the table title."""
    lat, lng = north_of(40.7128, -74.0060, 2)
    use_core.create_resource("Shelter", f"{lat},{lng}", "shelter")
    use_core.create_resource("Far", "Queens, NYC", "shelter")

    result = runner.invoke(app, ["near", "40.7128,-74.0060", "--radius", "5"])

    assert result.exit_code == 0
    assert "1 resource(s) within 5 km" in result.stdout


def test_near_nothing_found(use_core):
    result = runner.invoke(app, ["near", "Newark", "-r", "1"])
    assert result.exit_code == 0
    assert "No resources within 1 km" in result.stdout
    assert "warning:" in result.stdout


def test_near_invalid_radius(use_core):
    result = runner.invoke(app, ["near", "Newark", "--radius", "-3"])
    assert result.exit_code == 1
    assert "InvalidRadiusError" in result.stdout


def test_sweep_cache(use_core):
    use_core.cache.set("stale", 1, ttl_seconds=-1)
    use_core.cache.set("fresh", 2)

    result = runner.invoke(app, ["sweep-cache"])

    assert result.exit_code == 0
    assert "Removed 1 expired cache entry" in result.stdout


def test_serve_runs_uvicorn_factory(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("RELIEFMAP_PORT=9123\n")

    with patch.dict(os.environ, {}), patch("uvicorn.run") as mock_run:
        os.environ.pop("RELIEFMAP_PORT", None)
        result = runner.invoke(app, ["serve", "--env-file", str(env_file)])

    assert result.exit_code == 0
    args, kwargs = mock_run.call_args
    assert args[0] == "reliefmap.server:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == 9123
    assert "Loaded 1 variable(s)" in result.stdout


def test_serve_port_option_wins(tmp_path):
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(
            app, ["serve", "--port", "8081", "--env-file", str(tmp_path / "none")]
        )
    assert result.exit_code == 0
    assert mock_run.call_args.kwargs["port"] == 8081
    assert "warning:" in result.stdout


def test_serve_without_env_file_is_quiet(tmp_path, monkeypatch):
    """The implicit .env is optional and its absence is not reported."""
    monkeypatch.chdir(tmp_path)
    with patch("uvicorn.run"):
        result = runner.invoke(app, ["serve"])
    assert result.exit_code == 0
    assert "warning:" not in result.stdout
