"""Tests for the hosting-bridge command line."""

import functools
import json

import pytest

from hosting_bridge import cli
from hosting_bridge import config as config_module
from hosting_bridge.backends import HostingManager

from conftest import API_URL


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for key in ("HOSTING_CONFIG", "HOSTING_PROVIDER", "FORGE_API_TOKEN", "PLOI_API_TOKEN",
                "FORGE_API_URL", "PLOI_API_URL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "load_defaults", lambda: {})


@pytest.fixture
def fake_http(monkeypatch, api):
    """Route every manager the CLI builds through the fake API."""
    monkeypatch.setenv("FORGE_API_TOKEN", "forge-token")
    monkeypatch.setenv("FORGE_API_URL", API_URL)
    monkeypatch.setattr(cli, "HostingManager", functools.partial(HostingManager, http_transport=api.transport))
    return api


def test_drivers(capsys, monkeypatch):
    monkeypatch.setenv("PLOI_API_TOKEN", "ploi-token")

    assert cli.main(["drivers"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output == [
        {"driver": "forge", "default": True, "configured": False},
        {"driver": "ploi", "default": False, "configured": True},
    ]


def test_capability_matrix(capsys):
    assert cli.main(["capabilities"]) == 0

    matrix = json.loads(capsys.readouterr().out)
    assert matrix["ssh_access"] == {"forge": True, "ploi": False}


def test_capabilities_for_one_driver(capsys):
    assert cli.main(["capabilities", "--driver", "ploi"]) == 0

    capabilities = json.loads(capsys.readouterr().out)
    assert "ssh_access" not in capabilities
    assert capabilities == sorted(capabilities)


def test_servers(capsys, fake_http):
    fake_http.add("GET", "/servers", {"servers": [{"id": 1, "name": "web-1", "is_ready": True}]})

    assert cli.main(["servers"]) == 0

    servers = json.loads(capsys.readouterr().out)
    assert servers[0]["id"] == "1"
    assert servers[0]["status"] == "active"


def test_sites_for_server(capsys, fake_http):
    fake_http.add("GET", "/servers/3/sites", {"sites": [{"id": 7, "name": "a.test"}]})

    assert cli.main(["sites", "--server", "3"]) == 0

    sites = json.loads(capsys.readouterr().out)
    assert sites[0]["domain"] == "a.test"
    assert sites[0]["server_id"] == "3"


def test_failed_connection_exits_non_zero(capsys, fake_http):
    fake_http.add("GET", "/servers", {"message": "Unauthenticated."}, status=401)

    assert cli.main(["test"]) == 1

    result = json.loads(capsys.readouterr().out)
    assert result["success"] is False
    assert result["status_code"] == 401


def test_backend_errors_exit_one(fake_http):
    fake_http.add("GET", "/servers", {"message": "down"}, status=500)

    assert cli.main(["servers"]) == 1


def test_unknown_driver_exits_one():
    assert cli.main(["servers", "--driver", "cpanel"]) == 1


def test_bad_config_exits_two(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- not a mapping\n")

    assert cli.main(["--config", str(path), "drivers"]) == 2
