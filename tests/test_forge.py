"""Tests for the Laravel Forge backend against a fake API."""

import json

import pytest

from hosting_bridge.enums import (
    DeploymentStatus,
    PhpVersion,
    ServerProvider,
    ServerStatus,
    SiteStatus,
    SslStatus,
)
from hosting_bridge.exceptions import (
    AuthenticationError,
    HostingError,
    RateLimitError,
    ServerNotFoundError,
    SiteNotFoundError,
)

SERVERS = {
    "servers": [
        {"id": 1, "name": "web-1", "is_ready": True, "ip_address": "1.2.3.4",
         "php_version": "php82", "provider": "ocean2", "region": "fra1"},
        {"id": 2, "name": "web-2", "is_ready": False},
    ]
}

SITES_1 = {"sites": [
    {"id": 10, "name": "a.test", "status": "installed", "is_secured": True,
     "php_version": "php83", "directory": "/public", "aliases": ["www.a.test"]},
]}
SITES_2 = {"sites": [{"id": 20, "name": "b.test", "status": "installing"}]}


@pytest.fixture
def forge_api(api):
    api.add("GET", "/servers", SERVERS)
    api.add("GET", "/servers/1/sites", SITES_1)
    api.add("GET", "/servers/2/sites", SITES_2)
    api.add("GET", "/servers/1/sites/10", {"site": SITES_1["sites"][0]})
    return api


@pytest.fixture
def forge(make_manager, forge_api):
    return make_manager().resolve("forge")


def test_list_servers_maps_entities(forge):
    servers = forge.list_servers()

    assert [s.id for s in servers] == ["1", "2"]
    first = servers[0]
    assert first.status is ServerStatus.ACTIVE
    assert first.ip_address == "1.2.3.4"
    assert first.php_version is PhpVersion.PHP_82
    assert first.server_provider is ServerProvider.DIGITALOCEAN
    assert first.region == "fra1"
    assert first.metadata["is_ready"] is True
    assert servers[1].status is ServerStatus.PROVISIONING


def test_list_servers_is_cached(forge, forge_api):
    forge.list_servers()
    forge.list_servers()

    assert forge_api.calls("GET", "/servers") == 1


def test_get_server(forge, forge_api):
    forge_api.add("GET", "/servers/1", {"server": SERVERS["servers"][0]})

    assert forge.get_server("1").name == "web-1"


def test_get_missing_server_raises_not_found(forge):
    with pytest.raises(ServerNotFoundError) as exc_info:
        forge.get_server("99")

    assert exc_info.value.code == 404
    assert exc_info.value.message == "Server 99 not found on Laravel Forge"


def test_list_sites_for_one_server(forge, forge_api):
    sites = forge.list_sites("1")

    assert len(sites) == 1
    site = sites[0]
    assert site.id == "10"
    assert site.server_id == "1"
    assert site.domain == "a.test"
    assert site.status is SiteStatus.ACTIVE
    assert site.has_valid_ssl()
    assert site.php_version is PhpVersion.PHP_83
    assert site.aliases == ("www.a.test",)
    assert forge_api.calls("GET", "/servers") == 0


def test_list_sites_fans_out_over_servers(forge, forge_api):
    sites = forge.list_sites()

    assert [(s.server_id, s.domain) for s in sites] == [("1", "a.test"), ("2", "b.test")]
    assert sites[1].ssl_status is SslStatus.NONE
    assert sites[1].is_pending()


def test_list_sites_aborts_on_first_failure(forge, forge_api):
    forge_api.add("GET", "/servers/2/sites", {"message": "boom"}, status=500)

    with pytest.raises(HostingError) as exc_info:
        forge.list_sites()

    assert exc_info.value.code == 500


def test_get_site(forge, forge_api):
    site = forge.get_site("10")

    assert site.domain == "a.test"
    assert forge_api.calls("GET", "/servers/1/sites/10") == 1


def test_get_unknown_site_raises(forge):
    with pytest.raises(SiteNotFoundError) as exc_info:
        forge.get_site("404")

    assert exc_info.value.message == "Site 404 not found on Laravel Forge"


def test_get_site_detail_404_names_server(forge, forge_api):
    with pytest.raises(SiteNotFoundError) as exc_info:
        forge.get_site("20")

    assert exc_info.value.server_id == "2"
    assert exc_info.value.message == "Site 20 not found on server 2"


def test_create_site_invalidates_site_cache(forge, forge_api):
    forge_api.add("POST", "/servers/1/sites", {"site": {"id": 11, "name": "new.test", "status": "installing"}})

    forge.list_sites("1")
    site = forge.create_site("1", {"domain": "new.test", "php_version": PhpVersion.PHP_82})
    forge.list_sites("1")

    assert site.id == "11"
    assert site.server_id == "1"
    assert forge_api.calls("GET", "/servers/1/sites") == 2

    post = [r for r in forge_api.requests if r.method == "POST"][0]
    body = json.loads(post.content)
    assert body == {"domain": "new.test", "project_type": "php", "php_version": "php82", "directory": "/public"}


def test_create_server_payload(forge, forge_api):
    forge_api.add("POST", "/servers", {"server": {"id": 3, "name": "db-1", "is_ready": False}})

    server = forge.create_server({"name": "db-1", "ubuntu_version": "22.04"})

    assert server.status is ServerStatus.PROVISIONING
    body = json.loads(forge_api.requests[-1].content)
    assert body["php_version"] == "php83"
    assert body["provider"] == "ocean2"
    assert body["ubuntu_version"] == "22.04"


def test_restart_service(forge, forge_api):
    forge_api.add("POST", "/servers/1/nginx/restart", {})

    assert forge.restart_service("1", "nginx") is True
    assert forge.restart_service("1", "redis") is False
    assert forge_api.calls("POST", "/servers/1/redis/restart") == 0


def test_set_php_version(forge, forge_api):
    forge_api.add("PUT", "/servers/1/sites/10/php", {})

    assert forge.set_php_version("10", PhpVersion.PHP_81) is True
    request = [r for r in forge_api.requests if r.method == "PUT"][0]
    assert json.loads(request.content) == {"version": "php81"}


def test_get_php_version_reads_site(forge):
    assert forge.get_php_version("10") is PhpVersion.PHP_83


def test_databases(forge, forge_api):
    forge_api.add("GET", "/servers/1/databases", {"databases": [{"id": 4, "name": "app"}]})
    forge_api.add("GET", "/servers/1/database-users", {"users": [{"id": 6, "name": "app", "databases": [4]}]})

    databases = forge.list_databases("1")
    users = forge.list_database_users("1")

    assert databases[0].name == "app"
    assert databases[0].server_id == "1"
    assert users[0].username == "app"
    assert users[0].has_access_to("4")


def test_ssl_certificate_prefers_active(forge, forge_api):
    forge_api.add("GET", "/servers/1/sites/10/certificates", {"certificates": [
        {"id": 1, "active": False, "domain": "a.test"},
        {"id": 2, "active": True, "domain": "a.test", "type": "letsencrypt"},
    ]})

    certificate = forge.get_ssl_certificate("10")

    assert certificate.id == "2"
    assert certificate.status is SslStatus.ACTIVE
    assert certificate.auto_renewal is True
    assert certificate.domains == ("a.test",)


def test_ssl_certificate_absent_or_failing_is_none(forge, forge_api):
    forge_api.add("GET", "/servers/1/sites/10/certificates", {"certificates": []})
    assert forge.get_ssl_certificate("10") is None

    forge.pipeline.forget("ssl:10")
    forge_api.add("GET", "/servers/1/sites/10/certificates", {"message": "down"}, status=500)
    assert forge.get_ssl_certificate("10") is None


def test_install_ssl_certificate(forge, forge_api):
    forge_api.add("POST", "/servers/1/sites/10/certificates/letsencrypt",
                  {"certificate": {"id": 9, "active": False, "domain": "a.test"}})

    certificate = forge.install_ssl_certificate("10")

    assert certificate.status is SslStatus.PENDING
    request = [r for r in forge_api.requests if r.method == "POST"][0]
    assert json.loads(request.content) == {"domains": ["a.test"]}


def test_deploy_returns_pending(forge, forge_api):
    forge_api.add("POST", "/servers/1/sites/10/deployment/deploy", {})

    deployment = forge.deploy("10")

    assert deployment.status is DeploymentStatus.PENDING
    assert deployment.site_id == "10"
    assert deployment.id.startswith("deploy_")


def test_deployment_history(forge, forge_api):
    forge_api.add("GET", "/servers/1/sites/10/deployment-history", {"deployments": [
        {"id": 5, "status": "finished", "commit_hash": "abc",
         "started_at": "2025-01-01T10:00:00Z", "ended_at": "2025-01-01T10:02:00Z"},
    ]})

    deployments = forge.list_deployments("10")
    status = forge.get_deployment_status("10", "5")
    missing = forge.get_deployment_status("10", "6")

    assert deployments[0].duration_seconds == 120
    assert status.is_successful()
    assert status.commit_hash == "abc"
    assert missing.status is DeploymentStatus.UNKNOWN
    # deployments are never cached
    assert forge_api.calls("GET", "/servers/1/sites/10/deployment-history") == 3


def test_test_connection_success(forge):
    result = forge.test_connection()

    assert result.success
    assert result.status_code == 200
    assert result.data == {"provider": "forge", "server_count": 2}
    assert result.latency_ms is not None


def test_test_connection_reports_auth_failure(make_manager, api):
    api.add("GET", "/servers", {"message": "Unauthenticated."}, status=401)

    result = make_manager().resolve("forge").test_connection()

    assert not result.success
    assert result.status_code == 401
    assert result.message == "Invalid API token for Laravel Forge"


def test_test_connection_without_token(make_manager, api):
    forge = make_manager(providers={"forge": {"api_token": None}}).resolve("forge")

    result = forge.test_connection()

    assert not result.success
    assert result.message == "Provider not configured. Missing API credentials."
    assert len(api.requests) == 0


def test_auth_errors_propagate_from_operations(make_manager, api):
    api.add("GET", "/servers", {"message": "Forbidden"}, status=403)

    with pytest.raises(AuthenticationError) as exc_info:
        make_manager().resolve("forge").list_servers()

    assert exc_info.value.code == 403


def test_rate_limit_applies_to_backend_calls(make_manager, forge_api):
    forge = make_manager(rate_limits={"per_minute": 2}).resolve("forge")

    forge.list_sites("1")
    forge.list_sites("2")

    with pytest.raises(RateLimitError) as exc_info:
        forge.list_servers()

    assert exc_info.value.retry_after > 0
    assert forge_api.calls("GET", "/servers") == 0
