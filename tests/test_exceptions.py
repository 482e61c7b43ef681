"""Tests for the error hierarchy and its message factories."""

import pytest

from hosting_bridge.enums import Capability
from hosting_bridge.exceptions import (
    AuthenticationError,
    ConfigurationError,
    HostingError,
    ProvisioningError,
    RateLimitError,
    ResourceNotFoundError,
    ServerNotFoundError,
    SiteNotFoundError,
    SslError,
    UnsupportedOperationError,
)


@pytest.mark.parametrize("error", [
    AuthenticationError.invalid_token("Forge"),
    RateLimitError.with_retry_after("Forge", 5),
    ServerNotFoundError("1"),
    SiteNotFoundError("2"),
    UnsupportedOperationError.capability(Capability.BACKUP_CREATION, "Forge"),
    ProvisioningError.server_failed("boom"),
    SslError.invalid_certificate("bad chain"),
    ConfigurationError("bad file", "/tmp/x.yaml"),
])
def test_every_error_is_a_hosting_error(error):
    assert isinstance(error, HostingError)
    assert str(error) == error.message


def test_authentication_messages():
    assert AuthenticationError.invalid_token("Laravel Forge").message == "Invalid API token for Laravel Forge"
    assert AuthenticationError.expired_token("Ploi").message == "API token for Ploi has expired"
    assert AuthenticationError.missing_credentials("Ploi").message == "Missing API credentials for Ploi"

    denied = AuthenticationError.insufficient_permissions("Ploi", "servers:write")
    assert denied.code == 403
    assert denied.message == "Insufficient permissions for Ploi: missing 'servers:write'"
    assert AuthenticationError.insufficient_permissions("Ploi").message == "Insufficient permissions for Ploi"


def test_rate_limit_carries_retry_after():
    error = RateLimitError.with_retry_after("Ploi", 42)

    assert error.code == 429
    assert error.retry_after == 42
    assert error.message == "Rate limit exceeded for Ploi. Please try again in 42 seconds."
    assert error.context == {"provider": "Ploi", "retry_after": 42}


def test_rate_limit_window_factories():
    minute = RateLimitError.per_minute("Forge", 30, 12)
    assert minute.message == "Rate limit of 30 requests per minute exceeded for Forge. Retry in 12 seconds."
    assert minute.retry_after == 12
    assert minute.context["period"] == "minute"

    assert RateLimitError.per_minute("Forge", 30).retry_after == 60
    assert RateLimitError.per_hour("Forge", 1000).retry_after == 3600


def test_not_found_messages():
    assert ServerNotFoundError("12").message == "Server not found: 12"
    assert ServerNotFoundError.on_backend("12", "Ploi").message == "Server 12 not found on Ploi"
    assert SiteNotFoundError("3", "12").message == "Site 3 not found on server 12"
    assert SiteNotFoundError.on_backend("3", "Ploi").message == "Site 3 not found on Ploi"
    assert (SiteNotFoundError.by_domain("shop.test", "Ploi").message
            == "Site with domain 'shop.test' not found on Ploi")


def test_not_found_context():
    error = SiteNotFoundError("3", "12", "Forge")

    assert isinstance(error, ResourceNotFoundError)
    assert error.code == 404
    assert error.resource_id == "3"
    assert error.server_id == "12"
    assert error.kind == "site"
    assert error.context == {"site_id": "3", "server_id": "12", "provider": "Forge"}


def test_unsupported_operation_factories():
    by_capability = UnsupportedOperationError.capability(Capability.SITE_SUSPENSION, "Laravel Forge")
    assert by_capability.message == "The capability 'Site Suspension' is not supported by Laravel Forge"
    assert by_capability.capability is Capability.SITE_SUSPENSION
    assert by_capability.code == 501
    assert not by_capability.is_not_implemented

    pending = UnsupportedOperationError.not_implemented("restore_backup", "Ploi")
    assert pending.message == "The operation 'restore_backup' is not yet implemented for Ploi"
    assert pending.operation == "restore_backup"
    assert pending.is_not_implemented

    assert (UnsupportedOperationError.operation("reboot", "Ploi").message
            == "The operation 'reboot' is not supported by Ploi")
    assert (UnsupportedOperationError.unknown_driver("cpanel").message
            == "Hosting driver [cpanel] is not supported")


def test_unsupported_factories_stay_on_class_after_instances_exist():
    existing = UnsupportedOperationError.operation("reboot", "Ploi")
    no_capability = UnsupportedOperationError.not_implemented("deploy", "Ploi")

    assert existing.operation == "reboot"
    assert existing.capability is None
    assert no_capability.capability is None

    again = UnsupportedOperationError.capability(Capability.GIT_DEPLOYMENT, "Ploi")
    assert again.capability is Capability.GIT_DEPLOYMENT
    assert again.operation is None
    assert UnsupportedOperationError.operation("suspend", "Ploi").operation == "suspend"


def test_provisioning_errors():
    timeout = ProvisioningError.timeout("server", "99")
    assert timeout.code == 408
    assert timeout.message == "Provisioning timeout for server (99)"
    assert timeout.context["resource_id"] == "99"

    invalid = ProvisioningError.invalid_configuration("site", ["domain is required", "bad php"])
    assert invalid.code == 422
    assert invalid.message == "Invalid site configuration: domain is required, bad php"
    assert invalid.context["errors"] == ["domain is required", "bad php"]

    assert ProvisioningError.database_failed("disk full", "7").resource_type == "database"


def test_ssl_errors():
    error = SslError.installation_failed("5", "DNS not pointing to server")
    assert error.message == "SSL installation failed for site 5: DNS not pointing to server"
    assert error.site_id == "5"

    assert SslError.validation_failed("a.test", "timeout").domain == "a.test"
    assert SslError.renewal_failed("5", "rate limited").message == "SSL renewal failed for site 5: rate limited"


def test_to_dict():
    data = ServerNotFoundError.on_backend("12", "Ploi").to_dict()

    assert data == {
        "error": "ServerNotFoundError",
        "message": "Server 12 not found on Ploi",
        "code": 404,
        "context": {"server_id": "12", "provider": "Ploi"},
    }
