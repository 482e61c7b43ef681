"""
Abstract base class for hosting backends.

All hosting control panels must implement this interface.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, List, Optional

import httpx

from ..cache import Cache
from ..capabilities import ensure_capability
from ..enums import Capability, PhpVersion
from ..exceptions import HostingError, UnsupportedOperationError
from ..models import (
    Backup,
    ConnectionResult,
    Database,
    DatabaseUser,
    Deployment,
    Server,
    ServerMetrics,
    Site,
    SslCertificate,
    SystemUser,
)
from ..pipeline import DEFAULT_CACHE_PREFIX, DEFAULT_TIMEOUT, RequestPipeline
from ..rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_PHP_VERSIONS = [
    PhpVersion.PHP_74,
    PhpVersion.PHP_80,
    PhpVersion.PHP_81,
    PhpVersion.PHP_82,
    PhpVersion.PHP_83,
]


class HostingBackend(ABC):
    """Abstract base class for hosting backends.

    Each control panel (Forge, Ploi, ...) implements this interface to be
    usable through the ``HostingManager``. Optional operations default to
    raising ``UnsupportedOperationError``; subclasses override only what
    their capability set advertises.

    Capability-gated defaults run the capability guard first, so an
    unsupported capability is reported as such rather than as
    "not implemented".
    """

    #: Ceiling for the 60 second rate-limit window unless config overrides it
    requests_per_minute: int = 60

    #: Endpoint called by ``test_connection``
    test_connection_endpoint: str = 'servers'

    def __init__(
        self,
        config: Dict[str, Any],
        cache: Optional[Cache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize backend with configuration.

        Args:
            config: Merged backend config (credentials, api_url, cache and
                rate-limit settings)
            cache: Shared response cache
            rate_limiter: Shared rate limiter
            http_transport: Optional httpx transport override
        """
        self.config = dict(config)
        self.api_token: Optional[str] = self.config.get('api_token') or None
        self.api_url: str = self.config.get('api_url') or self.default_api_url()

        configured_rpm = self.config.get('requests_per_minute')
        if configured_rpm is not None:
            self.requests_per_minute = int(configured_rpm)

        self.pipeline = RequestPipeline(
            name=self.name(),
            display_name=self.display_name(),
            base_url=self.api_url,
            headers=self.default_headers(),
            cache=cache,
            rate_limiter=rate_limiter,
            requests_per_minute=self.requests_per_minute,
            rate_limit_enabled=bool(self.config.get('rate_limit_enabled', True)),
            cache_enabled=bool(self.config.get('cache_enabled', True)),
            cache_prefix=self.config.get('cache_prefix', DEFAULT_CACHE_PREFIX),
            cache_ttl=self.config.get('cache_ttl'),
            timeout=self.config.get('timeout', DEFAULT_TIMEOUT),
            transport=http_transport,
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @abstractmethod
    def name(self) -> str:
        """Driver name, e.g. 'forge'."""
        pass

    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name used in messages, e.g. 'Laravel Forge'."""
        pass

    @abstractmethod
    def default_api_url(self) -> str:
        pass

    @abstractmethod
    def capabilities(self) -> FrozenSet[Capability]:
        """Capabilities this backend supports."""
        pass

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities()

    def is_configured(self) -> bool:
        return bool(self.api_token) and bool(self.api_url)

    def default_headers(self) -> Dict[str, str]:
        headers = {
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }
        if self.api_token:
            headers['Authorization'] = f"Bearer {self.api_token}"
        return headers

    def test_connection(self) -> ConnectionResult:
        """Call a cheap endpoint and report latency.

        Never raises for API failures; they come back as a failed result.
        """
        if not self.is_configured():
            return ConnectionResult.failed(
                'Provider not configured. Missing API credentials.',
                None,
                {'provider': self.name()},
            )

        started = time.perf_counter()
        try:
            response = self._request('GET', self.test_connection_endpoint)
        except HostingError as e:
            logger.error(f"{self.display_name()} connection test failed: {e}")
            return ConnectionResult.failed(e.message, e.code, {'provider': self.name()})

        latency_ms = int((time.perf_counter() - started) * 1000)
        return ConnectionResult.succeeded(
            'Connection successful',
            self._connection_details(response),
            latency_ms,
        )

    def close(self) -> None:
        self.pipeline.close()

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        cache_key: Optional[str] = None,
        resource: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.pipeline.execute(method, endpoint, payload, cache_key, resource)

    def _forget(self, *cache_keys: str) -> None:
        for key in cache_keys:
            self.pipeline.forget(key)

    def _ensure(self, capability: Capability) -> None:
        ensure_capability(self, capability)

    def _not_implemented(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError.not_implemented(operation, self.display_name())

    def _connection_details(self, response: Dict[str, Any]) -> Dict[str, Any]:
        return {'provider': self.name()}

    # ------------------------------------------------------------------
    # Servers
    # ------------------------------------------------------------------

    def list_servers(self) -> List[Server]:
        """All servers visible to the configured token.

        Returns:
            Servers in the order the panel lists them (cached per backend)

        Raises:
            UnsupportedOperationError: Backend lacks SERVER_MANAGEMENT
            HostingError: The API call failed
        """
        self._ensure(Capability.SERVER_MANAGEMENT)
        raise self._not_implemented('list_servers')

    def get_server(self, server_id: str) -> Server:
        """Fetch one server.

        Args:
            server_id: Panel identifier of the server

        Raises:
            UnsupportedOperationError: Backend lacks SERVER_MANAGEMENT
            ServerNotFoundError: The panel does not know the server
            HostingError: Any other API failure
        """
        self._ensure(Capability.SERVER_MANAGEMENT)
        raise self._not_implemented('get_server')

    def create_server(self, config: Dict[str, Any]) -> Server:
        """Provision a new server through the panel.

        Args:
            config: Panel-specific creation payload (provider, region, size, ...)

        Returns:
            The server as reported right after the request, usually still installing

        Raises:
            UnsupportedOperationError: Backend lacks SERVER_PROVISIONING
        """
        self._ensure(Capability.SERVER_PROVISIONING)
        raise self._not_implemented('create_server')

    def delete_server(self, server_id: str) -> bool:
        """Delete a server. Returns True once the panel accepted the request."""
        self._ensure(Capability.SERVER_MANAGEMENT)
        raise self._not_implemented('delete_server')

    def reboot_server(self, server_id: str) -> bool:
        """Request a reboot. Returns True once the panel accepted the request."""
        self._ensure(Capability.SERVER_MANAGEMENT)
        raise self._not_implemented('reboot_server')

    def get_server_metrics(self, server_id: str) -> ServerMetrics:
        """Current resource usage of a server.

        Raises:
            UnsupportedOperationError: Backend lacks RESOURCE_MONITORING
        """
        self._ensure(Capability.RESOURCE_MONITORING)
        raise self._not_implemented('get_server_metrics')

    def restart_service(self, server_id: str, service: str) -> bool:
        """Restart a service such as 'nginx' or 'mysql' on a server.

        Args:
            server_id: Panel identifier of the server
            service: Service name as the panel spells it
        """
        self._ensure(Capability.SERVER_MANAGEMENT)
        raise self._not_implemented('restart_service')

    def provider_metadata(self, cloud_provider: Optional[str] = None) -> Dict[str, Any]:
        """Backend-specific metadata (regions, sizes, credentials). Advisory."""
        return {}

    # ------------------------------------------------------------------
    # System users
    # ------------------------------------------------------------------

    def list_system_users(self, server_id: str) -> List[SystemUser]:
        """Unix accounts on a server that sites can run as."""
        self._ensure(Capability.SYSTEM_USER_MANAGEMENT)
        raise self._not_implemented('list_system_users')

    def get_system_user(self, server_id: str, user_id: str) -> SystemUser:
        self._ensure(Capability.SYSTEM_USER_MANAGEMENT)
        raise self._not_implemented('get_system_user')

    def create_system_user(self, server_id: str, config: Dict[str, Any]) -> SystemUser:
        self._ensure(Capability.SYSTEM_USER_MANAGEMENT)
        raise self._not_implemented('create_system_user')

    def delete_system_user(self, server_id: str, user_id: str) -> bool:
        self._ensure(Capability.SYSTEM_USER_MANAGEMENT)
        raise self._not_implemented('delete_system_user')

    # ------------------------------------------------------------------
    # Sites
    # ------------------------------------------------------------------

    def list_sites(self, server_id: Optional[str] = None) -> List[Site]:
        """Sites on one server, or on every server when ``server_id`` is None.

        Args:
            server_id: Restrict the listing to this server

        Returns:
            Sites with ``server_id`` set to the server they were listed from

        Raises:
            HostingError: The API call failed
        """
        raise self._not_implemented('list_sites')

    def get_site(self, site_id: str) -> Site:
        """Fetch one site by its panel identifier.

        Raises:
            SiteNotFoundError: The panel does not know the site
            HostingError: Any other API failure
        """
        raise self._not_implemented('get_site')

    def create_site(self, server_id: str, config: Dict[str, Any]) -> Site:
        """Create a site on a server.

        Args:
            server_id: Server that will host the site
            config: Panel-specific payload; 'domain' is always required

        Raises:
            UnsupportedOperationError: Backend lacks SITE_PROVISIONING
            HostingError: The panel rejected the payload (code 422)
        """
        self._ensure(Capability.SITE_PROVISIONING)
        raise self._not_implemented('create_site')

    def delete_site(self, site_id: str) -> bool:
        """Delete a site and drop its server's cached site listing."""
        raise self._not_implemented('delete_site')

    def suspend_site(self, site_id: str) -> bool:
        """Take a site offline without deleting it.

        Raises:
            UnsupportedOperationError: Backend lacks SITE_SUSPENSION
        """
        self._ensure(Capability.SITE_SUSPENSION)
        raise self._not_implemented('suspend_site')

    def unsuspend_site(self, site_id: str) -> bool:
        self._ensure(Capability.SITE_SUSPENSION)
        raise self._not_implemented('unsuspend_site')

    # ------------------------------------------------------------------
    # PHP
    # ------------------------------------------------------------------

    def available_php_versions(self) -> List[PhpVersion]:
        return list(DEFAULT_PHP_VERSIONS)

    def get_php_version(self, site_id: str) -> PhpVersion:
        site = self.get_site(site_id)
        return site.php_version or PhpVersion.recommended()

    def set_php_version(self, site_id: str, version: PhpVersion) -> bool:
        self._ensure(Capability.PHP_VERSION_SWITCHING)
        raise self._not_implemented('set_php_version')

    # ------------------------------------------------------------------
    # Databases
    # ------------------------------------------------------------------

    def list_databases(self, server_id: str) -> List[Database]:
        self._ensure(Capability.DATABASE_MANAGEMENT)
        raise self._not_implemented('list_databases')

    def create_database(self, server_id: str, name: str) -> Database:
        self._ensure(Capability.DATABASE_MANAGEMENT)
        raise self._not_implemented('create_database')

    def delete_database(self, server_id: str, database_id: str) -> bool:
        self._ensure(Capability.DATABASE_MANAGEMENT)
        raise self._not_implemented('delete_database')

    def list_database_users(self, server_id: str) -> List[DatabaseUser]:
        self._ensure(Capability.DATABASE_MANAGEMENT)
        raise self._not_implemented('list_database_users')

    def create_database_user(self, server_id: str, username: str, password: str) -> DatabaseUser:
        self._ensure(Capability.DATABASE_MANAGEMENT)
        raise self._not_implemented('create_database_user')

    def delete_database_user(self, server_id: str, user_id: str) -> bool:
        self._ensure(Capability.DATABASE_MANAGEMENT)
        raise self._not_implemented('delete_database_user')

    # ------------------------------------------------------------------
    # SSL
    # ------------------------------------------------------------------

    def get_ssl_certificate(self, site_id: str) -> Optional[SslCertificate]:
        """Current certificate for a site.

        Returns:
            The active certificate, or None when the site has none or the
            certificate listing could not be fetched

        Raises:
            SiteNotFoundError: The site itself is unknown
        """
        return None

    def install_ssl_certificate(self, site_id: str) -> SslCertificate:
        """Request a Let's Encrypt certificate for the site's primary domain.

        Returns:
            The certificate as reported right after the request, usually pending

        Raises:
            UnsupportedOperationError: Backend lacks SSL_INSTALLATION
        """
        self._ensure(Capability.SSL_INSTALLATION)
        raise self._not_implemented('install_ssl_certificate')

    def install_custom_ssl(self, site_id: str, certificate: str, private_key: str) -> SslCertificate:
        """Install a certificate obtained elsewhere.

        Args:
            site_id: Site the certificate is for
            certificate: PEM-encoded certificate chain
            private_key: PEM-encoded private key; never logged

        Raises:
            UnsupportedOperationError: Backend lacks SSL_INSTALLATION
        """
        self._ensure(Capability.SSL_INSTALLATION)
        raise self._not_implemented('install_custom_ssl')

    def remove_ssl_certificate(self, site_id: str) -> bool:
        """Remove the site's active certificate. A site without one counts as done."""
        self._ensure(Capability.SSL_INSTALLATION)
        raise self._not_implemented('remove_ssl_certificate')

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    def deploy(self, site_id: str) -> Deployment:
        """Trigger a deployment from the site's repository.

        Raises:
            UnsupportedOperationError: Backend lacks GIT_DEPLOYMENT
        """
        self._ensure(Capability.GIT_DEPLOYMENT)
        raise self._not_implemented('deploy')

    def get_deployment_status(self, site_id: str, deployment_id: str) -> Deployment:
        self._ensure(Capability.GIT_DEPLOYMENT)
        raise self._not_implemented('get_deployment_status')

    def list_deployments(self, site_id: str) -> List[Deployment]:
        self._ensure(Capability.GIT_DEPLOYMENT)
        raise self._not_implemented('list_deployments')

    def rollback(self, site_id: str, deployment_id: str) -> Deployment:
        self._ensure(Capability.GIT_DEPLOYMENT)
        raise self._not_implemented('rollback')

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def list_backups(self, site_id: str) -> List[Backup]:
        self._ensure(Capability.BACKUP_CREATION)
        raise self._not_implemented('list_backups')

    def create_backup(self, site_id: str, options: Optional[Dict[str, Any]] = None) -> Backup:
        self._ensure(Capability.BACKUP_CREATION)
        raise self._not_implemented('create_backup')

    def restore_backup(self, site_id: str, backup_id: str) -> bool:
        self._ensure(Capability.BACKUP_RESTORE)
        raise self._not_implemented('restore_backup')

    def delete_backup(self, site_id: str, backup_id: str) -> bool:
        self._ensure(Capability.BACKUP_CREATION)
        raise self._not_implemented('delete_backup')

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def clear_cache(self, site_id: str) -> bool:
        """Clear the application cache of a site on the remote panel."""
        self._ensure(Capability.CACHE_CLEARING)
        raise self._not_implemented('clear_cache')
