"""
Laravel Forge backend implementation.

Implements HostingBackend for the Forge v1 REST API. Forge wraps payloads
in resource-named envelopes ({"servers": [...]}, {"site": {...}}) and
addresses every site through its server, so site lookups go through the
server list first.
"""

import logging
import uuid
from typing import Any, Dict, FrozenSet, List, Optional

from ..enums import Capability, DeploymentStatus, PhpVersion, SslStatus
from ..exceptions import HostingError, ServerNotFoundError, SiteNotFoundError
from ..models import Database, DatabaseUser, Deployment, Server, Site, SslCertificate
from .base import HostingBackend

logger = logging.getLogger(__name__)

RESTARTABLE_SERVICES = ('nginx', 'php', 'mysql', 'postgres')


class ForgeBackend(HostingBackend):
    """Laravel Forge backend implementation."""

    requests_per_minute = 30

    CAPABILITIES: FrozenSet[Capability] = frozenset({
        Capability.SERVER_MANAGEMENT,
        Capability.SERVER_PROVISIONING,
        Capability.SITE_PROVISIONING,
        Capability.SSL_INSTALLATION,
        Capability.SSL_AUTO_RENEWAL,
        Capability.DATABASE_MANAGEMENT,
        Capability.PHP_VERSION_SWITCHING,
        Capability.GIT_DEPLOYMENT,
        Capability.DEPLOYMENT_SCRIPTS,
        Capability.QUEUE_WORKERS,
        Capability.SCHEDULED_JOBS,
        Capability.SSH_ACCESS,
        Capability.ENVIRONMENT_VARIABLES,
    })

    def name(self) -> str:
        return 'forge'

    def display_name(self) -> str:
        return 'Laravel Forge'

    def default_api_url(self) -> str:
        return 'https://forge.laravel.com/api/v1'

    def capabilities(self) -> FrozenSet[Capability]:
        return self.CAPABILITIES

    def _connection_details(self, response: Dict[str, Any]) -> Dict[str, Any]:
        return {'provider': self.name(), 'server_count': len(response.get('servers') or [])}

    # Servers

    def list_servers(self) -> List[Server]:
        response = self._request('GET', '/servers', cache_key='servers', resource='servers')
        return [self._map_server(data) for data in response.get('servers') or []]

    def get_server(self, server_id: str) -> Server:
        try:
            response = self._request('GET', f'/servers/{server_id}')
        except HostingError as e:
            if e.code == 404:
                raise ServerNotFoundError.on_backend(server_id, self.display_name()) from e
            raise
        return self._map_server(response.get('server') or {})

    def create_server(self, config: Dict[str, Any]) -> Server:
        self._ensure(Capability.SERVER_PROVISIONING)

        payload = {
            'name': config['name'],
            'provider': config.get('provider', 'ocean2'),
            'region': config.get('region', 'nyc3'),
            'size': config.get('size', '1gb'),
            'php_version': self._format_php_version(config.get('php_version', '8.3')),
            'database': config.get('database_type', 'mysql8'),
        }
        if 'ubuntu_version' in config:
            payload['ubuntu_version'] = config['ubuntu_version']

        response = self._request('POST', '/servers', payload)
        self._forget('servers')

        server = self._map_server(response.get('server') or {})
        logger.info(f"Created Forge server {server.id} ({server.name})")
        return server

    def delete_server(self, server_id: str) -> bool:
        self._request('DELETE', f'/servers/{server_id}')
        self._forget('servers', f'sites:{server_id}', f'databases:{server_id}',
                     f'database_users:{server_id}')
        return True

    def reboot_server(self, server_id: str) -> bool:
        self._request('POST', f'/servers/{server_id}/reboot')
        return True

    def restart_service(self, server_id: str, service: str) -> bool:
        """Restart nginx, php, mysql or postgres. Other names return False."""
        if service not in RESTARTABLE_SERVICES:
            return False

        self._request('POST', f'/servers/{server_id}/{service}/restart')
        return True

    def provider_metadata(self, cloud_provider: Optional[str] = None) -> Dict[str, Any]:
        try:
            return self._request('GET', '/credentials')
        except HostingError as e:
            logger.warning(f"Could not fetch Forge credentials metadata: {e}")
            return {}

    # Sites

    def list_sites(self, server_id: Optional[str] = None) -> List[Site]:
        if server_id:
            return self._list_server_sites(server_id)

        # One request per server; the first failure aborts the listing
        sites: List[Site] = []
        for server in self.list_servers():
            sites.extend(self._list_server_sites(server.id))
        return sites

    def _list_server_sites(self, server_id: str) -> List[Site]:
        response = self._request(
            'GET', f'/servers/{server_id}/sites', cache_key=f'sites:{server_id}', resource='sites'
        )
        return [self._map_site(data, server_id) for data in response.get('sites') or []]

    def get_site(self, site_id: str) -> Site:
        site = next((s for s in self.list_sites() if s.id == site_id), None)
        if site is None:
            raise SiteNotFoundError.on_backend(site_id, self.display_name())

        try:
            response = self._request('GET', f'/servers/{site.server_id}/sites/{site_id}')
        except HostingError as e:
            if e.code == 404:
                raise SiteNotFoundError(site_id, site.server_id, self.display_name()) from e
            raise
        return self._map_site(response.get('site') or {}, site.server_id)

    def create_site(self, server_id: str, config: Dict[str, Any]) -> Site:
        self._ensure(Capability.SITE_PROVISIONING)

        payload: Dict[str, Any] = {
            'domain': config['domain'],
            'project_type': config.get('project_type', 'php'),
            'php_version': self._format_php_version(config.get('php_version', '8.3')),
            'directory': config.get('directory', '/public'),
        }
        if 'aliases' in config:
            payload['aliases'] = list(config['aliases'])
        if config.get('isolated'):
            payload['isolated'] = True
            payload['username'] = config.get('username') or config['domain'].replace('.', '')

        response = self._request('POST', f'/servers/{server_id}/sites', payload)
        self._forget(f'sites:{server_id}')

        site = self._map_site(response.get('site') or {}, server_id)
        logger.info(f"Created Forge site {site.domain} on server {server_id}")
        return site

    def delete_site(self, site_id: str) -> bool:
        site = self.get_site(site_id)
        self._request('DELETE', f'/servers/{site.server_id}/sites/{site_id}')
        self._forget(f'sites:{site.server_id}')
        return True

    # PHP

    def set_php_version(self, site_id: str, version: PhpVersion) -> bool:
        self._ensure(Capability.PHP_VERSION_SWITCHING)

        site = self.get_site(site_id)
        self._request('PUT', f'/servers/{site.server_id}/sites/{site_id}/php', {
            'version': self._format_php_version(version.value),
        })
        self._forget(f'sites:{site.server_id}')
        return True

    # Databases

    def list_databases(self, server_id: str) -> List[Database]:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        response = self._request(
            'GET', f'/servers/{server_id}/databases',
            cache_key=f'databases:{server_id}', resource='databases',
        )
        return [self._map_database(data, server_id) for data in response.get('databases') or []]

    def create_database(self, server_id: str, name: str) -> Database:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        response = self._request('POST', f'/servers/{server_id}/databases', {'name': name})
        self._forget(f'databases:{server_id}')
        return self._map_database(response.get('database') or {}, server_id)

    def delete_database(self, server_id: str, database_id: str) -> bool:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        self._request('DELETE', f'/servers/{server_id}/databases/{database_id}')
        self._forget(f'databases:{server_id}')
        return True

    def list_database_users(self, server_id: str) -> List[DatabaseUser]:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        response = self._request(
            'GET', f'/servers/{server_id}/database-users',
            cache_key=f'database_users:{server_id}', resource='databases',
        )
        return [self._map_database_user(data, server_id) for data in response.get('users') or []]

    def create_database_user(self, server_id: str, username: str, password: str) -> DatabaseUser:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        response = self._request('POST', f'/servers/{server_id}/database-users', {
            'name': username,
            'password': password,
            'databases': [],
        })
        self._forget(f'database_users:{server_id}')
        return self._map_database_user(response.get('user') or {}, server_id)

    def delete_database_user(self, server_id: str, user_id: str) -> bool:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        self._request('DELETE', f'/servers/{server_id}/database-users/{user_id}')
        self._forget(f'database_users:{server_id}')
        return True

    # SSL

    def get_ssl_certificate(self, site_id: str) -> Optional[SslCertificate]:
        site = self.get_site(site_id)

        try:
            response = self._request(
                'GET', f'/servers/{site.server_id}/sites/{site_id}/certificates',
                cache_key=f'ssl:{site_id}', resource='ssl',
            )
        except HostingError as e:
            logger.warning(f"Could not fetch certificates for Forge site {site_id}: {e}")
            return None

        certificates = response.get('certificates') or []
        if not certificates:
            return None

        active = next((cert for cert in certificates if cert.get('active')), certificates[0])
        return self._map_certificate(active, site_id)

    def install_ssl_certificate(self, site_id: str) -> SslCertificate:
        self._ensure(Capability.SSL_INSTALLATION)

        site = self.get_site(site_id)
        response = self._request(
            'POST', f'/servers/{site.server_id}/sites/{site_id}/certificates/letsencrypt',
            {'domains': [site.domain]},
        )
        self._forget(f'ssl:{site_id}')
        return self._map_certificate(response.get('certificate') or {}, site_id)

    def install_custom_ssl(self, site_id: str, certificate: str, private_key: str) -> SslCertificate:
        self._ensure(Capability.SSL_INSTALLATION)

        site = self.get_site(site_id)
        response = self._request('POST', f'/servers/{site.server_id}/sites/{site_id}/certificates', {
            'type': 'existing',
            'certificate': certificate,
            'private_key': private_key,
        })
        self._forget(f'ssl:{site_id}')
        return self._map_certificate(response.get('certificate') or {}, site_id)

    def remove_ssl_certificate(self, site_id: str) -> bool:
        self._ensure(Capability.SSL_INSTALLATION)

        site = self.get_site(site_id)
        certificate = self.get_ssl_certificate(site_id)
        if certificate is None:
            return True

        self._request(
            'DELETE', f'/servers/{site.server_id}/sites/{site_id}/certificates/{certificate.id}'
        )
        self._forget(f'ssl:{site_id}')
        return True

    # Deployment

    def deploy(self, site_id: str) -> Deployment:
        self._ensure(Capability.GIT_DEPLOYMENT)

        site = self.get_site(site_id)
        response = self._request('POST', f'/servers/{site.server_id}/sites/{site_id}/deployment/deploy')

        return Deployment(
            id=str(response.get('id') or f"deploy_{uuid.uuid4().hex[:13]}"),
            site_id=site_id,
            status=DeploymentStatus.PENDING,
        )

    def get_deployment_status(self, site_id: str, deployment_id: str) -> Deployment:
        self._ensure(Capability.GIT_DEPLOYMENT)

        for deployment in self._deployment_history(site_id):
            if deployment.id == deployment_id:
                return deployment

        return Deployment(id=deployment_id, site_id=site_id, status=DeploymentStatus.UNKNOWN)

    def list_deployments(self, site_id: str) -> List[Deployment]:
        self._ensure(Capability.GIT_DEPLOYMENT)
        return self._deployment_history(site_id)

    def _deployment_history(self, site_id: str) -> List[Deployment]:
        site = self.get_site(site_id)
        response = self._request(
            'GET', f'/servers/{site.server_id}/sites/{site_id}/deployment-history',
            cache_key=f'deployments:{site_id}', resource='deployments',
        )
        return [self._map_deployment(data, site_id) for data in response.get('deployments') or []]

    # Mapping

    def _map_server(self, data: Dict[str, Any]) -> Server:
        return Server.from_dict({
            'id': data.get('id'),
            'name': data.get('name'),
            'status': 'active' if data.get('is_ready') else 'provisioning',
            'ip_address': data.get('ip_address'),
            'private_ip_address': data.get('private_ip_address'),
            'php_version': data.get('php_version'),
            'server_provider': data.get('provider'),
            'region': data.get('region'),
            'size': data.get('size'),
            'ubuntu_version': data.get('ubuntu_version'),
            'database_type': data.get('database_type'),
            'created_at': data.get('created_at'),
            'metadata': data,
        })

    def _map_site(self, data: Dict[str, Any], server_id: str) -> Site:
        secured = bool(data.get('is_secured'))
        return Site.from_dict({
            'id': data.get('id'),
            'server_id': server_id,
            'domain': data.get('name') or data.get('domain'),
            'status': data.get('status'),
            'php_version': data.get('php_version'),
            'ssl_enabled': secured,
            'ssl_status': SslStatus.ACTIVE if secured else SslStatus.NONE,
            'document_root': data.get('directory'),
            'system_user': data.get('username'),
            'project_type': data.get('project_type'),
            'is_wordpress': data.get('project_type') == 'wordpress',
            'repository': data.get('repository'),
            'repository_branch': data.get('repository_branch'),
            'created_at': data.get('created_at'),
            'aliases': data.get('aliases'),
            'metadata': data,
        })

    def _map_database(self, data: Dict[str, Any], server_id: str) -> Database:
        return Database.from_dict({
            'id': data.get('id'),
            'name': data.get('name'),
            'server_id': server_id,
            'created_at': data.get('created_at'),
            'metadata': data,
        })

    def _map_database_user(self, data: Dict[str, Any], server_id: str) -> DatabaseUser:
        return DatabaseUser.from_dict({
            'id': data.get('id'),
            'username': data.get('name'),
            'server_id': server_id,
            'databases': data.get('databases'),
            'created_at': data.get('created_at'),
            'metadata': data,
        })

    def _map_certificate(self, data: Dict[str, Any], site_id: str) -> SslCertificate:
        cert_type = data.get('type') or 'letsencrypt'
        return SslCertificate.from_dict({
            'id': data.get('id'),
            'site_id': site_id,
            'status': 'active' if data.get('active') else 'pending',
            'provider': cert_type,
            'auto_renewal': cert_type == 'letsencrypt',
            'issued_at': data.get('created_at'),
            'expires_at': data.get('expires_at'),
            'domains': data.get('domain'),
            'metadata': data,
        })

    def _map_deployment(self, data: Dict[str, Any], site_id: str) -> Deployment:
        return Deployment.from_dict({
            'id': data.get('id'),
            'site_id': site_id,
            'status': data.get('status'),
            'commit_hash': data.get('commit_hash'),
            'commit_message': data.get('commit_message'),
            'commit_author': data.get('commit_author'),
            'started_at': data.get('started_at'),
            'finished_at': data.get('ended_at'),
            'metadata': data,
        })

    @staticmethod
    def _format_php_version(version: Any) -> str:
        """Forge spells PHP versions as 'php82'."""
        value = version.value if isinstance(version, PhpVersion) else str(version)
        return 'php' + value.replace('.', '')
