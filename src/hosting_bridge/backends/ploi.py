"""
Ploi backend implementation.

Implements HostingBackend for the Ploi REST API, which wraps every
payload in a {"data": ...} envelope.
"""

import logging
import uuid
from typing import Any, Dict, FrozenSet, List, Optional

from ..enums import Capability, DeploymentStatus, PhpVersion, SslStatus
from ..exceptions import HostingError, ServerNotFoundError, SiteNotFoundError
from ..models import Database, DatabaseUser, Deployment, Server, Site, SslCertificate
from .base import HostingBackend

logger = logging.getLogger(__name__)

# Canonical service name -> Ploi service name
SERVICE_MAP = {
    'nginx': 'nginx',
    'php': 'php-fpm',
    'mysql': 'mysql',
    'postgres': 'postgresql',
    'redis': 'redis',
}


class PloiBackend(HostingBackend):
    """Ploi backend implementation."""

    requests_per_minute = 60

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
        Capability.ENVIRONMENT_VARIABLES,
    })

    def name(self) -> str:
        return 'ploi'

    def display_name(self) -> str:
        return 'Ploi'

    def default_api_url(self) -> str:
        return 'https://ploi.io/api'

    def capabilities(self) -> FrozenSet[Capability]:
        return self.CAPABILITIES

    def _connection_details(self, response: Dict[str, Any]) -> Dict[str, Any]:
        return {'provider': self.name(), 'server_count': len(response.get('data') or [])}

    # Servers

    def list_servers(self) -> List[Server]:
        response = self._request('GET', '/servers', cache_key='servers', resource='servers')
        return [self._map_server(data) for data in response.get('data') or []]

    def get_server(self, server_id: str) -> Server:
        try:
            response = self._request('GET', f'/servers/{server_id}')
        except HostingError as e:
            if e.code == 404:
                raise ServerNotFoundError.on_backend(server_id, self.display_name()) from e
            raise
        return self._map_server(response.get('data') or {})

    def create_server(self, config: Dict[str, Any]) -> Server:
        self._ensure(Capability.SERVER_PROVISIONING)

        payload = {
            'name': config['name'],
            'provider': config.get('provider', 'digitalocean'),
            'region': config.get('region', 'ams3'),
            'plan': config.get('size', 's-1vcpu-1gb'),
            'type': config.get('type', 'server'),
            'php_version': str(config.get('php_version', '8.3')),
            'database_type': config.get('database_type', 'mysql-8.0'),
        }

        response = self._request('POST', '/servers', payload)
        self._forget('servers')

        server = self._map_server(response.get('data') or {})
        logger.info(f"Created Ploi server {server.id} ({server.name})")
        return server

    def delete_server(self, server_id: str) -> bool:
        self._request('DELETE', f'/servers/{server_id}')
        self._forget('servers', f'sites:{server_id}', f'databases:{server_id}',
                     f'database_users:{server_id}')
        return True

    def reboot_server(self, server_id: str) -> bool:
        self._request('POST', f'/servers/{server_id}/restart')
        return True

    def restart_service(self, server_id: str, service: str) -> bool:
        self._request('POST', f'/servers/{server_id}/restart-service', {
            'service': SERVICE_MAP.get(service, service),
        })
        return True

    # Sites

    def list_sites(self, server_id: Optional[str] = None) -> List[Site]:
        if server_id:
            return self._list_server_sites(server_id)

        sites: List[Site] = []
        for server in self.list_servers():
            try:
                sites.extend(self._list_server_sites(server.id))
            except HostingError as e:
                logger.warning(f"Skipping sites of Ploi server {server.id}: {e}")
        return sites

    def _list_server_sites(self, server_id: str) -> List[Site]:
        response = self._request(
            'GET', f'/servers/{server_id}/sites', cache_key=f'sites:{server_id}', resource='sites'
        )
        return [self._map_site(data, server_id) for data in response.get('data') or []]

    def get_site(self, site_id: str) -> Site:
        site = next((s for s in self.list_sites() if s.id == site_id), None)
        if site is None:
            raise SiteNotFoundError.on_backend(site_id, self.display_name())
        return site

    def create_site(self, server_id: str, config: Dict[str, Any]) -> Site:
        self._ensure(Capability.SITE_PROVISIONING)

        payload = {
            'root_domain': config['domain'],
            'web_directory': config.get('web_directory', '/public'),
            'project_type': config.get('project_type', 'laravel'),
        }

        response = self._request('POST', f'/servers/{server_id}/sites', payload)
        self._forget(f'sites:{server_id}')
        return self._map_site(response.get('data') or {}, server_id)

    def delete_site(self, site_id: str) -> bool:
        site = self.get_site(site_id)
        self._request('DELETE', f'/servers/{site.server_id}/sites/{site_id}')
        self._forget(f'sites:{site.server_id}')
        return True

    # PHP

    def set_php_version(self, site_id: str, version: PhpVersion) -> bool:
        self._ensure(Capability.PHP_VERSION_SWITCHING)

        site = self.get_site(site_id)
        self._request('PATCH', f'/servers/{site.server_id}/sites/{site_id}', {
            'php_version': version.value,
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
        return [
            Database.from_dict({
                'id': data.get('id'),
                'name': data.get('name'),
                'server_id': server_id,
                'created_at': data.get('created_at'),
            })
            for data in response.get('data') or []
        ]

    def create_database(self, server_id: str, name: str) -> Database:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        response = self._request('POST', f'/servers/{server_id}/databases', {'name': name})
        self._forget(f'databases:{server_id}')

        data = response.get('data') or {}
        return Database.from_dict({'id': data.get('id'), 'name': name, 'server_id': server_id})

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
        return [
            DatabaseUser.from_dict({
                'id': data.get('id'),
                'username': data.get('name'),
                'server_id': server_id,
                'databases': data.get('databases'),
            })
            for data in response.get('data') or []
        ]

    def create_database_user(self, server_id: str, username: str, password: str) -> DatabaseUser:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        response = self._request('POST', f'/servers/{server_id}/database-users', {
            'name': username,
            'password': password,
        })
        self._forget(f'database_users:{server_id}')

        data = response.get('data') or {}
        return DatabaseUser.from_dict({'id': data.get('id'), 'username': username, 'server_id': server_id})

    def delete_database_user(self, server_id: str, user_id: str) -> bool:
        self._ensure(Capability.DATABASE_MANAGEMENT)

        self._request('DELETE', f'/servers/{server_id}/database-users/{user_id}')
        self._forget(f'database_users:{server_id}')
        return True

    # SSL

    def install_ssl_certificate(self, site_id: str) -> SslCertificate:
        self._ensure(Capability.SSL_INSTALLATION)

        site = self.get_site(site_id)
        response = self._request('POST', f'/servers/{site.server_id}/sites/{site_id}/certificates')

        data = response.get('data') or {}
        return SslCertificate(
            id=str(data.get('id') or f"ssl_{uuid.uuid4().hex[:13]}"),
            site_id=site_id,
            status=SslStatus.INSTALLING,
            provider='letsencrypt',
            auto_renewal=True,
            domains=(site.domain,),
        )

    # Deployment

    def deploy(self, site_id: str) -> Deployment:
        self._ensure(Capability.GIT_DEPLOYMENT)

        site = self.get_site(site_id)
        response = self._request('POST', f'/servers/{site.server_id}/sites/{site_id}/deploy')

        data = response.get('data') or {}
        return Deployment(
            id=str(data.get('id') or f"deploy_{uuid.uuid4().hex[:13]}"),
            site_id=site_id,
            status=DeploymentStatus.RUNNING,
        )

    def list_deployments(self, site_id: str) -> List[Deployment]:
        self._ensure(Capability.GIT_DEPLOYMENT)

        site = self.get_site(site_id)
        response = self._request(
            'GET', f'/servers/{site.server_id}/sites/{site_id}/deployments',
            cache_key=f'deployments:{site_id}', resource='deployments',
        )
        return [
            Deployment.from_dict({
                'id': data.get('id'),
                'site_id': site_id,
                'status': data.get('status') or 'completed',
                'commit_hash': data.get('commit_hash'),
                'started_at': data.get('started_at'),
                'finished_at': data.get('finished_at'),
            })
            for data in response.get('data') or []
        ]

    # Mapping

    def _map_server(self, data: Dict[str, Any]) -> Server:
        return Server.from_dict({
            'id': data.get('id'),
            'name': data.get('name'),
            'status': data.get('status'),
            'ip_address': data.get('ip_address'),
            'php_version': data.get('php_version'),
            'server_provider': data.get('provider'),
            'region': data.get('region'),
            'created_at': data.get('created_at'),
            'metadata': data,
        })

    def _map_site(self, data: Dict[str, Any], server_id: str) -> Site:
        has_ssl = bool(data.get('has_ssl'))
        return Site.from_dict({
            'id': data.get('id'),
            'server_id': server_id,
            'domain': data.get('root_domain') or data.get('domain'),
            'status': data.get('status'),
            'php_version': data.get('php_version'),
            'ssl_enabled': has_ssl,
            'ssl_status': SslStatus.ACTIVE if has_ssl else SslStatus.NONE,
            'document_root': data.get('web_directory'),
            'project_type': data.get('project_type'),
            'repository': data.get('repository'),
            'repository_branch': data.get('branch'),
            'created_at': data.get('created_at'),
            'metadata': data,
        })
