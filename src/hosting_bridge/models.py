"""
Canonical, backend-agnostic entities.

Every entity is a frozen dataclass built from a backend payload with
``from_dict`` and flattened back with ``to_dict``. ``from_dict`` accepts
partial data: identifiers default to '' and everything else to its
documented default, so construction never fails on missing keys.

Relationships such as ``Site.server_id`` are plain strings; nothing here
checks that the referenced server exists.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .enums import (
    BackupStatus,
    BackupType,
    DeploymentStatus,
    PhpVersion,
    ServerProvider,
    ServerStatus,
    SiteStatus,
    SslStatus,
)
from .normalize import (
    first_of,
    human_readable_bytes,
    parse_datetime,
    serialize_value,
    to_bool,
    to_float,
    to_int,
    to_mapping,
    to_str,
    to_str_tuple,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _Entity:
    """Coerces constructor arguments into their canonical immutable shapes."""

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime) and value.tzinfo is None:
                object.__setattr__(self, f.name, value.replace(tzinfo=timezone.utc))
            elif isinstance(value, list):
                object.__setattr__(self, f.name, tuple(value))
            elif isinstance(value, set):
                object.__setattr__(self, f.name, frozenset(value))
            elif isinstance(value, Mapping) and not hasattr(value, 'to_dict'):
                # read-only copy; callers keep no handle on the stored mapping
                object.__setattr__(self, f.name, MappingProxyType(dict(value)))

    def to_json(self) -> Dict[str, Any]:
        return self.to_dict()


@dataclass(frozen=True)
class ServerMetrics(_Entity):
    """Point-in-time resource usage for a server. All fields are optional."""

    cpu_usage: Optional[float] = None
    memory_usage: Optional[float] = None
    disk_usage: Optional[float] = None
    memory_total_mb: Optional[int] = None
    memory_used_mb: Optional[int] = None
    disk_total_gb: Optional[int] = None
    disk_used_gb: Optional[int] = None
    uptime_seconds: Optional[int] = None
    load_average_1m: Optional[float] = None
    load_average_5m: Optional[float] = None
    load_average_15m: Optional[float] = None
    network_in_bytes: Optional[int] = None
    network_out_bytes: Optional[int] = None
    collected_at: Optional[datetime] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerMetrics':
        return cls(
            cpu_usage=to_float(first_of(data, 'cpu_usage', 'cpu')),
            memory_usage=to_float(first_of(data, 'memory_usage', 'memory')),
            disk_usage=to_float(first_of(data, 'disk_usage', 'disk')),
            memory_total_mb=to_int(first_of(data, 'memory_total_mb', 'memory_total')),
            memory_used_mb=to_int(first_of(data, 'memory_used_mb', 'memory_used')),
            disk_total_gb=to_int(first_of(data, 'disk_total_gb', 'disk_total')),
            disk_used_gb=to_int(first_of(data, 'disk_used_gb', 'disk_used')),
            uptime_seconds=to_int(first_of(data, 'uptime_seconds', 'uptime')),
            load_average_1m=to_float(first_of(data, 'load_average_1m', 'load_1')),
            load_average_5m=to_float(first_of(data, 'load_average_5m', 'load_5')),
            load_average_15m=to_float(first_of(data, 'load_average_15m', 'load_15')),
            network_in_bytes=to_int(first_of(data, 'network_in_bytes', 'network_in')),
            network_out_bytes=to_int(first_of(data, 'network_out_bytes', 'network_out')),
            collected_at=parse_datetime(first_of(data, 'collected_at', 'timestamp')),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cpu_usage': self.cpu_usage,
            'memory_usage': self.memory_usage,
            'disk_usage': self.disk_usage,
            'memory_total_mb': self.memory_total_mb,
            'memory_used_mb': self.memory_used_mb,
            'disk_total_gb': self.disk_total_gb,
            'disk_used_gb': self.disk_used_gb,
            'uptime_seconds': self.uptime_seconds,
            'load_average_1m': self.load_average_1m,
            'load_average_5m': self.load_average_5m,
            'load_average_15m': self.load_average_15m,
            'network_in_bytes': self.network_in_bytes,
            'network_out_bytes': self.network_out_bytes,
            'collected_at': serialize_value(self.collected_at),
            'metadata': serialize_value(self.metadata),
        }

    def human_readable_uptime(self) -> Optional[str]:
        if self.uptime_seconds is None:
            return None
        days, remainder = divmod(self.uptime_seconds, 86400)
        hours, remainder = divmod(remainder, 3600)
        minutes = remainder // 60
        parts = []
        if days > 0:
            parts.append(f"{days}d")
        if hours > 0 or days > 0:
            parts.append(f"{hours}h")
        parts.append(f"{minutes}m")
        return ' '.join(parts)

    def is_cpu_critical(self, threshold: float = 90.0) -> bool:
        return self.cpu_usage is not None and self.cpu_usage >= threshold

    def is_memory_critical(self, threshold: float = 90.0) -> bool:
        return self.memory_usage is not None and self.memory_usage >= threshold

    def is_disk_critical(self, threshold: float = 90.0) -> bool:
        return self.disk_usage is not None and self.disk_usage >= threshold


@dataclass(frozen=True)
class Server(_Entity):
    """A machine managed by a hosting panel."""

    id: str = ''
    name: str = ''
    status: ServerStatus = ServerStatus.UNKNOWN
    ip_address: Optional[str] = None
    private_ip_address: Optional[str] = None
    php_version: Optional[PhpVersion] = None
    server_provider: ServerProvider = ServerProvider.UNKNOWN
    region: Optional[str] = None
    size: Optional[str] = None
    ubuntu_version: Optional[str] = None
    database_type: Optional[str] = None
    created_at: Optional[datetime] = None
    provisioned_at: Optional[datetime] = None
    metrics: Optional[ServerMetrics] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Server':
        metrics = data.get('metrics')
        if isinstance(metrics, dict):
            metrics = ServerMetrics.from_dict(metrics)
        elif not isinstance(metrics, ServerMetrics):
            metrics = None

        return cls(
            id=to_str(first_of(data, 'id', 'server_id'), ''),
            name=to_str(first_of(data, 'name', 'server_name'), ''),
            status=ServerStatus.from_string(data.get('status')),
            ip_address=to_str(first_of(data, 'ip_address', 'ip', 'public_ip')),
            private_ip_address=to_str(first_of(data, 'private_ip_address', 'private_ip')),
            php_version=PhpVersion.from_string(data.get('php_version')),
            server_provider=ServerProvider.from_string(
                first_of(data, 'server_provider', 'provider', 'cloud_provider')
            ),
            region=to_str(first_of(data, 'region', 'datacenter')),
            size=to_str(first_of(data, 'size', 'plan', 'type')),
            ubuntu_version=to_str(first_of(data, 'ubuntu_version', 'os_version')),
            database_type=to_str(first_of(data, 'database_type', 'db_type')),
            created_at=parse_datetime(data.get('created_at')),
            provisioned_at=parse_datetime(first_of(data, 'provisioned_at', 'ready_at')),
            metrics=metrics,
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'status': serialize_value(self.status),
            'ip_address': self.ip_address,
            'private_ip_address': self.private_ip_address,
            'php_version': serialize_value(self.php_version),
            'server_provider': serialize_value(self.server_provider),
            'region': self.region,
            'size': self.size,
            'ubuntu_version': self.ubuntu_version,
            'database_type': self.database_type,
            'created_at': serialize_value(self.created_at),
            'provisioned_at': serialize_value(self.provisioned_at),
            'metrics': serialize_value(self.metrics),
            'metadata': serialize_value(self.metadata),
        }

    def is_operational(self) -> bool:
        return self.status.is_operational()

    def is_pending(self) -> bool:
        return self.status.is_pending()


@dataclass(frozen=True)
class Site(_Entity):
    """A website or application hosted on a server."""

    id: str = ''
    server_id: str = ''
    domain: str = ''
    status: SiteStatus = SiteStatus.UNKNOWN
    php_version: Optional[PhpVersion] = None
    ssl_enabled: bool = False
    ssl_status: SslStatus = SslStatus.NONE
    ssl_expires_at: Optional[datetime] = None
    document_root: Optional[str] = None
    system_user: Optional[str] = None
    project_type: Optional[str] = None
    is_wordpress: bool = False
    is_staging: bool = False
    production_site_id: Optional[str] = None
    repository: Optional[str] = None
    repository_branch: Optional[str] = None
    created_at: Optional[datetime] = None
    last_deployed_at: Optional[datetime] = None
    aliases: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Site':
        ssl_enabled = to_bool(first_of(data, 'ssl_enabled', 'ssl', 'https'))
        ssl_status = data.get('ssl_status')
        if ssl_status is None:
            ssl_status = 'active' if ssl_enabled else 'none'

        return cls(
            id=to_str(first_of(data, 'id', 'site_id'), ''),
            server_id=to_str(first_of(data, 'server_id', 'serverId'), ''),
            domain=to_str(first_of(data, 'domain', 'name', 'hostname'), ''),
            status=SiteStatus.from_string(data.get('status')),
            php_version=PhpVersion.from_string(data.get('php_version')),
            ssl_enabled=ssl_enabled,
            ssl_status=SslStatus.from_string(ssl_status),
            ssl_expires_at=parse_datetime(first_of(data, 'ssl_expires_at', 'ssl_expiry')),
            document_root=to_str(first_of(data, 'document_root', 'web_root', 'root')),
            system_user=to_str(first_of(data, 'system_user', 'site_user', 'user')),
            project_type=to_str(first_of(data, 'project_type', 'type')),
            is_wordpress=to_bool(first_of(data, 'is_wordpress', 'wordpress', 'wp')),
            is_staging=to_bool(first_of(data, 'is_staging', 'staging')),
            production_site_id=to_str(first_of(data, 'production_site_id', 'production_id')),
            repository=to_str(first_of(data, 'repository', 'git_repo', 'repo')),
            repository_branch=to_str(first_of(data, 'repository_branch', 'branch', 'git_branch')),
            created_at=parse_datetime(data.get('created_at')),
            last_deployed_at=parse_datetime(first_of(data, 'last_deployed_at', 'deployed_at')),
            aliases=to_str_tuple(first_of(data, 'aliases', 'site_aliases')),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'server_id': self.server_id,
            'domain': self.domain,
            'status': serialize_value(self.status),
            'php_version': serialize_value(self.php_version),
            'ssl_enabled': self.ssl_enabled,
            'ssl_status': serialize_value(self.ssl_status),
            'ssl_expires_at': serialize_value(self.ssl_expires_at),
            'document_root': self.document_root,
            'system_user': self.system_user,
            'project_type': self.project_type,
            'is_wordpress': self.is_wordpress,
            'is_staging': self.is_staging,
            'production_site_id': self.production_site_id,
            'repository': self.repository,
            'repository_branch': self.repository_branch,
            'created_at': serialize_value(self.created_at),
            'last_deployed_at': serialize_value(self.last_deployed_at),
            'aliases': serialize_value(self.aliases),
            'metadata': serialize_value(self.metadata),
        }

    def is_operational(self) -> bool:
        return self.status.is_operational()

    def is_pending(self) -> bool:
        return self.status.is_pending()

    def has_valid_ssl(self) -> bool:
        return self.ssl_enabled and self.ssl_status.is_secure()

    def matches_domain(self, domain: str) -> bool:
        """True if ``domain`` is the primary domain or one of the aliases."""
        wanted = domain.lower()
        return self.domain.lower() == wanted or any(alias.lower() == wanted for alias in self.aliases)


@dataclass(frozen=True)
class Database(_Entity):
    id: str = ''
    name: str = ''
    server_id: Optional[str] = None
    site_id: Optional[str] = None
    host: str = 'localhost'
    port: int = 3306
    type: str = 'mysql'
    size_bytes: Optional[int] = None
    created_at: Optional[datetime] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Database':
        return cls(
            id=to_str(first_of(data, 'id', 'database_id'), ''),
            name=to_str(first_of(data, 'name', 'database_name'), ''),
            server_id=to_str(data.get('server_id')),
            site_id=to_str(data.get('site_id')),
            host=to_str(first_of(data, 'host', 'hostname'), 'localhost'),
            port=to_int(data.get('port'), 3306),
            type=to_str(first_of(data, 'type', 'engine'), 'mysql'),
            size_bytes=to_int(first_of(data, 'size_bytes', 'size')),
            created_at=parse_datetime(data.get('created_at')),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'server_id': self.server_id,
            'site_id': self.site_id,
            'host': self.host,
            'port': self.port,
            'type': self.type,
            'size_bytes': self.size_bytes,
            'created_at': serialize_value(self.created_at),
            'metadata': serialize_value(self.metadata),
        }

    def human_readable_size(self) -> Optional[str]:
        return human_readable_bytes(self.size_bytes)


@dataclass(frozen=True)
class DatabaseUser(_Entity):
    id: str = ''
    username: str = ''
    server_id: Optional[str] = None
    host: str = '%'
    created_at: Optional[datetime] = None
    databases: FrozenSet[str] = frozenset()
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DatabaseUser':
        return cls(
            id=to_str(first_of(data, 'id', 'user_id'), ''),
            username=to_str(first_of(data, 'username', 'name', 'user'), ''),
            server_id=to_str(data.get('server_id')),
            host=to_str(first_of(data, 'host', 'hostname'), '%'),
            created_at=parse_datetime(data.get('created_at')),
            databases=frozenset(to_str_tuple(data.get('databases'))),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'username': self.username,
            'server_id': self.server_id,
            'host': self.host,
            'created_at': serialize_value(self.created_at),
            'databases': serialize_value(self.databases),
            'metadata': serialize_value(self.metadata),
        }

    def has_access_to(self, database_name: str) -> bool:
        return database_name in self.databases


@dataclass(frozen=True)
class SystemUser(_Entity):
    """An operating-system account on a server."""

    id: str = ''
    username: str = ''
    server_id: str = ''
    is_isolated: bool = False
    has_ssh_access: bool = False
    home_directory: Optional[str] = None
    created_at: Optional[datetime] = None
    groups: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SystemUser':
        return cls(
            id=to_str(first_of(data, 'id', 'user_id'), ''),
            username=to_str(first_of(data, 'username', 'name', 'user'), ''),
            server_id=to_str(data.get('server_id'), ''),
            is_isolated=to_bool(first_of(data, 'is_isolated', 'isolated')),
            has_ssh_access=to_bool(first_of(data, 'has_ssh_access', 'ssh_access', 'ssh')),
            home_directory=to_str(first_of(data, 'home_directory', 'home')),
            created_at=parse_datetime(data.get('created_at')),
            groups=to_str_tuple(data.get('groups')),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'username': self.username,
            'server_id': self.server_id,
            'is_isolated': self.is_isolated,
            'has_ssh_access': self.has_ssh_access,
            'home_directory': self.home_directory,
            'created_at': serialize_value(self.created_at),
            'groups': serialize_value(self.groups),
            'metadata': serialize_value(self.metadata),
        }

    def in_group(self, group: str) -> bool:
        return group in self.groups


@dataclass(frozen=True)
class SslCertificate(_Entity):
    """A TLS certificate attached to a site."""

    id: str = ''
    site_id: str = ''
    status: SslStatus = SslStatus.UNKNOWN
    provider: str = 'letsencrypt'
    auto_renewal: bool = True
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    domains: Tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SslCertificate':
        status = data.get('status')
        if status is None:
            status = 'active' if to_bool(data.get('enabled')) else 'none'

        return cls(
            id=to_str(first_of(data, 'id', 'ssl_id', 'certificate_id'), ''),
            site_id=to_str(data.get('site_id'), ''),
            status=SslStatus.from_string(status),
            provider=to_str(first_of(data, 'provider', 'type', 'issuer'), 'letsencrypt'),
            auto_renewal=to_bool(first_of(data, 'auto_renewal', 'auto_renew'), True),
            issued_at=parse_datetime(first_of(data, 'issued_at', 'created_at')),
            expires_at=parse_datetime(first_of(data, 'expires_at', 'expiry', 'expiration')),
            domains=to_str_tuple(first_of(data, 'domains', 'domain')),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'site_id': self.site_id,
            'status': serialize_value(self.status),
            'provider': self.provider,
            'auto_renewal': self.auto_renewal,
            'issued_at': serialize_value(self.issued_at),
            'expires_at': serialize_value(self.expires_at),
            'domains': serialize_value(self.domains),
            'metadata': serialize_value(self.metadata),
        }

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or _now())

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Active and not past its expiry date."""
        return self.status.is_secure() and not self.is_expired(now)

    def expires_soon(self, days: int = 30, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or _now()) + timedelta(days=days)

    def days_until_expiration(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days until expiry; negative once expired."""
        if self.expires_at is None:
            return None
        delta = self.expires_at - (now or _now())
        days = abs(delta).days
        return -days if delta.total_seconds() < 0 else days


@dataclass(frozen=True)
class Deployment(_Entity):
    """One deployment run for a site.

    ``duration_seconds`` is derived from the start and finish timestamps
    when the backend does not report it and both are known.
    """

    id: str = ''
    site_id: str = ''
    status: DeploymentStatus = DeploymentStatus.UNKNOWN
    commit_hash: Optional[str] = None
    commit_message: Optional[str] = None
    commit_author: Optional[str] = None
    branch: Optional[str] = None
    triggered_by: Optional[str] = None
    output: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        super().__post_init__()
        if self.duration_seconds is None and self.started_at and self.finished_at:
            elapsed = int((self.finished_at - self.started_at).total_seconds())
            object.__setattr__(self, 'duration_seconds', elapsed)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Deployment':
        return cls(
            id=to_str(first_of(data, 'id', 'deployment_id'), ''),
            site_id=to_str(data.get('site_id'), ''),
            status=DeploymentStatus.from_string(data.get('status')),
            commit_hash=to_str(first_of(data, 'commit_hash', 'commit', 'sha')),
            commit_message=to_str(first_of(data, 'commit_message', 'message')),
            commit_author=to_str(first_of(data, 'commit_author', 'author')),
            branch=to_str(first_of(data, 'branch', 'git_branch')),
            triggered_by=to_str(first_of(data, 'triggered_by', 'user', 'initiator')),
            output=to_str(first_of(data, 'output', 'log')),
            started_at=parse_datetime(first_of(data, 'started_at', 'created_at')),
            finished_at=parse_datetime(first_of(data, 'finished_at', 'ended_at', 'completed_at')),
            duration_seconds=to_int(first_of(data, 'duration_seconds', 'duration')),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'site_id': self.site_id,
            'status': serialize_value(self.status),
            'commit_hash': self.commit_hash,
            'commit_message': self.commit_message,
            'commit_author': self.commit_author,
            'branch': self.branch,
            'triggered_by': self.triggered_by,
            'output': self.output,
            'started_at': serialize_value(self.started_at),
            'finished_at': serialize_value(self.finished_at),
            'duration_seconds': self.duration_seconds,
            'metadata': serialize_value(self.metadata),
        }

    def is_complete(self) -> bool:
        return self.status.is_complete()

    def is_running(self) -> bool:
        return self.status.is_running()

    def is_successful(self) -> bool:
        return self.status.is_successful()

    def human_readable_duration(self) -> Optional[str]:
        if self.duration_seconds is None:
            return None
        if self.duration_seconds < 60:
            return f"{self.duration_seconds}s"
        minutes, seconds = divmod(self.duration_seconds, 60)
        if minutes < 60:
            return f"{minutes}m {seconds}s"
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h {minutes}m {seconds}s"


@dataclass(frozen=True)
class Backup(_Entity):
    id: str = ''
    site_id: str = ''
    status: BackupStatus = BackupStatus.UNKNOWN
    type: BackupType = BackupType.FULL
    size_bytes: Optional[int] = None
    description: Optional[str] = None
    storage_path: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Backup':
        return cls(
            id=to_str(first_of(data, 'id', 'backup_id'), ''),
            site_id=to_str(data.get('site_id'), ''),
            status=BackupStatus.from_string(data.get('status')),
            type=BackupType.from_string(first_of(data, 'type', 'backup_type', default='full')),
            size_bytes=to_int(first_of(data, 'size_bytes', 'size')),
            description=to_str(first_of(data, 'description', 'note', 'label')),
            storage_path=to_str(first_of(data, 'storage_path', 'path', 'url')),
            created_at=parse_datetime(data.get('created_at')),
            completed_at=parse_datetime(first_of(data, 'completed_at', 'finished_at')),
            expires_at=parse_datetime(first_of(data, 'expires_at', 'expiry')),
            metadata=to_mapping(first_of(data, 'metadata', 'meta')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'site_id': self.site_id,
            'status': serialize_value(self.status),
            'type': serialize_value(self.type),
            'size_bytes': self.size_bytes,
            'description': self.description,
            'storage_path': self.storage_path,
            'created_at': serialize_value(self.created_at),
            'completed_at': serialize_value(self.completed_at),
            'expires_at': serialize_value(self.expires_at),
            'metadata': serialize_value(self.metadata),
        }

    def is_complete(self) -> bool:
        return self.status.is_complete()

    def is_running(self) -> bool:
        return self.status.is_running()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or _now())

    def human_readable_size(self) -> Optional[str]:
        return human_readable_bytes(self.size_bytes)


@dataclass(frozen=True)
class ConnectionResult(_Entity):
    """Outcome of a backend connection test."""

    success: bool = False
    message: str = ''
    status_code: Optional[int] = None
    latency_ms: Optional[int] = None
    data: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def succeeded(cls, message: str = 'Connection successful',
                  data: Optional[Dict[str, Any]] = None,
                  latency_ms: Optional[int] = None) -> 'ConnectionResult':
        return cls(success=True, message=message, status_code=200,
                   latency_ms=latency_ms, data=data or {})

    @classmethod
    def failed(cls, message: str, status_code: Optional[int] = None,
               data: Optional[Dict[str, Any]] = None) -> 'ConnectionResult':
        return cls(success=False, message=message, status_code=status_code,
                   latency_ms=None, data=data or {})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConnectionResult':
        return cls(
            success=to_bool(data.get('success')),
            message=to_str(data.get('message'), ''),
            status_code=to_int(data.get('status_code')),
            latency_ms=to_int(data.get('latency_ms')),
            data=to_mapping(data.get('data')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'status_code': self.status_code,
            'latency_ms': self.latency_ms,
            'data': serialize_value(self.data),
        }
