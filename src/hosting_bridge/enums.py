"""
Closed enumerations shared by every backend.

Status enums are parsed with a total ``from_string``: input is trimmed and
lower-cased, mapped through a synonym table, and anything unrecognised
(including ``None``) becomes ``UNKNOWN``. Parsing never raises.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional


def _normalize(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    return str(value).strip().lower()


def _lookup(enum_cls, value: Any, synonyms: Dict[str, str], fallback):
    normalized = _normalize(value)
    if normalized is None:
        return fallback
    canonical = synonyms.get(normalized, normalized)
    try:
        return enum_cls(canonical)
    except ValueError:
        return fallback


_SERVER_STATUS_SYNONYMS = {
    'installing': 'provisioning',
    'building': 'provisioning',
    'creating': 'provisioning',
    'running': 'active',
    'ready': 'active',
    'online': 'active',
    'connected': 'active',
    'stopped': 'inactive',
    'offline': 'inactive',
    'disconnected': 'inactive',
    'restarting': 'rebooting',
    'error': 'failed',
    'removing': 'deleting',
    'terminating': 'deleting',
}


class ServerStatus(str, Enum):
    """Lifecycle state of a server."""

    PROVISIONING = 'provisioning'
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    REBOOTING = 'rebooting'
    FAILED = 'failed'
    DELETING = 'deleting'
    UNKNOWN = 'unknown'

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def is_operational(self) -> bool:
        return self is ServerStatus.ACTIVE

    def is_pending(self) -> bool:
        return self in (ServerStatus.PROVISIONING, ServerStatus.REBOOTING, ServerStatus.DELETING)

    @classmethod
    def from_string(cls, value: Any) -> 'ServerStatus':
        return _lookup(cls, value, _SERVER_STATUS_SYNONYMS, cls.UNKNOWN)


_SITE_STATUS_SYNONYMS = {
    'provisioning': 'installing',
    'building': 'installing',
    'creating': 'installing',
    'pending': 'installing',
    'running': 'active',
    'ready': 'active',
    'online': 'active',
    'enabled': 'active',
    'installed': 'active',
    'disabled': 'suspended',
    'paused': 'suspended',
    'locked': 'suspended',
    'updating': 'maintenance',
    'error': 'failed',
    'removing': 'deleting',
}


class SiteStatus(str, Enum):
    """Lifecycle state of a site."""

    INSTALLING = 'installing'
    ACTIVE = 'active'
    SUSPENDED = 'suspended'
    MAINTENANCE = 'maintenance'
    FAILED = 'failed'
    DELETING = 'deleting'
    UNKNOWN = 'unknown'

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def is_operational(self) -> bool:
        return self is SiteStatus.ACTIVE

    def is_pending(self) -> bool:
        return self in (SiteStatus.INSTALLING, SiteStatus.DELETING)

    @classmethod
    def from_string(cls, value: Any) -> 'SiteStatus':
        return _lookup(cls, value, _SITE_STATUS_SYNONYMS, cls.UNKNOWN)


_SSL_STATUS_SYNONYMS = {
    '': 'none',
    'disabled': 'none',
    'off': 'none',
    'requested': 'pending',
    'validating': 'pending',
    'provisioning': 'installing',
    'creating': 'installing',
    'issuing': 'installing',
    'enabled': 'active',
    'valid': 'active',
    'issued': 'active',
    'installed': 'active',
    'on': 'active',
    'revoked': 'expired',
    'error': 'failed',
    'invalid': 'failed',
}


class SslStatus(str, Enum):
    """State of a site's TLS certificate."""

    NONE = 'none'
    PENDING = 'pending'
    INSTALLING = 'installing'
    ACTIVE = 'active'
    EXPIRED = 'expired'
    FAILED = 'failed'
    UNKNOWN = 'unknown'

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def is_secure(self) -> bool:
        return self is SslStatus.ACTIVE

    def needs_attention(self) -> bool:
        return self in (SslStatus.EXPIRED, SslStatus.FAILED, SslStatus.NONE)

    @classmethod
    def from_string(cls, value: Any) -> 'SslStatus':
        return _lookup(cls, value, _SSL_STATUS_SYNONYMS, cls.UNKNOWN)


_DEPLOYMENT_STATUS_SYNONYMS = {
    'waiting': 'pending',
    'scheduled': 'queued',
    'deploying': 'running',
    'in_progress': 'running',
    'inprogress': 'running',
    'started': 'running',
    'success': 'succeeded',
    'finished': 'succeeded',
    'completed': 'succeeded',
    'done': 'succeeded',
    'error': 'failed',
    'errored': 'failed',
    'canceled': 'cancelled',
    'aborted': 'cancelled',
    'stopped': 'cancelled',
}


class DeploymentStatus(str, Enum):
    """State of a single deployment run."""

    PENDING = 'pending'
    QUEUED = 'queued'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    CANCELLED = 'cancelled'
    UNKNOWN = 'unknown'

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def is_complete(self) -> bool:
        return self in (DeploymentStatus.SUCCEEDED, DeploymentStatus.FAILED, DeploymentStatus.CANCELLED)

    def is_running(self) -> bool:
        return self in (DeploymentStatus.PENDING, DeploymentStatus.QUEUED, DeploymentStatus.RUNNING)

    def is_successful(self) -> bool:
        return self is DeploymentStatus.SUCCEEDED

    @classmethod
    def from_string(cls, value: Any) -> 'DeploymentStatus':
        return _lookup(cls, value, _DEPLOYMENT_STATUS_SYNONYMS, cls.UNKNOWN)


_BACKUP_STATUS_SYNONYMS = {
    'queued': 'pending',
    'scheduled': 'pending',
    'inprogress': 'in_progress',
    'running': 'in_progress',
    'creating': 'in_progress',
    'backing_up': 'in_progress',
    'complete': 'completed',
    'finished': 'completed',
    'success': 'completed',
    'done': 'completed',
    'available': 'completed',
    'error': 'failed',
    'errored': 'failed',
    'restore_in_progress': 'restoring',
    'removing': 'deleting',
}


class BackupStatus(str, Enum):
    """State of a backup archive."""

    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    FAILED = 'failed'
    RESTORING = 'restoring'
    DELETING = 'deleting'
    UNKNOWN = 'unknown'

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').title()

    def is_complete(self) -> bool:
        return self is BackupStatus.COMPLETED

    def is_running(self) -> bool:
        return self in (
            BackupStatus.PENDING,
            BackupStatus.IN_PROGRESS,
            BackupStatus.RESTORING,
            BackupStatus.DELETING,
        )

    @classmethod
    def from_string(cls, value: Any) -> 'BackupStatus':
        return _lookup(cls, value, _BACKUP_STATUS_SYNONYMS, cls.UNKNOWN)


_BACKUP_TYPE_SYNONYMS = {
    'complete': 'full',
    'all': 'full',
    'db': 'database',
    'sql': 'database',
    'mysql': 'database',
    'db_only': 'database',
    'database_only': 'database',
    'file': 'files',
    'filesystem': 'files',
    'files_only': 'files',
    'differential': 'incremental',
    'delta': 'incremental',
    'image': 'snapshot',
}

_BACKUP_TYPE_LABELS = {
    'full': 'Full Backup',
    'database': 'Database Only',
    'files': 'Files Only',
    'incremental': 'Incremental',
    'snapshot': 'Snapshot',
    'unknown': 'Unknown',
}


class BackupType(str, Enum):
    """What a backup archive contains."""

    FULL = 'full'
    DATABASE = 'database'
    FILES = 'files'
    INCREMENTAL = 'incremental'
    SNAPSHOT = 'snapshot'
    UNKNOWN = 'unknown'

    @property
    def label(self) -> str:
        return _BACKUP_TYPE_LABELS[self.value]

    def includes_database(self) -> bool:
        return self in (BackupType.FULL, BackupType.DATABASE, BackupType.SNAPSHOT)

    def includes_files(self) -> bool:
        return self in (BackupType.FULL, BackupType.FILES, BackupType.SNAPSHOT, BackupType.INCREMENTAL)

    @classmethod
    def from_string(cls, value: Any) -> 'BackupType':
        return _lookup(cls, value, _BACKUP_TYPE_SYNONYMS, cls.UNKNOWN)


class PhpVersion(str, Enum):
    """PHP runtime versions a site or server can run."""

    PHP_74 = '7.4'
    PHP_80 = '8.0'
    PHP_81 = '8.1'
    PHP_82 = '8.2'
    PHP_83 = '8.3'
    PHP_84 = '8.4'

    @property
    def label(self) -> str:
        return f"PHP {self.value}"

    @property
    def major(self) -> int:
        return int(self.value.split('.')[0])

    @property
    def minor(self) -> int:
        return int(self.value.split('.')[1])

    def is_supported(self) -> bool:
        return self in (PhpVersion.PHP_82, PhpVersion.PHP_83, PhpVersion.PHP_84)

    def is_legacy(self) -> bool:
        return self in (PhpVersion.PHP_74, PhpVersion.PHP_80)

    @classmethod
    def latest(cls) -> 'PhpVersion':
        return cls.PHP_84

    @classmethod
    def recommended(cls) -> 'PhpVersion':
        return cls.PHP_83

    @classmethod
    def supported(cls) -> List['PhpVersion']:
        return [version for version in cls if version.is_supported()]

    @classmethod
    def from_string(cls, value: Any) -> Optional['PhpVersion']:
        """Parse 'php82', 'PHP 8.2', '8.2.14' or '8.2'; None when unparsable.

        Unlike the status enums this one has no UNKNOWN member, so callers
        get None rather than a guess.
        """
        if value is None:
            return None
        if isinstance(value, PhpVersion):
            return value
        normalized = re.sub(r'[^0-9.]', '', str(value))
        if not normalized:
            return None
        parts = normalized.split('.')
        if len(parts) >= 2:
            candidate = f"{parts[0]}.{parts[1]}"
        elif len(normalized) == 2:
            # Compact form as used by Forge: 'php82'
            candidate = f"{normalized[0]}.{normalized[1]}"
        else:
            candidate = normalized
        try:
            return cls(candidate)
        except ValueError:
            return None


_SERVER_PROVIDER_SYNONYMS = {
    'digital_ocean': 'digitalocean',
    'do': 'digitalocean',
    'ocean': 'digitalocean',
    'ocean2': 'digitalocean',
    'amazon': 'aws',
    'ec2': 'aws',
    'amazon_web_services': 'aws',
    'akamai': 'linode',
    'hcloud': 'hetzner',
    'google': 'gcp',
    'google_cloud': 'gcp',
    'googlecloud': 'gcp',
    'microsoft': 'azure',
    'microsoft_azure': 'azure',
    'other': 'custom',
    'self-hosted': 'custom',
    'selfhosted': 'custom',
}

_SERVER_PROVIDER_LABELS = {
    'digitalocean': 'DigitalOcean',
    'aws': 'Amazon Web Services',
    'vultr': 'Vultr',
    'linode': 'Linode',
    'hetzner': 'Hetzner',
    'upcloud': 'UpCloud',
    'gcp': 'Google Cloud',
    'azure': 'Microsoft Azure',
    'custom': 'Custom Server',
    'unknown': 'Unknown',
}


class ServerProvider(str, Enum):
    """Cloud vendor a server runs on."""

    DIGITALOCEAN = 'digitalocean'
    AWS = 'aws'
    VULTR = 'vultr'
    LINODE = 'linode'
    HETZNER = 'hetzner'
    UPCLOUD = 'upcloud'
    GOOGLE_CLOUD = 'gcp'
    AZURE = 'azure'
    CUSTOM = 'custom'
    UNKNOWN = 'unknown'

    @property
    def label(self) -> str:
        return _SERVER_PROVIDER_LABELS[self.value]

    @classmethod
    def from_string(cls, value: Any) -> 'ServerProvider':
        return _lookup(cls, value, _SERVER_PROVIDER_SYNONYMS, cls.UNKNOWN)


# name -> (label, api base url, default requests per minute, wordpress only)
_HOSTING_PROVIDER_INFO = {
    'forge': ('Laravel Forge', 'https://forge.laravel.com/api/v1', 30, False),
    'gridpane': ('GridPane', 'https://my.gridpane.com/api/v1', 10, True),
    'cloudways': ('Cloudways', 'https://api.cloudways.com/api/v1', 30, False),
    'kinsta': ('Kinsta', 'https://api.kinsta.com/v2', 60, True),
    'wpengine': ('WP Engine', 'https://api.wpengineapi.com/v1', 60, True),
    'ploi': ('Ploi', 'https://ploi.io/api', 60, False),
    'runcloud': ('RunCloud', 'https://manage.runcloud.io/api/v2', 60, False),
    'spinupwp': ('SpinupWP', 'https://api.spinupwp.com/v1', 60, True),
    'cpanel': ('cPanel/WHM', '', 30, False),
}

_HOSTING_PROVIDER_SYNONYMS = {
    'laravel_forge': 'forge',
    'laravel-forge': 'forge',
    'grid_pane': 'gridpane',
    'grid-pane': 'gridpane',
    'wp_engine': 'wpengine',
    'wp-engine': 'wpengine',
    'wpe': 'wpengine',
    'run_cloud': 'runcloud',
    'run-cloud': 'runcloud',
    'spinup_wp': 'spinupwp',
    'spinup-wp': 'spinupwp',
    'spinup': 'spinupwp',
    'whm': 'cpanel',
    'cpanel/whm': 'cpanel',
}


class HostingProvider(str, Enum):
    """Known hosting control panels."""

    FORGE = 'forge'
    GRIDPANE = 'gridpane'
    CLOUDWAYS = 'cloudways'
    KINSTA = 'kinsta'
    WPENGINE = 'wpengine'
    PLOI = 'ploi'
    RUNCLOUD = 'runcloud'
    SPINUPWP = 'spinupwp'
    CPANEL = 'cpanel'

    @property
    def label(self) -> str:
        return _HOSTING_PROVIDER_INFO[self.value][0]

    @property
    def api_base_url(self) -> str:
        """Default API URL; empty for cPanel, whose URL is per server."""
        return _HOSTING_PROVIDER_INFO[self.value][1]

    @property
    def default_rate_limit(self) -> int:
        return _HOSTING_PROVIDER_INFO[self.value][2]

    def is_wordpress_only(self) -> bool:
        return _HOSTING_PROVIDER_INFO[self.value][3]

    @classmethod
    def from_string(cls, value: Any) -> Optional['HostingProvider']:
        return _lookup(cls, value, _HOSTING_PROVIDER_SYNONYMS, None)


_CAPABILITY_DESCRIPTIONS = {
    'server_management': ('Server Management', 'Ability to list and manage existing servers'),
    'server_provisioning': ('Server Provisioning', 'Ability to provision new servers via cloud providers'),
    'custom_server': ('Custom Server', 'Ability to connect existing/custom servers'),
    'system_user_management': ('System User Management', 'Create and manage system users on servers'),
    'site_provisioning': ('Site Provisioning', 'Ability to create new sites/accounts'),
    'site_suspension': ('Site Suspension', 'Ability to suspend and unsuspend sites'),
    'staging_sites': ('Staging Sites', 'Support for staging/development environments'),
    'ssl_installation': ('SSL Installation', 'Ability to install SSL certificates'),
    'ssl_auto_renewal': ('SSL Auto Renewal', "Automatic SSL certificate renewal (Let's Encrypt)"),
    'backup_creation': ('Backup Creation', 'Ability to create backups'),
    'backup_restore': ('Backup Restore', 'Ability to restore from backups'),
    'database_management': ('Database Management', 'Create and manage databases'),
    'php_version_switching': ('PHP Version Switching', 'Ability to change PHP versions'),
    'cache_clearing': ('Cache Clearing', 'Ability to clear site/server cache'),
    'git_deployment': ('Git Deployment', 'Support for Git-based deployments'),
    'deployment_scripts': ('Deployment Scripts', 'Custom deployment script management'),
    'queue_workers': ('Queue Workers', 'Support for queue worker management'),
    'scheduled_jobs': ('Scheduled Jobs', 'Support for cron/scheduled task management'),
    'wordpress_management': ('WordPress Management', 'WordPress-specific management features'),
    'ssh_access': ('SSH Access', 'SSH key and access management'),
    'file_manager': ('File Manager', 'File management capabilities via API'),
    'email_management': ('Email Management', 'Email account creation and management'),
    'dns_management': ('DNS Management', 'DNS zone and record management'),
    'resource_monitoring': ('Resource Monitoring', 'Server/site resource usage monitoring'),
    'environment_variables': ('Environment Variables', 'Environment variable management'),
}


class Capability(str, Enum):
    """Optional features a backend may advertise."""

    SERVER_MANAGEMENT = 'server_management'
    SERVER_PROVISIONING = 'server_provisioning'
    CUSTOM_SERVER = 'custom_server'
    SYSTEM_USER_MANAGEMENT = 'system_user_management'
    SITE_PROVISIONING = 'site_provisioning'
    SITE_SUSPENSION = 'site_suspension'
    STAGING_SITES = 'staging_sites'
    SSL_INSTALLATION = 'ssl_installation'
    SSL_AUTO_RENEWAL = 'ssl_auto_renewal'
    BACKUP_CREATION = 'backup_creation'
    BACKUP_RESTORE = 'backup_restore'
    DATABASE_MANAGEMENT = 'database_management'
    PHP_VERSION_SWITCHING = 'php_version_switching'
    CACHE_CLEARING = 'cache_clearing'
    GIT_DEPLOYMENT = 'git_deployment'
    DEPLOYMENT_SCRIPTS = 'deployment_scripts'
    QUEUE_WORKERS = 'queue_workers'
    SCHEDULED_JOBS = 'scheduled_jobs'
    WORDPRESS_MANAGEMENT = 'wordpress_management'
    SSH_ACCESS = 'ssh_access'
    FILE_MANAGER = 'file_manager'
    EMAIL_MANAGEMENT = 'email_management'
    DNS_MANAGEMENT = 'dns_management'
    RESOURCE_MONITORING = 'resource_monitoring'
    ENVIRONMENT_VARIABLES = 'environment_variables'

    @property
    def label(self) -> str:
        return _CAPABILITY_DESCRIPTIONS[self.value][0]

    @property
    def description(self) -> str:
        return _CAPABILITY_DESCRIPTIONS[self.value][1]

    @classmethod
    def server_capabilities(cls) -> frozenset:
        return frozenset({
            cls.SERVER_MANAGEMENT,
            cls.SERVER_PROVISIONING,
            cls.CUSTOM_SERVER,
            cls.SYSTEM_USER_MANAGEMENT,
            cls.RESOURCE_MONITORING,
        })

    @classmethod
    def site_capabilities(cls) -> frozenset:
        return frozenset({
            cls.SITE_PROVISIONING,
            cls.SITE_SUSPENSION,
            cls.STAGING_SITES,
            cls.PHP_VERSION_SWITCHING,
            cls.CACHE_CLEARING,
        })

    @classmethod
    def deployment_capabilities(cls) -> frozenset:
        return frozenset({
            cls.GIT_DEPLOYMENT,
            cls.DEPLOYMENT_SCRIPTS,
            cls.QUEUE_WORKERS,
            cls.SCHEDULED_JOBS,
            cls.ENVIRONMENT_VARIABLES,
        })
