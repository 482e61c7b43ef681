"""
hosting-bridge: one interface over many hosting control panels.

Usage:
    from hosting_bridge import HostingManager, load_config

    manager = HostingManager(load_config())
    for site in manager.resolve('forge').list_sites():
        print(site.domain, site.status.label)
"""

from .backends import HostingBackend, HostingManager
from .cache import Cache, MemoryCache
from .config import load_config
from .enums import (
    BackupStatus,
    BackupType,
    Capability,
    DeploymentStatus,
    HostingProvider,
    PhpVersion,
    ServerProvider,
    ServerStatus,
    SiteStatus,
    SslStatus,
)
from .exceptions import (
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
from .models import (
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
from .pipeline import RequestPipeline
from .rate_limiter import MemoryRateLimiter, RateLimiter

__version__ = "1.0.0"

__all__ = [
    'HostingBackend',
    'HostingManager',
    'RequestPipeline',
    'Cache',
    'MemoryCache',
    'RateLimiter',
    'MemoryRateLimiter',
    'load_config',
    'BackupStatus',
    'BackupType',
    'Capability',
    'DeploymentStatus',
    'HostingProvider',
    'PhpVersion',
    'ServerProvider',
    'ServerStatus',
    'SiteStatus',
    'SslStatus',
    'HostingError',
    'AuthenticationError',
    'ConfigurationError',
    'RateLimitError',
    'ResourceNotFoundError',
    'ServerNotFoundError',
    'SiteNotFoundError',
    'UnsupportedOperationError',
    'ProvisioningError',
    'SslError',
    'Backup',
    'ConnectionResult',
    'Database',
    'DatabaseUser',
    'Deployment',
    'Server',
    'ServerMetrics',
    'Site',
    'SslCertificate',
    'SystemUser',
]
