"""
Error hierarchy for hosting backend operations.

Every error carries a human-readable message, an optional numeric code
(usually the HTTP status it maps to) and a context dict with whatever
identifiers the caller needs to log or retry. Subclasses are normally
built through their named factories so messages stay identical for the
same inputs.
"""

from typing import Any, Dict, List, Optional

from .enums import Capability


class HostingError(Exception):
    """Base exception for all hosting backend failures."""

    def __init__(self, message: str, code: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error': type(self).__name__,
            'message': self.message,
            'code': self.code,
            'context': self.context,
        }


class AuthenticationError(HostingError):
    """Credentials were missing, rejected or lacked permission."""

    def __init__(self, message: str, backend: str = '', code: Optional[int] = 401,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, context)
        self.backend = backend

    @classmethod
    def invalid_token(cls, backend: str) -> 'AuthenticationError':
        return cls(f"Invalid API token for {backend}", backend, 401, {'provider': backend})

    @classmethod
    def expired_token(cls, backend: str) -> 'AuthenticationError':
        return cls(f"API token for {backend} has expired", backend, 401, {'provider': backend})

    @classmethod
    def missing_credentials(cls, backend: str) -> 'AuthenticationError':
        return cls(f"Missing API credentials for {backend}", backend, 401, {'provider': backend})

    @classmethod
    def insufficient_permissions(cls, backend: str,
                                 permission: Optional[str] = None) -> 'AuthenticationError':
        message = f"Insufficient permissions for {backend}"
        if permission:
            message += f": missing '{permission}'"
        return cls(message, backend, 403, {'provider': backend, 'permission': permission})


class RateLimitError(HostingError):
    """The backend (or our own limiter) refused a request for now.

    ``retry_after`` is always a positive number of seconds.
    """

    def __init__(self, message: str, backend: str = '', retry_after: int = 60,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, 429, context)
        self.backend = backend
        self.retry_after = retry_after

    @classmethod
    def with_retry_after(cls, backend: str, retry_after: int) -> 'RateLimitError':
        return cls(
            f"Rate limit exceeded for {backend}. Please try again in {retry_after} seconds.",
            backend,
            retry_after,
            {'provider': backend, 'retry_after': retry_after},
        )

    @classmethod
    def per_minute(cls, backend: str, limit: int,
                   retry_after: Optional[int] = None) -> 'RateLimitError':
        message = f"Rate limit of {limit} requests per minute exceeded for {backend}"
        if retry_after is not None:
            message += f". Retry in {retry_after} seconds."
        return cls(
            message,
            backend,
            retry_after if retry_after is not None else 60,
            {'provider': backend, 'limit': limit, 'period': 'minute', 'retry_after': retry_after},
        )

    @classmethod
    def per_hour(cls, backend: str, limit: int,
                 retry_after: Optional[int] = None) -> 'RateLimitError':
        message = f"Rate limit of {limit} requests per hour exceeded for {backend}"
        if retry_after is not None:
            message += f". Retry in {retry_after} seconds."
        return cls(
            message,
            backend,
            retry_after if retry_after is not None else 3600,
            {'provider': backend, 'limit': limit, 'period': 'hour', 'retry_after': retry_after},
        )


class ResourceNotFoundError(HostingError):
    """A single server or site lookup found nothing."""

    kind = 'resource'

    def __init__(self, message: str, resource_id: str = '', backend: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, 404, context)
        self.resource_id = resource_id
        self.backend = backend


class ServerNotFoundError(ResourceNotFoundError):
    kind = 'server'

    def __init__(self, server_id: str, backend: Optional[str] = None):
        if backend:
            message = f"Server {server_id} not found on {backend}"
        else:
            message = f"Server not found: {server_id}"
        super().__init__(message, server_id, backend,
                         {'server_id': server_id, 'provider': backend})

    @classmethod
    def on_backend(cls, server_id: str, backend: str) -> 'ServerNotFoundError':
        return cls(server_id, backend)


class SiteNotFoundError(ResourceNotFoundError):
    kind = 'site'

    def __init__(self, site_id: str, server_id: Optional[str] = None,
                 backend: Optional[str] = None, message: Optional[str] = None):
        if message is None:
            if server_id:
                message = f"Site {site_id} not found on server {server_id}"
            elif backend:
                message = f"Site {site_id} not found on {backend}"
            else:
                message = f"Site not found: {site_id}"
        super().__init__(message, site_id, backend,
                         {'site_id': site_id, 'server_id': server_id, 'provider': backend})
        self.server_id = server_id

    @classmethod
    def on_backend(cls, site_id: str, backend: str) -> 'SiteNotFoundError':
        return cls(site_id, backend=backend)

    @classmethod
    def by_domain(cls, domain: str, backend: str) -> 'SiteNotFoundError':
        return cls(
            domain,
            backend=backend,
            message=f"Site with domain '{domain}' not found on {backend}",
        )


class UnsupportedOperationError(HostingError):
    """The backend cannot do what was asked.

    Raised by the capability guard before any I/O, for operations a backend
    never overrides, and by the registry for unknown driver names.
    """

    def __init__(self, message: str, backend: str = '',
                 capability: Optional[Capability] = None,
                 operation: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, 501, context)
        self.backend = backend
        # these shadow the same-named factories on instances; call those on the class
        self.capability = capability
        self.operation = operation

    @classmethod
    def capability(cls, capability: Capability, backend: str) -> 'UnsupportedOperationError':
        return cls(
            f"The capability '{capability.label}' is not supported by {backend}",
            backend,
            capability=capability,
            context={'capability': capability.value, 'provider': backend},
        )

    @classmethod
    def operation(cls, operation: str, backend: str) -> 'UnsupportedOperationError':
        return cls(
            f"The operation '{operation}' is not supported by {backend}",
            backend,
            operation=operation,
            context={'operation': operation, 'provider': backend},
        )

    @classmethod
    def not_implemented(cls, operation: str, backend: str) -> 'UnsupportedOperationError':
        return cls(
            f"The operation '{operation}' is not yet implemented for {backend}",
            backend,
            operation=operation,
            context={'operation': operation, 'provider': backend, 'not_implemented': True},
        )

    @classmethod
    def unknown_driver(cls, driver: str) -> 'UnsupportedOperationError':
        return cls(
            f"Hosting driver [{driver}] is not supported",
            driver,
            operation='resolve',
            context={'driver': driver},
        )

    @property
    def is_not_implemented(self) -> bool:
        return bool(self.context.get('not_implemented'))


class ProvisioningError(HostingError):
    """Creating a server, site or database failed or timed out."""

    def __init__(self, message: str, resource_type: str = '',
                 resource_id: Optional[str] = None, code: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        merged = {'resource_type': resource_type, 'resource_id': resource_id}
        merged.update(context or {})
        super().__init__(message, code, merged)
        self.resource_type = resource_type
        self.resource_id = resource_id

    @classmethod
    def server_failed(cls, message: str, server_id: Optional[str] = None) -> 'ProvisioningError':
        return cls(message, 'server', server_id)

    @classmethod
    def site_failed(cls, message: str, site_id: Optional[str] = None) -> 'ProvisioningError':
        return cls(message, 'site', site_id)

    @classmethod
    def database_failed(cls, message: str, database_id: Optional[str] = None) -> 'ProvisioningError':
        return cls(message, 'database', database_id)

    @classmethod
    def timeout(cls, resource_type: str, resource_id: Optional[str] = None) -> 'ProvisioningError':
        message = f"Provisioning timeout for {resource_type}"
        if resource_id:
            message += f" ({resource_id})"
        return cls(message, resource_type, resource_id, 408)

    @classmethod
    def invalid_configuration(cls, resource_type: str, errors: List[str]) -> 'ProvisioningError':
        return cls(
            f"Invalid {resource_type} configuration: {', '.join(errors)}",
            resource_type,
            code=422,
            context={'errors': list(errors)},
        )


class SslError(HostingError):
    """Certificate installation, validation or renewal failed."""

    def __init__(self, message: str, site_id: Optional[str] = None,
                 domain: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        merged = {'site_id': site_id, 'domain': domain}
        merged.update(context or {})
        super().__init__(message, None, merged)
        self.site_id = site_id
        self.domain = domain

    @classmethod
    def installation_failed(cls, site_id: str, reason: str) -> 'SslError':
        return cls(f"SSL installation failed for site {site_id}: {reason}", site_id=site_id)

    @classmethod
    def validation_failed(cls, domain: str, reason: str) -> 'SslError':
        return cls(f"SSL validation failed for {domain}: {reason}", domain=domain)

    @classmethod
    def invalid_certificate(cls, reason: str) -> 'SslError':
        return cls(f"Invalid SSL certificate: {reason}")

    @classmethod
    def renewal_failed(cls, site_id: str, reason: str) -> 'SslError':
        return cls(f"SSL renewal failed for site {site_id}: {reason}", site_id=site_id)


class ConfigurationError(HostingError):
    """The configuration file or an environment override is invalid."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, None, {'path': path})
        self.path = path
