"""
Backend Registry and Resolution.

Maps driver names to backend factories and hands out one memoized backend
instance per name. The ``HostingManager`` owns the response cache and the
rate limiter every backend it creates shares.
"""

import copy
import logging
import threading
from typing import Any, Callable, Dict, Optional, Set

import httpx

from ..cache import Cache, MemoryCache
from ..enums import HostingProvider
from ..exceptions import UnsupportedOperationError
from ..rate_limiter import MemoryRateLimiter, RateLimiter
from .base import HostingBackend
from .forge import ForgeBackend
from .ploi import PloiBackend

logger = logging.getLogger(__name__)

# factory(config, cache=..., rate_limiter=..., http_transport=...) -> HostingBackend
BackendFactory = Callable[..., HostingBackend]

DEFAULT_DRIVER = 'forge'

# Registry of built-in backend implementations
BACKEND_REGISTRY: Dict[str, BackendFactory] = {
    'forge': ForgeBackend,
    'ploi': PloiBackend,
}


def get_backend(
    driver: str,
    config: Dict[str, Any],
    cache: Optional[Cache] = None,
    rate_limiter: Optional[RateLimiter] = None,
    http_transport: Optional[httpx.BaseTransport] = None,
) -> HostingBackend:
    """Instantiate a built-in backend without going through a manager.

    Raises:
        UnsupportedOperationError: If the driver is unknown
    """
    factory = BACKEND_REGISTRY.get(_canonical_name(driver))
    if factory is None:
        raise UnsupportedOperationError.unknown_driver(driver)
    return factory(config, cache=cache, rate_limiter=rate_limiter, http_transport=http_transport)


def _canonical_name(name: str) -> str:
    provider = HostingProvider.from_string(name)
    if provider is not None:
        return provider.value
    return str(name).strip().lower()


class HostingManager:
    """Resolves driver names to configured, memoized backends.

    Args:
        config: Configuration dict as built by ``config.load_config``
        cache: Shared response cache (default: in-memory)
        rate_limiter: Shared rate limiter (default: in-memory)
        http_transport: Optional httpx transport handed to every backend
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        cache: Optional[Cache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config: Dict[str, Any] = copy.deepcopy(config) if config else {}
        self.cache = cache if cache is not None else MemoryCache()
        self.rate_limiter = rate_limiter if rate_limiter is not None else MemoryRateLimiter()
        self.http_transport = http_transport

        self._creators: Dict[str, BackendFactory] = {}
        self._backends: Dict[str, HostingBackend] = {}
        self._lock = threading.RLock()

    def default_driver(self) -> str:
        return self.config.get('default') or DEFAULT_DRIVER

    def resolve(self, name: Optional[str] = None) -> HostingBackend:
        """Return the backend for ``name`` (default driver when omitted).

        Repeated calls with the same name return the same instance.

        Raises:
            UnsupportedOperationError: If no factory is registered for the name
        """
        driver = _canonical_name(name or self.default_driver())

        with self._lock:
            backend = self._backends.get(driver)
            if backend is None:
                backend = self._create(driver)
                self._backends[driver] = backend
                logger.info(f"Instantiated hosting backend: {driver}")
            return backend

    def register(self, name: str, factory: BackendFactory) -> 'HostingManager':
        """Register a custom backend factory, replacing any existing one.

        Custom factories take precedence over built-in drivers of the same name.
        """
        driver = _canonical_name(name)
        with self._lock:
            self._creators[driver] = factory
            self._backends.pop(driver, None)
        logger.info(f"Registered hosting backend: {driver}")
        return self

    def forget(self, name: str) -> None:
        """Drop the memoized instance so the next resolve builds a fresh one."""
        driver = _canonical_name(name)
        with self._lock:
            backend = self._backends.pop(driver, None)
        if backend is not None:
            backend.close()

    def available_drivers(self) -> Set[str]:
        return set(BACKEND_REGISTRY) | set(self._creators)

    def is_configured(self, name: str) -> bool:
        """True if the backend resolves and reports itself configured. Never raises."""
        try:
            return self.resolve(name).is_configured()
        except Exception as e:
            logger.debug(f"Backend {name} is not usable: {e}")
            return False

    def configured_backends(self) -> Dict[str, HostingBackend]:
        return {
            driver: self.resolve(driver)
            for driver in sorted(self.available_drivers())
            if self.is_configured(driver)
        }

    def backend_config(self, name: str) -> Dict[str, Any]:
        """Merge global cache and rate-limit settings into a backend's section."""
        driver = _canonical_name(name)
        merged = copy.deepcopy(self.config.get('providers', {}).get(driver) or {})

        cache_config = self.config.get('cache') or {}
        merged['cache_enabled'] = cache_config.get('enabled', True)
        merged['cache_prefix'] = cache_config.get('prefix', 'hosting:')
        merged['cache_ttl'] = dict(cache_config.get('ttl') or {})

        rate_config = self.config.get('rate_limits') or {}
        merged['rate_limit_enabled'] = rate_config.get('enabled', True)
        per_minute = rate_config.get('per_minute')
        if merged.get('requests_per_minute') is None and per_minute is not None:
            merged['requests_per_minute'] = per_minute

        return merged

    def flush_cache(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        with self._lock:
            backends = list(self._backends.values())
            self._backends.clear()
        for backend in backends:
            backend.close()

    def _create(self, driver: str) -> HostingBackend:
        factory = self._creators.get(driver) or BACKEND_REGISTRY.get(driver)
        if factory is None:
            raise UnsupportedOperationError.unknown_driver(driver)

        return factory(
            self.backend_config(driver),
            cache=self.cache,
            rate_limiter=self.rate_limiter,
            http_transport=self.http_transport,
        )
