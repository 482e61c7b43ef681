"""
Request pipeline wrapping every outbound backend call.

Each call goes through, in order:

1. the per-backend rate limiter (fixed 60 second window),
2. the response cache, for GET requests that name a cache key,
3. the HTTP transport, retrying transient connection failures,
4. status classification into the error hierarchy,
5. cache population on success.

The pipeline only deals in raw JSON dicts. Turning them into entities is
the backend's job.
"""

import logging
import math
import time
from typing import Any, Callable, Dict, Optional

import httpx

from .cache import Cache
from .exceptions import AuthenticationError, HostingError, RateLimitError
from .rate_limiter import DEFAULT_DECAY_SECONDS, RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_RETRIES = 3
DEFAULT_RETRY_DELAY = 0.1
DEFAULT_RETRY_AFTER = 60
DEFAULT_CACHE_PREFIX = 'hosting:'


class RequestPipeline:
    """Rate-limited, cached, retrying HTTP access to one backend API.

    Args:
        name: Backend driver name, used in rate-limit and cache keys
        display_name: Human-readable backend name used in error messages
        base_url: API root URL
        headers: Default headers (authentication goes here)
        cache: Shared response cache, or None to disable caching
        rate_limiter: Shared limiter, or None to disable throttling
        requests_per_minute: Ceiling for the 60 second window
        cache_ttl: Seconds to cache each resource class; 0 means never
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``
    """

    def __init__(
        self,
        name: str,
        display_name: str,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        cache: Optional[Cache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        requests_per_minute: int = 60,
        rate_limit_enabled: bool = True,
        cache_enabled: bool = True,
        cache_prefix: str = DEFAULT_CACHE_PREFIX,
        cache_ttl: Optional[Dict[str, int]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.name = name
        self.display_name = display_name
        self.base_url = base_url.rstrip('/')
        self.headers = dict(headers or {})
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.requests_per_minute = requests_per_minute
        self.rate_limit_enabled = rate_limit_enabled
        self.cache_enabled = cache_enabled
        self.cache_prefix = cache_prefix
        self.cache_ttl = dict(cache_ttl or {})
        self.timeout = timeout
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.transport = transport
        self._sleep = sleep if sleep is not None else time.sleep

        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @property
    def rate_limit_key(self) -> str:
        return f"hosting:{self.name}:api"

    def cache_key(self, key: str) -> str:
        return f"{self.cache_prefix}{self.name}:{key}"

    def ttl_for(self, resource: Optional[str]) -> int:
        if resource is None:
            return 0
        return int(self.cache_ttl.get(resource, 0) or 0)

    def execute(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        cache_key: Optional[str] = None,
        resource: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Perform one API call and return the decoded JSON body.

        Args:
            method: HTTP method
            endpoint: Path relative to the base URL
            payload: Query parameters for GET, JSON body otherwise
            cache_key: Backend-relative cache key; GET only
            resource: Resource class selecting the TTL
                (servers, sites, ssl, databases, deployments)

        Returns:
            Response body. Empty bodies yield {} and non-object JSON is
            wrapped as {'data': value}.

        Raises:
            RateLimitError: Local window exhausted or backend returned 429
            AuthenticationError: Backend returned 401 or 403
            HostingError: Any other failure, with the HTTP status as code
        """
        method = method.upper()

        self._check_rate_limit()

        full_key = None
        ttl = 0
        if method == 'GET' and cache_key and self.cache_enabled and self.cache is not None:
            ttl = self.ttl_for(resource)
            if ttl > 0:
                full_key = self.cache_key(cache_key)
                cached = self.cache.get(full_key)
                if cached is not None:
                    logger.debug(f"Cache hit for {full_key}")
                    return cached

        started = time.perf_counter()
        response = self._send(method, endpoint, payload)
        duration_ms = int((time.perf_counter() - started) * 1000)

        data = self._classify(response, method, endpoint, duration_ms)

        if full_key is not None:
            self.cache.set(full_key, data, ttl)

        return data

    def forget(self, cache_key: str) -> None:
        """Invalidate one cached entry after a mutation."""
        if self.cache is not None:
            self.cache.forget(self.cache_key(cache_key))

    def _check_rate_limit(self) -> None:
        if not self.rate_limit_enabled or self.rate_limiter is None:
            return

        retry_after = self.rate_limiter.attempt(
            self.rate_limit_key, self.requests_per_minute, DEFAULT_DECAY_SECONDS
        )
        if retry_after is not None:
            logger.warning(
                f"Rate limit of {self.requests_per_minute}/min reached for {self.name}, "
                f"retry in {retry_after}s"
            )
            raise RateLimitError.per_minute(self.display_name, self.requests_per_minute, retry_after)

    def _send(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]]) -> httpx.Response:
        kwargs: Dict[str, Any] = {}
        if payload is not None:
            if method == 'GET':
                kwargs['params'] = payload
            else:
                kwargs['json'] = payload

        for attempt in range(1, self.retries + 1):
            try:
                return self.client.request(method, endpoint, **kwargs)
            except httpx.TransportError as e:
                if attempt >= self.retries:
                    logger.error(
                        f"{self.display_name} request {method} {endpoint} failed after "
                        f"{attempt} attempts: {e}"
                    )
                    raise HostingError(
                        f"API request failed: {e}",
                        None,
                        {'endpoint': endpoint, 'method': method, 'attempts': attempt},
                    ) from e
                logger.warning(
                    f"{self.display_name} request {method} {endpoint} failed "
                    f"(attempt {attempt}/{self.retries}): {e}"
                )
                self._sleep(self.retry_delay)

        # Unreachable: the loop either returns or raises
        raise HostingError(f"API request failed: {method} {endpoint}")

    def _classify(self, response: httpx.Response, method: str, endpoint: str,
                  duration_ms: int) -> Dict[str, Any]:
        status = response.status_code

        if status == 401:
            raise AuthenticationError.invalid_token(self.display_name)

        if status == 403:
            raise AuthenticationError.insufficient_permissions(self.display_name)

        if status == 429:
            retry_after = _parse_retry_after(response.headers.get('Retry-After'))
            logger.warning(f"{self.display_name} returned 429 for {endpoint}, retry in {retry_after}s")
            raise RateLimitError.with_retry_after(self.display_name, retry_after)

        if not response.is_success:
            body = _decode(response)
            message = None
            if isinstance(body, dict):
                message = body.get('message') or body.get('error')
            if not message:
                message = response.text
            logger.error(
                f"{self.display_name} API request failed: {method} {endpoint} "
                f"returned {status} in {duration_ms}ms"
            )
            raise HostingError(
                f"API request failed: {message}",
                status,
                {'status_code': status, 'endpoint': endpoint, 'duration_ms': duration_ms},
            )

        body = _decode(response)
        if body is None:
            return {}
        if isinstance(body, dict):
            return body
        return {'data': body}


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _parse_retry_after(value: Optional[str]) -> int:
    """Seconds from a Retry-After header. HTTP-dates and non-finite numbers fall back to the default."""
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        seconds = float(value.strip())
    except ValueError:
        return DEFAULT_RETRY_AFTER
    if not math.isfinite(seconds):
        return DEFAULT_RETRY_AFTER
    return max(1, int(seconds))
