"""Tests for the request pipeline: throttling, caching, retries and status mapping."""

import json
import threading

import httpx
import pytest

from hosting_bridge.cache import MemoryCache
from hosting_bridge.exceptions import AuthenticationError, HostingError, RateLimitError
from hosting_bridge.pipeline import RequestPipeline
from hosting_bridge.rate_limiter import MemoryRateLimiter

from conftest import API_URL


@pytest.fixture
def make_pipeline(api, clock):
    pipelines = []

    def _make(**overrides):
        options = dict(
            name="forge",
            display_name="Laravel Forge",
            base_url=API_URL,
            headers={"Authorization": "Bearer token"},
            cache=MemoryCache(clock=clock),
            rate_limiter=MemoryRateLimiter(),
            requests_per_minute=60,
            cache_ttl={"servers": 300, "deployments": 0},
            transport=api.transport,
            sleep=lambda seconds: None,
        )
        options.update(overrides)
        pipeline = RequestPipeline(**options)
        pipelines.append(pipeline)
        return pipeline

    yield _make

    for pipeline in pipelines:
        pipeline.close()


def test_successful_get_returns_body(api, make_pipeline):
    api.add("GET", "/servers", {"servers": [{"id": 1}]})

    data = make_pipeline().execute("GET", "/servers")

    assert data == {"servers": [{"id": 1}]}
    assert api.requests[0].headers["Authorization"] == "Bearer token"


def test_get_payload_is_sent_as_query(api, make_pipeline):
    api.add("GET", "/servers", {"servers": []})

    make_pipeline().execute("GET", "/servers", {"page": 2})

    assert api.requests[0].url.params["page"] == "2"


def test_post_payload_is_sent_as_json(api, make_pipeline):
    api.add("POST", "/servers/1/sites", {"site": {"id": 5}})

    make_pipeline().execute("POST", "/servers/1/sites", {"domain": "a.test"})

    assert json.loads(api.requests[0].content) == {"domain": "a.test"}


def test_empty_and_list_bodies(api, make_pipeline):
    api.add("DELETE", "/servers/1", None, status=204)
    api.add("GET", "/things", [1, 2, 3])
    pipeline = make_pipeline()

    assert pipeline.execute("DELETE", "/servers/1") == {}
    assert pipeline.execute("GET", "/things") == {"data": [1, 2, 3]}


def test_non_json_success_body_is_empty(api, make_pipeline):
    api.add_handler("GET", "/text", lambda request: httpx.Response(200, text="ok"))

    assert make_pipeline().execute("GET", "/text") == {}


def test_429_maps_to_rate_limit_with_retry_after(api, make_pipeline):
    api.add("GET", "/servers", {"message": "slow down"}, status=429, headers={"Retry-After": "42"})

    with pytest.raises(RateLimitError) as exc_info:
        make_pipeline().execute("GET", "/servers")

    assert exc_info.value.retry_after == 42
    assert exc_info.value.code == 429


def test_429_without_header_defaults_to_sixty(api, make_pipeline):
    api.add("GET", "/servers", {}, status=429)

    with pytest.raises(RateLimitError) as exc_info:
        make_pipeline().execute("GET", "/servers")

    assert exc_info.value.retry_after == 60


@pytest.mark.parametrize("header", ["inf", "-inf", "nan", "1e999", "soon", "Wed, 21 Oct 2026 07:28:00 GMT"])
def test_429_with_unusable_retry_after_defaults_to_sixty(api, make_pipeline, header):
    api.add("GET", "/servers", {}, status=429, headers={"Retry-After": header})

    with pytest.raises(RateLimitError) as exc_info:
        make_pipeline().execute("GET", "/servers")

    assert exc_info.value.retry_after == 60


def test_429_with_sub_second_retry_after_is_one(api, make_pipeline):
    api.add("GET", "/servers", {}, status=429, headers={"Retry-After": "0.4"})

    with pytest.raises(RateLimitError) as exc_info:
        make_pipeline().execute("GET", "/servers")

    assert exc_info.value.retry_after == 1


@pytest.mark.parametrize("status,code", [(401, 401), (403, 403)])
def test_auth_statuses(api, make_pipeline, status, code):
    api.add("GET", "/servers", {"message": "nope"}, status=status)

    with pytest.raises(AuthenticationError) as exc_info:
        make_pipeline().execute("GET", "/servers")

    assert exc_info.value.code == code
    assert "Laravel Forge" in exc_info.value.message


def test_other_failures_carry_status(api, make_pipeline):
    api.add("GET", "/servers", {"message": "kaboom"}, status=500)

    with pytest.raises(HostingError) as exc_info:
        make_pipeline().execute("GET", "/servers")

    error = exc_info.value
    assert type(error) is HostingError
    assert error.code == 500
    assert error.message == "API request failed: kaboom"
    assert error.context["endpoint"] == "/servers"
    assert "duration_ms" in error.context


def test_unknown_route_is_404(make_pipeline):
    with pytest.raises(HostingError) as exc_info:
        make_pipeline().execute("GET", "/missing")

    assert exc_info.value.code == 404


def test_transport_errors_are_retried(api, make_pipeline):
    attempts = []

    def flaky(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})

    api.add_handler("GET", "/servers", flaky)
    sleeps = []

    data = make_pipeline(sleep=sleeps.append).execute("GET", "/servers")

    assert data == {"ok": True}
    assert len(attempts) == 3
    assert sleeps == [0.1, 0.1]


def test_transport_errors_exhaust_retries(api, make_pipeline):
    def down(request):
        raise httpx.ConnectError("connection refused", request=request)

    api.add_handler("GET", "/servers", down)

    with pytest.raises(HostingError) as exc_info:
        make_pipeline(retries=2).execute("GET", "/servers")

    assert exc_info.value.message.startswith("API request failed:")
    assert exc_info.value.context["attempts"] == 2
    assert isinstance(exc_info.value.__cause__, httpx.TransportError)


def test_local_rate_limit_blocks_before_io(api, make_pipeline):
    api.add("GET", "/servers", {"servers": []})
    pipeline = make_pipeline(requests_per_minute=3)

    for _ in range(3):
        pipeline.execute("GET", "/servers")

    with pytest.raises(RateLimitError) as exc_info:
        pipeline.execute("GET", "/servers")

    assert 0 < exc_info.value.retry_after <= 60
    assert len(api.requests) == 3

    pipeline.rate_limiter.reset(pipeline.rate_limit_key)
    pipeline.execute("GET", "/servers")
    assert len(api.requests) == 4


def test_rate_limit_can_be_disabled(api, make_pipeline):
    api.add("GET", "/servers", {"servers": []})
    pipeline = make_pipeline(requests_per_minute=1, rate_limit_enabled=False)

    pipeline.execute("GET", "/servers")
    pipeline.execute("GET", "/servers")

    assert len(api.requests) == 2


def test_cached_get_skips_transport_until_expiry(api, make_pipeline, clock):
    api.add("GET", "/servers", {"servers": [{"id": 1}]})
    pipeline = make_pipeline()

    first = pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")
    second = pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")

    assert first == second
    assert api.calls("GET", "/servers") == 1

    clock.advance(301)
    pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")
    assert api.calls("GET", "/servers") == 2


def test_zero_ttl_never_caches(api, make_pipeline):
    api.add("GET", "/deployments", {"deployments": []})
    pipeline = make_pipeline()

    pipeline.execute("GET", "/deployments", cache_key="deployments:1", resource="deployments")
    pipeline.execute("GET", "/deployments", cache_key="deployments:1", resource="deployments")

    assert api.calls("GET", "/deployments") == 2


def test_cache_disabled_and_non_get_bypass_cache(api, make_pipeline):
    api.add("GET", "/servers", {"servers": []})
    api.add("POST", "/servers", {"server": {}})
    pipeline = make_pipeline(cache_enabled=False)

    pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")
    pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")
    assert api.calls("GET", "/servers") == 2

    cached = make_pipeline()
    cached.execute("POST", "/servers", cache_key="servers", resource="servers")
    cached.execute("POST", "/servers", cache_key="servers", resource="servers")
    assert api.calls("POST", "/servers") == 2


def test_failed_responses_are_not_cached(api, make_pipeline):
    api.add("GET", "/servers", {"message": "down"}, status=503)
    pipeline = make_pipeline()

    for _ in range(2):
        with pytest.raises(HostingError):
            pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")

    assert api.calls("GET", "/servers") == 2


def test_forget_invalidates_entry(api, make_pipeline):
    api.add("GET", "/servers", {"servers": []})
    pipeline = make_pipeline()

    pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")
    pipeline.forget("servers")
    pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")

    assert api.calls("GET", "/servers") == 2


def test_cache_hits_still_count_against_rate_limit(api, make_pipeline):
    api.add("GET", "/servers", {"servers": []})
    pipeline = make_pipeline(requests_per_minute=2)

    pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")
    pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")

    with pytest.raises(RateLimitError):
        pipeline.execute("GET", "/servers", cache_key="servers", resource="servers")
    assert api.calls("GET", "/servers") == 1


def test_keys_are_namespaced_by_backend(make_pipeline):
    pipeline = make_pipeline(cache_prefix="test:")

    assert pipeline.cache_key("sites:3") == "test:forge:sites:3"
    assert pipeline.rate_limit_key == "hosting:forge:api"
    assert pipeline.ttl_for("servers") == 300
    assert pipeline.ttl_for("unknown") == 0
    assert pipeline.ttl_for(None) == 0


class TestMemoryCache:

    def test_values_expire(self, clock):
        cache = MemoryCache(clock=clock)
        cache.set("k", {"a": 1}, 10)

        assert cache.get("k") == {"a": 1}
        clock.advance(10)
        assert cache.get("k") is None

    def test_non_positive_ttl_stores_nothing(self, clock):
        cache = MemoryCache(clock=clock)
        cache.set("k", 1, 0)

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_values_are_copied(self, clock):
        cache = MemoryCache(clock=clock)
        value = {"items": [1]}
        cache.set("k", value, 10)
        value["items"].append(2)

        cached = cache.get("k")
        cached["items"].append(3)

        assert cache.get("k") == {"items": [1]}

    def test_eviction_at_capacity(self, clock):
        cache = MemoryCache(max_size=2, clock=clock)
        cache.set("short", 1, 5)
        cache.set("long", 2, 50)
        cache.set("new", 3, 20)

        assert len(cache) == 2
        assert cache.get("short") is None
        assert cache.get("long") == 2
        assert cache.get("new") == 3

    def test_forget_and_clear(self, clock):
        cache = MemoryCache(clock=clock)
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)

        cache.forget("a")
        assert cache.get("a") is None
        cache.clear()
        assert cache.get("b") is None


class TestMemoryRateLimiter:

    def test_window_blocks_once_full(self):
        limiter = MemoryRateLimiter()

        assert limiter.attempt("k", 2) is None
        assert limiter.remaining("k", 2) == 1
        assert limiter.attempt("k", 2) is None

        retry_after = limiter.attempt("k", 2)
        assert retry_after is not None
        assert 1 <= retry_after <= 60
        assert limiter.remaining("k", 2) == 0

    def test_retry_after_respects_short_windows(self):
        limiter = MemoryRateLimiter()
        limiter.attempt("k", 1, decay_seconds=5)

        assert 1 <= limiter.attempt("k", 1, decay_seconds=5) <= 5

    def test_keys_are_independent(self):
        limiter = MemoryRateLimiter()
        limiter.attempt("a", 1)

        assert limiter.attempt("a", 1) is not None
        assert limiter.attempt("b", 1) is None

    def test_reset(self):
        limiter = MemoryRateLimiter()
        limiter.attempt("k", 1)
        limiter.reset("k")

        assert limiter.attempt("k", 1) is None
        assert limiter.remaining("k", 1) == 0

    def test_untouched_key_has_full_budget(self):
        assert MemoryRateLimiter().remaining("fresh", 30) == 30

    def test_concurrent_attempts_never_exceed_limit(self):
        limiter = MemoryRateLimiter()
        results = []
        results_lock = threading.Lock()
        start = threading.Barrier(8)

        def worker():
            start.wait()
            outcomes = [limiter.attempt("k", 50) for _ in range(100)]
            with results_lock:
                results.extend(outcomes)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 800
        assert sum(1 for outcome in results if outcome is None) == 50
        assert all(1 <= outcome <= 60 for outcome in results if outcome is not None)
