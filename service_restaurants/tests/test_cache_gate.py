"""
Unit tests for the cache gate in front of the restaurant routes.
"""

import asyncio
import json

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_restaurants.app.caching import CacheGate, CachedResponse, RequestDescriptor, ResponseCache
from shared.test_helpers import FakeClock


PREFIX = "/api/v1/restaurants"


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))


class CountingHandler:
    """Handler that records how many times it ran."""

    def __init__(self, response: CachedResponse):
        self.response = response
        self.calls = 0

    async def __call__(self) -> CachedResponse:
        self.calls += 1
        return self.response


class TestRequestDescriptor:
    """Test cases for cache key derivation."""

    def test_key_ignores_parameter_order(self):
        first = RequestDescriptor.build("GET", PREFIX, [("cuisine", "Mexican"), ("city", "Puebla")])
        second = RequestDescriptor.build("GET", PREFIX, [("city", "Puebla"), ("cuisine", "Mexican")])

        assert first.cache_key == second.cache_key

    def test_key_distinguishes_values(self):
        mexican = RequestDescriptor.build("GET", PREFIX, [("cuisine", "Mexican")])
        italian = RequestDescriptor.build("GET", PREFIX, [("cuisine", "Italian")])

        assert mexican.cache_key != italian.cache_key

    def test_key_starts_with_path(self):
        descriptor = RequestDescriptor.build("get", PREFIX + "/stats")

        assert descriptor.cache_key == PREFIX + "/stats?[]"
        assert descriptor.method == "GET"

    def test_repeated_parameters_keep_request_order(self):
        descriptor = RequestDescriptor.build("GET", PREFIX, [("tag", "b"), ("limit", "5"), ("tag", "a")])

        assert descriptor.query_params == (("limit", "5"), ("tag", "b"), ("tag", "a"))


class TestCachedResponse:
    """Test cases for rendered response snapshots."""

    def test_json_render_is_compact_utf8(self):
        response = CachedResponse.json(200, {"name": "Café de Tacuba"})

        assert response.body == '{"name":"Café de Tacuba"}'.encode("utf-8")
        assert response.media_type == "application/json"

    def test_to_response_sets_cache_header(self):
        response = CachedResponse.json(200, {"ok": True}).to_response(cache_status="HIT")

        assert response.headers["X-Cache"] == "HIT"
        assert response.body == b'{"ok":true}'

    def test_empty_response(self):
        response = CachedResponse.empty()

        assert response.status_code == 204
        assert response.body == b""


class TestCacheGate:
    """Test cases for CacheGate."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return ResponseCache(ttl_seconds=300, clock=clock)

    @pytest.fixture
    def metrics(self):
        return DummyMetrics()

    @pytest.fixture
    def gate(self, cache, metrics):
        return CacheGate(cache, PREFIX, metrics=metrics)

    @pytest.fixture
    def listing(self):
        return RequestDescriptor.build("GET", PREFIX, [("cuisine", "Mexican")])

    @pytest.mark.asyncio
    async def test_miss_runs_handler_and_captures(self, gate, cache, listing):
        handler = CountingHandler(CachedResponse.json(200, {"status": "success", "results": 4}))

        result = await gate.read(listing, handler)

        assert handler.calls == 1
        assert result.hit is False
        assert result.cache_status == "MISS"
        assert cache.get(listing.cache_key) == result.response

    @pytest.mark.asyncio
    async def test_hit_short_circuits_handler(self, gate, listing):
        handler = CountingHandler(CachedResponse.json(200, {"status": "success"}))

        first = await gate.read(listing, handler)
        second = await gate.read(listing, handler)

        assert handler.calls == 1
        assert second.hit is True
        assert second.cache_status == "HIT"
        assert second.response.body == first.response.body

    @pytest.mark.asyncio
    async def test_error_bodies_are_cached(self, gate, listing):
        not_found = CachedResponse.json(404, {"status": "fail", "code": "NOT_FOUND"})
        handler = CountingHandler(not_found)

        await gate.read(listing, handler)
        result = await gate.read(listing, handler)

        assert handler.calls == 1
        assert result.hit is True
        assert result.response.status_code == 404

    @pytest.mark.asyncio
    async def test_expired_entry_reruns_handler(self, gate, clock, listing):
        handler = CountingHandler(CachedResponse.json(200, {}))

        await gate.read(listing, handler)
        clock.advance(301)
        result = await gate.read(listing, handler)

        assert handler.calls == 2
        assert result.hit is False

    @pytest.mark.asyncio
    async def test_cancelled_handler_stores_nothing(self, gate, cache, listing):
        async def cancelled():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await gate.read(listing, cancelled)

        assert listing.cache_key not in cache

    @pytest.mark.asyncio
    async def test_handler_exception_stores_nothing(self, gate, cache, listing):
        async def broken():
            raise RuntimeError("store unavailable")

        with pytest.raises(RuntimeError):
            await gate.read(listing, broken)

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_write_invalidates_family(self, gate, cache, listing):
        other = RequestDescriptor.build("GET", "/api/v1/cache/stats")
        cache.set(listing.cache_key, CachedResponse.json(200, {}))
        cache.set(PREFIX + "/stats?[]", CachedResponse.json(200, {}))
        cache.set(other.cache_key, CachedResponse.json(200, {}))

        created = CachedResponse.json(201, {"status": "success"})
        result = await gate.write(RequestDescriptor.build("POST", PREFIX), CountingHandler(created))

        assert result is created
        assert listing.cache_key not in cache
        assert PREFIX + "/stats?[]" not in cache
        assert other.cache_key in cache

    @pytest.mark.asyncio
    async def test_failed_write_still_invalidates(self, gate, cache, listing):
        cache.set(listing.cache_key, CachedResponse.json(200, {}))

        async def failing():
            raise RuntimeError("write failed")

        with pytest.raises(RuntimeError):
            await gate.write(RequestDescriptor.build("PUT", PREFIX + "/abc"), failing)

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_read_after_write_sees_new_data(self, gate, listing):
        before = CountingHandler(CachedResponse.json(200, {"results": 4}))
        after = CountingHandler(CachedResponse.json(200, {"results": 5}))

        await gate.read(listing, before)
        await gate.write(RequestDescriptor.build("POST", PREFIX), CountingHandler(CachedResponse.json(201, {})))
        result = await gate.read(listing, after)

        assert result.hit is False
        assert json.loads(result.response.body) == {"results": 5}

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, gate, metrics, listing):
        handler = CountingHandler(CachedResponse.json(200, {}))

        await gate.read(listing, handler, route=PREFIX)
        await gate.read(listing, handler, route=PREFIX)
        gate.invalidate()

        assert metrics.counters == [
            ("cache_misses_total", {"route": PREFIX}),
            ("cache_hits_total", {"route": PREFIX}),
            ("cache_invalidations_total", {"prefix": PREFIX}),
        ]

    @pytest.mark.asyncio
    async def test_route_label_defaults_to_path(self, gate, metrics, listing):
        await gate.read(listing, CountingHandler(CachedResponse.json(200, {})))

        assert metrics.counters == [("cache_misses_total", {"route": PREFIX})]

    @pytest.mark.asyncio
    async def test_gate_without_metrics(self, cache, listing):
        gate = CacheGate(cache, PREFIX)

        result = await gate.read(listing, CountingHandler(CachedResponse.json(200, {})))

        assert result.hit is False
        assert gate.invalidate() == 1
