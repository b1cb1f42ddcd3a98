"""
Cache gate wrapping the read and write handlers of a resource family.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence, Tuple

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder

from shared.logging import get_logger
from .response_cache import ResponseCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class CachedResponse:
    """Immutable snapshot of a fully rendered handler response."""

    status_code: int
    body: bytes
    media_type: str = JSON_MEDIA_TYPE

    @classmethod
    def json(cls, status_code: int, content: Any) -> "CachedResponse":
        """Render ``content`` to JSON bytes once, the way it will be sent."""
        body = json.dumps(
            jsonable_encoder(content),
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        ).encode("utf-8")
        return cls(status_code=status_code, body=body)

    @classmethod
    def empty(cls, status_code: int = 204) -> "CachedResponse":
        return cls(status_code=status_code, body=b"")

    def to_response(self, *, cache_status: Optional[str] = None) -> Response:
        response = Response(content=self.body, status_code=self.status_code, media_type=self.media_type)
        if cache_status:
            response.headers["X-Cache"] = cache_status
        return response


@dataclass(frozen=True)
class RequestDescriptor:
    """What the gate needs to know about a request."""

    method: str
    path: str
    query_params: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_request(cls, request: Request) -> "RequestDescriptor":
        return cls.build(request.method, request.url.path, request.query_params.multi_items())

    @classmethod
    def build(cls, method: str, path: str, query_params: Sequence[Tuple[str, str]] = ()) -> "RequestDescriptor":
        # Stable sort by name keeps repeated parameters in request order.
        ordered = tuple(sorted(((str(k), str(v)) for k, v in query_params), key=lambda item: item[0]))
        return cls(method=method.upper(), path=path, query_params=ordered)

    @property
    def cache_key(self) -> str:
        return f"{self.path}?{json.dumps(self.query_params, separators=(',', ':'))}"


Handler = Callable[[], Awaitable[CachedResponse]]


@dataclass(frozen=True)
class GateResult:
    response: CachedResponse
    hit: bool

    @property
    def cache_status(self) -> str:
        return "HIT" if self.hit else "MISS"


class CacheGate:
    """Serve reads from the response cache and invalidate it on writes.

    Every response the read handler produces is cached, error bodies
    included. Concurrent misses on one key are not coalesced: each runs the
    handler and the last writer wins.
    """

    def __init__(
        self,
        cache: ResponseCache,
        route_prefix: str,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.cache = cache
        self.route_prefix = route_prefix
        self.metrics = metrics
        self.logger = get_logger("restaurants.cache_gate")

    def lookup(self, descriptor: RequestDescriptor) -> Optional[CachedResponse]:
        """Return the cached payload for the request, if one is live."""
        return self.cache.get(descriptor.cache_key)

    def capture(self, descriptor: RequestDescriptor, response: CachedResponse) -> None:
        """Store a fully formed payload under the request's key."""
        self.cache.set(descriptor.cache_key, response)

    async def read(
        self,
        descriptor: RequestDescriptor,
        handler: Handler,
        *,
        route: Optional[str] = None,
    ) -> GateResult:
        """Serve a read from cache or run ``handler`` and capture its output.

        ``route`` labels the hit/miss counters and defaults to the request path.
        """
        route = route or descriptor.path
        cached = self.lookup(descriptor)
        if cached is not None:
            self.logger.debug("Cache hit", key=descriptor.cache_key)
            self._count("cache_hits_total", route=route)
            return GateResult(response=cached, hit=True)

        self.logger.debug("Cache miss", key=descriptor.cache_key)
        self._count("cache_misses_total", route=route)

        # A cancelled handler raises here, so nothing partial is stored.
        response = await handler()
        self.capture(descriptor, response)
        return GateResult(response=response, hit=False)

    async def write(self, descriptor: RequestDescriptor, handler: Handler) -> CachedResponse:
        """Run a mutating ``handler`` then invalidate the resource family."""
        try:
            return await handler()
        finally:
            self.invalidate()

    def invalidate(self) -> int:
        removed = self.cache.invalidate_by_prefix(self.route_prefix)
        self._count("cache_invalidations_total", prefix=self.route_prefix)
        self.logger.info("Cache cleared due to data modification", prefix=self.route_prefix, removed=removed)
        return removed

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
