"""
Restaurant directory service for Tattler.
"""

from typing import Any, Awaitable, Callable, Dict, Literal, Optional

from fastapi import Depends, FastAPI, Path, Query, Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import TattlerException, ValidationError, internal_error_response

from .adapters.document_store import DocumentStore, InMemoryDocumentStore
from .caching import CacheGate, CachedResponse, RequestDescriptor, ResponseCache
from .directory import RestaurantDirectory
from .directory.models import (
    OBJECT_ID_PATTERN,
    CommentCreate,
    CommentUpdate,
    RatingCreate,
    RatingUpdate,
    RestaurantCreate,
    RestaurantUpdate,
)


PRICE_RANGE_PATTERN = r"^(\$|\$\$|\$\$\$|\$\$\$\$)(,(\$|\$\$|\$\$\$|\$\$\$\$))*$"

SortField = Literal["name", "rating", "totalRatings", "priceRange", "score"]
SortOrder = Literal["asc", "desc"]

Operation = Callable[[], Awaitable[Optional[Dict[str, Any]]]]


def _object_id(name: str):
    return Path(..., pattern=OBJECT_ID_PATTERN, description=f"{name}: 24 hex character identifier")


def listing_query(
    cuisine: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    priceRange: Optional[str] = Query(None, pattern=PRICE_RANGE_PATTERN),
    minRating: Optional[float] = Query(None, ge=0, le=5),
    maxRating: Optional[float] = Query(None, ge=0, le=5),
    amenities: Optional[str] = Query(None),
    sortBy: Optional[SortField] = Query(None),
    order: Optional[SortOrder] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=100),
    page: Optional[int] = Query(None, ge=1),
) -> None:
    """Reject malformed listing and search parameters."""
    if minRating is not None and maxRating is not None and minRating > maxRating:
        raise ValidationError("minRating cannot be greater than maxRating")


def nearby_query(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius: Optional[float] = Query(None, ge=0.1, le=100),
    limit: Optional[int] = Query(None, ge=1, le=100),
) -> None:
    """Reject malformed proximity parameters; presence is checked by the engine."""


def page_query(
    limit: Optional[int] = Query(None, ge=1, le=100),
    page: Optional[int] = Query(None, ge=1),
) -> None:
    """Reject malformed pagination parameters."""


class RestaurantService(BaseService):
    """Restaurant directory service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[DocumentStore] = None,
        cache: Optional[ResponseCache] = None,
    ):
        super().__init__("restaurants", 3000, config or get_config("restaurants", 3000))
        self.prefix = f"/api/{self.config.api_version}/restaurants"

        if store is None:
            store = (
                InMemoryDocumentStore.from_json_file(self.config.seed_file)
                if self.config.seed_file
                else InMemoryDocumentStore()
            )
        self.store = store
        self.cache = cache if cache is not None else ResponseCache(self.config.cache_ttl_seconds)
        self.cache_gate = CacheGate(self.cache, self.prefix, metrics=self.metrics)
        self.directory = RestaurantDirectory(
            self.store,
            metrics=self.metrics,
            default_page_size=self.config.default_page_size,
        )

        self._setup_service_routes()
        self._setup_restaurant_routes()
        self._setup_rating_routes()
        self._setup_comment_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.restaurant_service = self

    async def _check_dependencies(self) -> Dict[str, str]:
        try:
            healthy = await self.store.ping()
        except Exception as exc:
            self.logger.warning("Document store ping failed", error=str(exc))
            healthy = False
        return {"document_store": "ok" if healthy else "error"}

    async def _render(self, operation: Operation, status_code: int = 200, *, shared: bool = False) -> CachedResponse:
        """Run a directory operation and render whatever it produced.

        ``shared`` bodies may be replayed to other requests from the cache, so
        error bodies leave out the request id; the X-Request-ID header still
        carries it.
        """
        exclude = {"request_id"} if shared else None
        try:
            content = await operation()
        except TattlerException as exc:
            self.logger.info("Request rejected", code=exc.code, message=exc.message)
            return CachedResponse.json(exc.status_code, exc.to_response().model_dump(exclude=exclude))
        except Exception as exc:
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error(type(exc).__name__)
            return CachedResponse.json(500, internal_error_response().model_dump(exclude=exclude))

        if status_code == 204:
            return CachedResponse.empty()
        return CachedResponse.json(status_code, content)

    async def _read(self, request: Request, operation: Operation, *, route: str) -> Response:
        descriptor = RequestDescriptor.from_request(request)
        result = await self.cache_gate.read(descriptor, lambda: self._render(operation, shared=True), route=route)
        return result.response.to_response(cache_status=result.cache_status)

    async def _write(self, request: Request, operation: Operation, status_code: int = 200) -> Response:
        descriptor = RequestDescriptor.from_request(request)
        rendered = await self.cache_gate.write(descriptor, lambda: self._render(operation, status_code))
        return rendered.to_response()

    async def _plain(self, operation: Operation) -> Response:
        return (await self._render(operation)).to_response()

    def _setup_service_routes(self):
        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "restaurants",
                "message": "Welcome to Tattler Restaurant API",
                "version": self.config.api_version,
            }

        @self.app.get(f"/api/{self.config.api_version}/cache/stats")
        async def cache_stats():
            """Response cache counters."""
            return {"status": "success", "data": {"cache": self.cache.stats()}}

    def _setup_restaurant_routes(self):
        prefix = self.prefix
        directory = self.directory

        @self.app.get(f"{prefix}/stats")
        async def restaurant_stats(request: Request):
            """Aggregated statistics about restaurants."""
            return await self._read(request, directory.restaurant_stats, route=f"{prefix}/stats")

        @self.app.get(f"{prefix}/nearby")
        async def nearby_restaurants(request: Request, _: None = Depends(nearby_query)):
            """Restaurants near a point, nearest first, with distance in km."""
            params = dict(request.query_params)
            return await self._read(
                request, lambda: directory.nearby_restaurants(params), route=f"{prefix}/nearby"
            )

        @self.app.get(f"{prefix}/search")
        async def search_restaurants(
            request: Request,
            q: Optional[str] = Query(None),
            query: Optional[str] = Query(None),
            _: None = Depends(listing_query),
        ):
            """Full-text search ranked by relevance."""
            params = dict(request.query_params)
            return await self._read(
                request, lambda: directory.search_restaurants(params), route=f"{prefix}/search"
            )

        @self.app.get(prefix)
        async def list_restaurants(request: Request, _: None = Depends(listing_query)):
            """All restaurants with filtering, sorting and pagination."""
            params = dict(request.query_params)
            return await self._read(request, lambda: directory.list_restaurants(params), route=prefix)

        @self.app.get(prefix + "/{restaurant_id}")
        async def get_restaurant(request: Request, restaurant_id: str = _object_id("restaurant_id")):
            """A single restaurant."""
            return await self._read(
                request, lambda: directory.get_restaurant(restaurant_id), route=prefix + "/{id}"
            )

        @self.app.post(prefix, status_code=201)
        async def create_restaurant(request: Request, payload: RestaurantCreate):
            """Create a restaurant."""
            return await self._write(request, lambda: directory.create_restaurant(payload), status_code=201)

        @self.app.put(prefix + "/{restaurant_id}")
        async def update_restaurant(
            request: Request,
            payload: RestaurantUpdate,
            restaurant_id: str = _object_id("restaurant_id"),
        ):
            """Update the supplied fields of a restaurant."""
            return await self._write(request, lambda: directory.update_restaurant(restaurant_id, payload))

        @self.app.delete(prefix + "/{restaurant_id}", status_code=204)
        async def delete_restaurant(request: Request, restaurant_id: str = _object_id("restaurant_id")):
            """Delete a restaurant along with its ratings and comments."""
            return await self._write(request, lambda: directory.delete_restaurant(restaurant_id), status_code=204)

    def _setup_rating_routes(self):
        base = self.prefix + "/{restaurant_id}/ratings"
        directory = self.directory

        @self.app.get(base)
        async def list_ratings(restaurant_id: str = _object_id("restaurant_id")):
            """Ratings of a restaurant, newest first."""
            return await self._plain(lambda: directory.list_ratings(restaurant_id))

        @self.app.get(base + "/{rating_id}")
        async def get_rating(
            restaurant_id: str = _object_id("restaurant_id"),
            rating_id: str = _object_id("rating_id"),
        ):
            return await self._plain(lambda: directory.get_rating(restaurant_id, rating_id))

        @self.app.post(base, status_code=201)
        async def create_rating(
            request: Request,
            payload: RatingCreate,
            restaurant_id: str = _object_id("restaurant_id"),
        ):
            """Rate a restaurant; one rating per user."""
            return await self._write(
                request, lambda: directory.create_rating(restaurant_id, payload), status_code=201
            )

        @self.app.put(base + "/{rating_id}")
        async def update_rating(
            request: Request,
            payload: RatingUpdate,
            restaurant_id: str = _object_id("restaurant_id"),
            rating_id: str = _object_id("rating_id"),
        ):
            return await self._write(request, lambda: directory.update_rating(restaurant_id, rating_id, payload))

        @self.app.delete(base + "/{rating_id}", status_code=204)
        async def delete_rating(
            request: Request,
            restaurant_id: str = _object_id("restaurant_id"),
            rating_id: str = _object_id("rating_id"),
        ):
            return await self._write(
                request, lambda: directory.delete_rating(restaurant_id, rating_id), status_code=204
            )

    def _setup_comment_routes(self):
        base = self.prefix + "/{restaurant_id}/comments"
        directory = self.directory

        @self.app.get(base)
        async def list_comments(
            request: Request,
            restaurant_id: str = _object_id("restaurant_id"),
            _: None = Depends(page_query),
        ):
            """Comments on a restaurant, newest first, paginated."""
            params = dict(request.query_params)
            return await self._plain(lambda: directory.list_comments(restaurant_id, params))

        @self.app.get(base + "/{comment_id}")
        async def get_comment(
            restaurant_id: str = _object_id("restaurant_id"),
            comment_id: str = _object_id("comment_id"),
        ):
            return await self._plain(lambda: directory.get_comment(restaurant_id, comment_id))

        @self.app.post(base, status_code=201)
        async def create_comment(
            request: Request,
            payload: CommentCreate,
            restaurant_id: str = _object_id("restaurant_id"),
        ):
            return await self._write(
                request, lambda: directory.create_comment(restaurant_id, payload), status_code=201
            )

        @self.app.put(base + "/{comment_id}")
        async def update_comment(
            request: Request,
            payload: CommentUpdate,
            restaurant_id: str = _object_id("restaurant_id"),
            comment_id: str = _object_id("comment_id"),
        ):
            return await self._write(request, lambda: directory.update_comment(restaurant_id, comment_id, payload))

        @self.app.delete(base + "/{comment_id}", status_code=204)
        async def delete_comment(
            request: Request,
            restaurant_id: str = _object_id("restaurant_id"),
            comment_id: str = _object_id("comment_id"),
        ):
            return await self._write(
                request, lambda: directory.delete_comment(restaurant_id, comment_id), status_code=204
            )


def create_app(
    config: Optional[ServiceConfig] = None,
    *,
    store: Optional[DocumentStore] = None,
    cache: Optional[ResponseCache] = None,
) -> FastAPI:
    """Create FastAPI application."""
    service = RestaurantService(config, store=store, cache=cache)
    return service.app


if __name__ == "__main__":
    service = RestaurantService()
    service.run()
