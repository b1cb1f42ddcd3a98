"""
Restaurant directory operations and their response envelopes.
"""

from __future__ import annotations

import math
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from shared.errors import DuplicateError, NotFoundError, ServiceError
from shared.logging import get_logger

from ..adapters.document_store import DocumentStore
from ..query import (
    GeoSearchEngine,
    build_filter_query,
    build_page,
    build_sort_criteria,
    build_stats_aggregation,
    build_text_search,
)
from ..query.filters import DEFAULT_LIMIT
from ..query.models import SortDirection, SortSpec
from .models import CommentCreate, CommentUpdate, RatingCreate, RatingUpdate, RestaurantCreate, RestaurantUpdate

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


RESTAURANTS = "restaurants"
RATINGS = "ratings"
COMMENTS = "comments"

NEWEST_FIRST = SortSpec(field="createdAt", direction=SortDirection.DESCENDING)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def _success(**data: Any) -> Dict[str, Any]:
    return {"status": "success", "data": data}


class RestaurantDirectory:
    """Coordinates the query builders and the document store.

    Every public coroutine returns the JSON-ready envelope sent to clients or
    raises a ``TattlerException``.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        metrics: Optional["MetricsCollector"] = None,
        default_page_size: int = DEFAULT_LIMIT,
    ) -> None:
        self.store = store
        self.metrics = metrics
        self.default_page_size = default_page_size
        self.geo = GeoSearchEngine()
        self.logger = get_logger("restaurants.directory")

    def _timed(self, operation: str):
        if self.metrics is None:
            return nullcontext()
        return self.metrics.time_operation("store_operation_duration_seconds", operation=operation)

    # Restaurants

    async def list_restaurants(self, params: Mapping[str, str]) -> Dict[str, Any]:
        """Filtered, sorted and paginated listing."""
        filter_spec = build_filter_query(params)
        sort = build_sort_criteria(params.get("sortBy"), params.get("order"))
        page = build_page(params, self.default_page_size)

        self.logger.debug("Listing restaurants", filter=repr(filter_spec), sort=sort.to_dict())

        with self._timed("find"):
            restaurants = await self.store.find(
                RESTAURANTS, filter_spec, sort=sort, skip=page.skip, limit=page.limit
            )
            total = await self.store.count(RESTAURANTS, filter_spec)

        return {
            "status": "success",
            "results": len(restaurants),
            "total": total,
            "page": page.page,
            "totalPages": _total_pages(total, page.limit),
            "filters": dict(params),
            "sort": sort.to_dict(),
            "data": {"restaurants": restaurants},
        }

    async def get_restaurant(self, restaurant_id: str) -> Dict[str, Any]:
        return _success(restaurant=await self._require_restaurant(restaurant_id))

    async def create_restaurant(self, payload: RestaurantCreate) -> Dict[str, Any]:
        now = _now()
        document = payload.model_dump(exclude={"location"}, exclude_none=True)
        document.update(
            location=payload.location.to_document(),
            rating=0.0,
            totalRatings=0,
            createdAt=now,
            updatedAt=now,
        )

        with self._timed("insert"):
            restaurant = await self.store.insert_one(RESTAURANTS, document)

        self.logger.info("Restaurant created", restaurant_id=restaurant["_id"], name=restaurant["name"])
        return _success(restaurant=restaurant)

    async def update_restaurant(self, restaurant_id: str, payload: RestaurantUpdate) -> Dict[str, Any]:
        fields = payload.to_fields()
        fields["updatedAt"] = _now()

        with self._timed("update"):
            restaurant = await self.store.update_one(RESTAURANTS, {"_id": restaurant_id}, fields)

        if restaurant is None:
            raise NotFoundError("Restaurant not found with that ID")
        self.logger.info("Restaurant updated", restaurant_id=restaurant_id, fields=sorted(fields))
        return _success(restaurant=restaurant)

    async def delete_restaurant(self, restaurant_id: str) -> None:
        """Delete a restaurant with its ratings and comments."""
        with self._timed("delete"):
            deleted = await self.store.delete_one(RESTAURANTS, {"_id": restaurant_id})
            if not deleted:
                raise NotFoundError("Restaurant not found with that ID")
            ratings = await self.store.delete_many(RATINGS, {"restaurantId": restaurant_id})
            comments = await self.store.delete_many(COMMENTS, {"restaurantId": restaurant_id})

        self.logger.info(
            "Restaurant deleted",
            restaurant_id=restaurant_id,
            ratings_removed=ratings,
            comments_removed=comments,
        )

    async def search_restaurants(self, params: Mapping[str, str]) -> Dict[str, Any]:
        request = build_text_search(params, self.default_page_size)

        with self._timed("text_search"):
            restaurants = await self.store.text_search(RESTAURANTS, request)
            total = await self.store.text_count(RESTAURANTS, request.term)

        return {
            "status": "success",
            "results": len(restaurants),
            "total": total,
            "page": request.skip // request.limit + 1,
            "totalPages": _total_pages(total, request.limit),
            "searchTerm": request.term,
            "data": {"restaurants": restaurants},
        }

    async def nearby_restaurants(self, params: Mapping[str, str]) -> Dict[str, Any]:
        request = self.geo.build_request(params)

        with self._timed("near"):
            restaurants = await self.store.near(RESTAURANTS, request)

        restaurants = self.geo.attach_distances(request.center, restaurants)
        return {
            "status": "success",
            "results": len(restaurants),
            "searchCenter": {
                "latitude": request.center.latitude,
                "longitude": request.center.longitude,
            },
            "radius": request.max_distance_meters / 1000,
            "data": {"restaurants": restaurants},
        }

    async def restaurant_stats(self) -> Dict[str, Any]:
        with self._timed("aggregate"):
            statistics = await self.store.aggregate(RESTAURANTS, build_stats_aggregation())
        return _success(statistics=statistics)

    async def _require_restaurant(self, restaurant_id: str, message: str = "Restaurant not found with that ID") -> Dict[str, Any]:
        with self._timed("find_one"):
            restaurant = await self.store.find_one(RESTAURANTS, {"_id": restaurant_id})
        if restaurant is None:
            raise NotFoundError(message)
        return restaurant

    # Ratings

    async def list_ratings(self, restaurant_id: str) -> Dict[str, Any]:
        await self._require_restaurant(restaurant_id, "Restaurant not found")
        ratings = await self.store.find(RATINGS, {"restaurantId": restaurant_id}, sort=NEWEST_FIRST)
        return {"status": "success", "results": len(ratings), "data": {"ratings": ratings}}

    async def get_rating(self, restaurant_id: str, rating_id: str) -> Dict[str, Any]:
        rating = await self.store.find_one(RATINGS, {"_id": rating_id, "restaurantId": restaurant_id})
        if rating is None:
            raise NotFoundError("Rating not found")
        return _success(rating=rating)

    async def create_rating(self, restaurant_id: str, payload: RatingCreate) -> Dict[str, Any]:
        await self._require_restaurant(restaurant_id, "Restaurant not found")

        existing = await self.store.find_one(RATINGS, {"restaurantId": restaurant_id, "userId": payload.userId})
        if existing is not None:
            raise DuplicateError("You have already rated this restaurant. Use PUT to update your rating.")

        rating = await self.store.insert_one(RATINGS, {
            "restaurantId": restaurant_id,
            "userId": payload.userId,
            "rating": payload.rating,
            "review": payload.review,
            "createdAt": _now(),
        })
        await self._recompute_rating(restaurant_id)
        return _success(rating=rating)

    async def update_rating(self, restaurant_id: str, rating_id: str, payload: RatingUpdate) -> Dict[str, Any]:
        fields = payload.model_dump(exclude_none=True)
        fields["updatedAt"] = _now()

        rating = await self.store.update_one(RATINGS, {"_id": rating_id, "restaurantId": restaurant_id}, fields)
        if rating is None:
            raise NotFoundError("Rating not found")

        await self._recompute_rating(restaurant_id)
        return _success(rating=rating)

    async def delete_rating(self, restaurant_id: str, rating_id: str) -> None:
        deleted = await self.store.delete_one(RATINGS, {"_id": rating_id, "restaurantId": restaurant_id})
        if not deleted:
            raise NotFoundError("Rating not found")
        await self._recompute_rating(restaurant_id)

    async def _recompute_rating(self, restaurant_id: str) -> None:
        """Store the mean of the restaurant's ratings and their count."""
        ratings: List[Dict[str, Any]] = await self.store.find(RATINGS, {"restaurantId": restaurant_id})
        if ratings:
            average = sum(r["rating"] for r in ratings) / len(ratings)
        else:
            average = 0.0

        restaurant = await self.store.update_one(
            RESTAURANTS,
            {"_id": restaurant_id},
            {"rating": float(average), "totalRatings": len(ratings)},
        )
        if restaurant is None:
            raise ServiceError("Could not update restaurant rating", {"restaurant_id": restaurant_id})
        self.logger.debug("Restaurant rating recomputed", restaurant_id=restaurant_id, rating=average, total=len(ratings))

    # Comments

    async def list_comments(self, restaurant_id: str, params: Mapping[str, str]) -> Dict[str, Any]:
        await self._require_restaurant(restaurant_id, "Restaurant not found")
        page = build_page(params, self.default_page_size)
        filter_spec = {"restaurantId": restaurant_id}

        comments = await self.store.find(COMMENTS, filter_spec, sort=NEWEST_FIRST, skip=page.skip, limit=page.limit)
        total = await self.store.count(COMMENTS, filter_spec)

        return {
            "status": "success",
            "results": len(comments),
            "total": total,
            "page": page.page,
            "totalPages": _total_pages(total, page.limit),
            "data": {"comments": comments},
        }

    async def get_comment(self, restaurant_id: str, comment_id: str) -> Dict[str, Any]:
        comment = await self.store.find_one(COMMENTS, {"_id": comment_id, "restaurantId": restaurant_id})
        if comment is None:
            raise NotFoundError("Comment not found")
        return _success(comment=comment)

    async def create_comment(self, restaurant_id: str, payload: CommentCreate) -> Dict[str, Any]:
        await self._require_restaurant(restaurant_id, "Restaurant not found")
        now = _now()
        comment = await self.store.insert_one(COMMENTS, {
            "restaurantId": restaurant_id,
            "userId": payload.userId,
            "username": payload.username,
            "comment": payload.comment,
            "createdAt": now,
            "updatedAt": now,
        })
        return _success(comment=comment)

    async def update_comment(self, restaurant_id: str, comment_id: str, payload: CommentUpdate) -> Dict[str, Any]:
        comment = await self.store.update_one(
            COMMENTS,
            {"_id": comment_id, "restaurantId": restaurant_id},
            {"comment": payload.comment, "updatedAt": _now()},
        )
        if comment is None:
            raise NotFoundError("Comment not found")
        return _success(comment=comment)

    async def delete_comment(self, restaurant_id: str, comment_id: str) -> None:
        deleted = await self.store.delete_one(COMMENTS, {"_id": comment_id, "restaurantId": restaurant_id})
        if not deleted:
            raise NotFoundError("Comment not found")
