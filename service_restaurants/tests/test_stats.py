"""
Unit tests for the statistics facets.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_restaurants.app.adapters.document_store import InMemoryDocumentStore
from service_restaurants.app.query import build_stats_aggregation
from service_restaurants.app.query.models import GroupCount, NumericSummary, SortDirection, TopN
from shared.test_helpers import TestDataFactory


class TestBuildStatsAggregation:
    """Test cases for the facet definitions."""

    def test_five_facets(self):
        facets = build_stats_aggregation().facets

        assert list(facets) == ["byCuisine", "byPriceRange", "byCity", "ratingStats", "topRated"]

    def test_price_range_sorted_by_key(self):
        facet = build_stats_aggregation().facets["byPriceRange"]

        assert facet == GroupCount(field="priceRange", sort_by="key", direction=SortDirection.ASCENDING)

    def test_city_groups_nested_field(self):
        assert build_stats_aggregation().facets["byCity"].field == "location.city"

    def test_rating_summary_names(self):
        facet = build_stats_aggregation().facets["ratingStats"]

        assert isinstance(facet, NumericSummary)
        assert (facet.avg_name, facet.min_name, facet.max_name, facet.count_name) == (
            "avgRating", "minRating", "maxRating", "totalRestaurants",
        )

    def test_top_rated(self):
        facet = build_stats_aggregation().facets["topRated"]

        assert isinstance(facet, TopN)
        assert facet.limit == 5
        assert facet.projection == ("name", "cuisine", "rating")


class TestStoreAggregate:
    """Facets computed over the sample data."""

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore({"restaurants": TestDataFactory.load_sample_restaurants()})

    @pytest.mark.asyncio
    async def test_group_counts(self, store):
        stats = await store.aggregate("restaurants", build_stats_aggregation())

        assert stats["byCuisine"][0] == {"_id": "Mexican", "count": 4}
        assert {row["_id"]: row["count"] for row in stats["byCuisine"]} == {
            "Mexican": 4, "Italian": 2, "Japanese": 1, "American": 1,
        }
        assert stats["byPriceRange"] == [
            {"_id": "$", "count": 2},
            {"_id": "$$", "count": 3},
            {"_id": "$$$", "count": 2},
            {"_id": "$$$$", "count": 1},
        ]
        assert stats["byCity"][0] == {"_id": "Mexico City", "count": 5}
        assert sum(row["count"] for row in stats["byCity"]) == 8

    @pytest.mark.asyncio
    async def test_rating_summary(self, store):
        stats = await store.aggregate("restaurants", build_stats_aggregation())

        [summary] = stats["ratingStats"]
        assert summary["avgRating"] == pytest.approx(4.25)
        assert summary["minRating"] == 3.5
        assert summary["maxRating"] == 4.8
        assert summary["totalRestaurants"] == 8

    @pytest.mark.asyncio
    async def test_top_rated_projection(self, store):
        stats = await store.aggregate("restaurants", build_stats_aggregation())

        top = stats["topRated"]
        assert [row["name"] for row in top] == [
            "Pujol", "El Cardenal", "Sushi Kyo", "Taqueria Orinoco", "Cafe de Tacuba",
        ]
        assert set(top[0]) == {"_id", "name", "cuisine", "rating"}

    @pytest.mark.asyncio
    async def test_empty_collection(self):
        stats = await InMemoryDocumentStore().aggregate("restaurants", build_stats_aggregation())

        assert stats == {
            "byCuisine": [],
            "byPriceRange": [],
            "byCity": [],
            "ratingStats": [],
            "topRated": [],
        }
