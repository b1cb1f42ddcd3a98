"""
Unit tests for listing filter, sort and page builders.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_restaurants.app.query import build_filter_query, build_page, build_sort_criteria
from service_restaurants.app.query.filters import DEFAULT_SORT
from service_restaurants.app.query.models import ContainsAll, InList, Page, Range, SortDirection, SortSpec


class TestBuildFilterQuery:
    """Test cases for build_filter_query."""

    def test_combined_parameters(self):
        params = {"cuisine": "Mexican", "priceRange": "$,$$", "minRating": "3", "maxRating": "4.5"}

        assert build_filter_query(params) == {
            "cuisine": "Mexican",
            "priceRange": InList(("$", "$$")),
            "rating": Range(gte=3.0, lte=4.5),
        }

    def test_amenities_must_all_be_present(self):
        assert build_filter_query({"amenities": "WiFi,Parking"}) == {
            "amenities": ContainsAll(("WiFi", "Parking")),
        }

    def test_city_targets_nested_location(self):
        assert build_filter_query({"city": "Puebla"}) == {"location.city": "Puebla"}

    def test_single_price_tier_is_equality(self):
        assert build_filter_query({"priceRange": "$$"}) == {"priceRange": "$$"}

    def test_open_ended_rating_range(self):
        assert build_filter_query({"minRating": "4"}) == {"rating": Range(gte=4.0, lte=None)}
        assert build_filter_query({"maxRating": "2.5"}) == {"rating": Range(gte=None, lte=2.5)}

    def test_list_values_are_trimmed(self):
        assert build_filter_query({"amenities": "WiFi, Parking"}) == {
            "amenities": ContainsAll(("WiFi", "Parking")),
        }

    def test_exact_match_values_are_trimmed(self):
        assert build_filter_query({"cuisine": " Mexican ", "city": "Puebla  "}) == {
            "cuisine": "Mexican",
            "location.city": "Puebla",
        }

    def test_blank_exact_match_ignored(self):
        assert build_filter_query({"cuisine": "   "}) == {}

    def test_unknown_and_empty_parameters_ignored(self):
        assert build_filter_query({"foo": "bar", "cuisine": "", "sortBy": "name", "page": "2"}) == {}

    def test_no_parameters(self):
        assert build_filter_query({}) == {}


class TestBuildSortCriteria:
    """Test cases for build_sort_criteria."""

    def test_default_is_rating_descending(self):
        assert build_sort_criteria(None, None) == SortSpec("rating", SortDirection.DESCENDING)

    def test_name_ascending(self):
        assert build_sort_criteria("name", "asc") == SortSpec("name", SortDirection.ASCENDING)

    def test_order_defaults_to_descending(self):
        assert build_sort_criteria("totalRatings", None) == SortSpec("totalRatings", SortDirection.DESCENDING)

    def test_unrecognised_order_is_descending(self):
        assert build_sort_criteria("priceRange", "sideways").direction == SortDirection.DESCENDING

    def test_explicit_rating_honours_order(self):
        assert build_sort_criteria("rating", "asc") == SortSpec("rating", SortDirection.ASCENDING)

    @pytest.mark.parametrize("field", ["unknownField", "score", ""])
    def test_unsupported_field_falls_back(self, field):
        assert build_sort_criteria(field, "asc") == DEFAULT_SORT

    def test_to_dict(self):
        assert build_sort_criteria("name", "asc").to_dict() == {"field": "name", "order": "asc"}


class TestBuildPage:
    """Test cases for build_page."""

    def test_defaults(self):
        assert build_page({}) == Page(page=1, limit=20)

    def test_skip(self):
        page = build_page({"page": "3", "limit": "10"})

        assert page.skip == 20

    def test_custom_default_limit(self):
        assert build_page({}, default_limit=50).limit == 50

    @pytest.mark.parametrize("value", ["0", "-1", "abc"])
    def test_invalid_values_fall_back(self, value):
        assert build_page({"page": value, "limit": value}) == Page(page=1, limit=20)
