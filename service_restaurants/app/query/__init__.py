"""
Query construction for the restaurant directory.

Pure translators from request parameters to the structured requests the
document store executes: listing filters and sorts, text search, proximity
search and the statistics facets.
"""

from .filters import build_filter_query, build_page, build_sort_criteria
from .geo import GeoSearchEngine, haversine_km
from .stats import build_stats_aggregation
from .text_search import build_text_search

__all__ = [
    "build_filter_query",
    "build_page",
    "build_sort_criteria",
    "build_stats_aggregation",
    "build_text_search",
    "GeoSearchEngine",
    "haversine_km",
]
