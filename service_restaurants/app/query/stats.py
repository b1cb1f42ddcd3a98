"""
Five-facet restaurant statistics.
"""

from .models import AggregationRequest, GroupCount, NumericSummary, SortDirection, SortSpec, TopN


TOP_RATED_LIMIT = 5


def build_stats_aggregation() -> AggregationRequest:
    """Facets computed together over one snapshot of the collection."""
    return AggregationRequest(facets={
        "byCuisine": GroupCount(field="cuisine", sort_by="count", direction=SortDirection.DESCENDING),
        "byPriceRange": GroupCount(field="priceRange", sort_by="key", direction=SortDirection.ASCENDING),
        "byCity": GroupCount(field="location.city", sort_by="count", direction=SortDirection.DESCENDING),
        "ratingStats": NumericSummary(
            field="rating",
            avg_name="avgRating",
            min_name="minRating",
            max_name="maxRating",
            count_name="totalRestaurants",
        ),
        "topRated": TopN(
            sort=SortSpec(field="rating", direction=SortDirection.DESCENDING),
            limit=TOP_RATED_LIMIT,
            projection=("name", "cuisine", "rating"),
        ),
    })
