"""
Translate listing query parameters into filter and sort specifications.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from .models import ContainsAll, FilterSpec, InList, Page, Range, SortDirection, SortSpec


SORTABLE_FIELDS = frozenset({"name", "totalRatings", "priceRange", "rating"})
DEFAULT_SORT = SortSpec(field="rating", direction=SortDirection.DESCENDING)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20

# request parameter -> document field
EXACT_MATCH_FIELDS = {
    "cuisine": "cuisine",
    "city": "location.city",
}


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",")]


def build_filter_query(params: Mapping[str, Any]) -> FilterSpec:
    """Build a filter from loose request parameters.

    Each supported parameter contributes one predicate and all predicates are
    combined with AND. Unsupported parameters are ignored. Numeric values are
    expected to be validated upstream and are converted without checks.
    """
    filter_spec: FilterSpec = {}

    for param, field_path in EXACT_MATCH_FIELDS.items():
        value = (params.get(param) or "").strip()
        if value:
            filter_spec[field_path] = value

    if params.get("priceRange"):
        tiers = _split_list(params["priceRange"])
        filter_spec["priceRange"] = tiers[0] if len(tiers) == 1 else InList(tuple(tiers))

    min_rating = params.get("minRating")
    max_rating = params.get("maxRating")
    if min_rating or max_rating:
        filter_spec["rating"] = Range(
            gte=float(min_rating) if min_rating else None,
            lte=float(max_rating) if max_rating else None,
        )

    if params.get("amenities"):
        filter_spec["amenities"] = ContainsAll(tuple(_split_list(params["amenities"])))

    return filter_spec


def build_sort_criteria(sort_by: Optional[str], order: Optional[str]) -> SortSpec:
    """Pick the listing sort order.

    Fields outside ``SORTABLE_FIELDS`` (or no field at all) fall back to
    ``DEFAULT_SORT`` without raising.
    """
    if sort_by not in SORTABLE_FIELDS:
        return DEFAULT_SORT
    return SortSpec(field=sort_by, direction=SortDirection.from_order(order))


def _positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def build_page(params: Mapping[str, Any], default_limit: int = DEFAULT_LIMIT) -> Page:
    """Page number and size, falling back to defaults when absent."""
    return Page(
        page=_positive_int(params.get("page"), DEFAULT_PAGE),
        limit=_positive_int(params.get("limit"), default_limit),
    )
