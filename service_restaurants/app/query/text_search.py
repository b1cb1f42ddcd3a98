"""
Plan relevance-ranked full-text searches.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from shared.errors import ValidationError

from .filters import DEFAULT_LIMIT, build_page
from .models import Page, SortDirection, SortSpec, TextSearchRequest


# Fields a caller may sort search results by instead of relevance.
TEXT_SORT_OVERRIDES = frozenset({"rating", "name"})
SCORE_FIELD = "score"


def search_term(params: Mapping[str, Any]) -> Optional[str]:
    """The search term, accepted as ``q`` or ``query``."""
    term = params.get("q") or params.get("query")
    return term.strip() if term else term


def build_text_search(params: Mapping[str, Any], default_limit: int = DEFAULT_LIMIT) -> TextSearchRequest:
    """Build a text search request from query parameters.

    Results rank by the text index relevance score, which is also projected
    onto each result as ``score``. Asking for ``sortBy=rating`` or
    ``sortBy=name`` replaces relevance ordering entirely.
    """
    term = search_term(params)
    if not term:
        raise ValidationError("Search query is required")

    page: Page = build_page(params, default_limit)

    sort: Optional[SortSpec] = None
    sort_by = params.get("sortBy")
    if sort_by in TEXT_SORT_OVERRIDES:
        sort = SortSpec(field=sort_by, direction=SortDirection.from_order(params.get("order")))

    return TextSearchRequest(
        term=term,
        score_field=SCORE_FIELD,
        sort=sort,
        skip=page.skip,
        limit=page.limit,
    )
