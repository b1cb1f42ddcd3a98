"""
Structured requests handed to the document store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SortDirection(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"

    @classmethod
    def from_order(cls, order: Optional[str]) -> "SortDirection":
        """``"asc"`` is ascending; anything else, including absent, is descending."""
        return cls.ASCENDING if order == "asc" else cls.DESCENDING


@dataclass(frozen=True)
class InList:
    """Field value must be one of ``values``."""

    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Range:
    """Inclusive bounds; either side may be open."""

    gte: Optional[float] = None
    lte: Optional[float] = None


@dataclass(frozen=True)
class ContainsAll:
    """Collection field must include every one of ``values``."""

    values: Tuple[Any, ...]


# field path -> plain value | InList | Range | ContainsAll
FilterSpec = Dict[str, Any]


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: SortDirection = SortDirection.DESCENDING

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "order": self.direction.value}


@dataclass(frozen=True)
class Page:
    page: int = 1
    limit: int = 20

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class GeoPoint:
    """A point in longitude-first order, as GeoJSON expects."""

    longitude: float
    latitude: float

    @classmethod
    def from_lat_lng(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(longitude=longitude, latitude=latitude)

    @classmethod
    def from_geojson(cls, geometry: Dict[str, Any]) -> "GeoPoint":
        longitude, latitude = geometry["coordinates"][:2]
        return cls(longitude=float(longitude), latitude=float(latitude))

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}


@dataclass(frozen=True)
class TextSearchRequest:
    """Full-text search; ``sort is None`` orders by relevance score."""

    term: str
    score_field: str = "score"
    sort: Optional[SortSpec] = None
    skip: int = 0
    limit: int = 20

    @property
    def ranked_by_relevance(self) -> bool:
        return self.sort is None


@dataclass(frozen=True)
class GeoRequest:
    """Proximity search; matches come back nearest first."""

    center: GeoPoint
    max_distance_meters: float
    limit: int = 20
    field: str = "location.coordinates"


@dataclass(frozen=True)
class GroupCount:
    """Count documents per distinct value of ``field``."""

    field: str
    sort_by: str = "count"  # "count" or "key"
    direction: SortDirection = SortDirection.DESCENDING


@dataclass(frozen=True)
class NumericSummary:
    """Average, minimum and maximum of ``field`` over all documents, plus a count."""

    field: str
    avg_name: str
    min_name: str
    max_name: str
    count_name: str


@dataclass(frozen=True)
class TopN:
    sort: SortSpec
    limit: int
    projection: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AggregationRequest:
    """Named facets computed over one snapshot of a collection."""

    facets: Dict[str, Any] = field(default_factory=dict)
