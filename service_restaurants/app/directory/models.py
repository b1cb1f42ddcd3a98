"""
Request bodies accepted by the restaurant directory.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..query.models import GeoPoint


PriceTier = Literal["$", "$$", "$$$", "$$$$"]

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"
URL_PATTERN = r"^https?://[^\s/$.?#].[^\s]*$"


class _Body(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class Coordinates(_Body):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_geojson(self) -> dict:
        return GeoPoint.from_lat_lng(self.latitude, self.longitude).to_geojson()


class Location(_Body):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = ""
    zipCode: str = ""
    coordinates: Coordinates

    def to_document(self) -> dict:
        return {
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zipCode,
            "coordinates": self.coordinates.to_geojson(),
        }


class RestaurantCreate(_Body):
    name: str = Field(..., min_length=2, max_length=100)
    cuisine: str = Field(..., min_length=1)
    location: Location
    priceRange: PriceTier = "$$"
    amenities: List[str] = Field(default_factory=list)
    phone: Optional[str] = None
    website: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    description: Optional[str] = None


class RestaurantUpdate(_Body):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    cuisine: Optional[str] = None
    location: Optional[Location] = None
    priceRange: Optional[PriceTier] = None
    amenities: Optional[List[str]] = None
    phone: Optional[str] = None
    website: Optional[str] = Field(default=None, pattern=URL_PATTERN)
    description: Optional[str] = None

    @field_validator("name", "cuisine", "location", "priceRange", "amenities")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value

    def to_fields(self) -> dict:
        """Only the fields the caller sent, location stored as GeoJSON."""
        fields = self.model_dump(exclude_unset=True, exclude={"location"})
        if self.location is not None:
            fields["location"] = self.location.to_document()
        return fields


class RatingCreate(_Body):
    userId: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    review: str = Field(default="", max_length=500)


class RatingUpdate(_Body):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    review: Optional[str] = Field(default=None, max_length=500)


class CommentCreate(_Body):
    userId: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    comment: str = Field(..., min_length=1, max_length=500)


class CommentUpdate(_Body):
    comment: str = Field(..., min_length=1, max_length=500)
