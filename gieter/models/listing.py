"""
Listing models - the immutable property record produced by extraction.
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Record(BaseModel):
    """Base for read-only records."""
    model_config = ConfigDict(frozen=True)


class ReviewCriteria(Record):
    """Per-criterion sub-ratings of a review, each out of 5."""
    cleanliness: Optional[float] = None
    comfort: Optional[float] = None
    welcome: Optional[float] = None
    value: Optional[float] = None


class OwnerReply(Record):
    text: str
    author: str = ""


class Review(Record):
    """A single guest review."""
    author: str = ""
    stay_from: str = ""
    stay_to: str = ""
    title: str = ""
    rating: float = Field(ge=0, le=5, description="Overall rating out of 5")
    body: str = ""
    posted_on: str = ""
    criteria: ReviewCriteria = Field(default_factory=ReviewCriteria)
    owner_reply: Optional[OwnerReply] = None


class Host(Record):
    name: str = ""
    spoken_languages: list[str] = Field(default_factory=list)
    approved_since: Optional[int] = None


class Capacity(Record):
    """Capacity and physical property details."""
    people: int = 0
    bedrooms: int = 0
    surface_m2: Optional[float] = None
    wifi: bool = False
    pets_accepted: bool = False
    category: Optional[str] = None


class Equipment(Record):
    """Categorized amenities."""
    indoor: list[str] = Field(default_factory=list)
    outdoor: list[str] = Field(default_factory=list)
    services: list[str] = Field(default_factory=list)

    def all_items(self) -> list[str]:
        return [*self.indoor, *self.outdoor, *self.services]


class Price(Record):
    """Base rate, always normalized to per-night upstream."""
    amount: Optional[float] = None
    currency: str = "EUR"
    per: Literal["night"] = "night"

    @property
    def is_known(self) -> bool:
        return self.amount is not None and self.amount > 0


class Location(Record):
    city: str = ""
    department: str = ""
    region: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class AggregateRating(Record):
    value: float = Field(default=0, ge=0, le=5, description="Mean rating out of 5")
    count: int = Field(default=0, ge=0, description="Number of reviews")


class Listing(Record):
    """
    A holiday rental listing.

    Produced once by extraction and read-only from then on. Stages that need
    to attach data (e.g. distance) return a copy via ``model_copy``.
    """
    ref: str = Field(description="Stable reference code, e.g. 'H45H026322'")
    title: str
    type: str = ""
    quality: int = Field(default=0, ge=0, le=5, description="Quality tier in épis")
    summary: Optional[str] = None
    description: Optional[str] = None
    url: str = ""
    photos: list[str] = Field(default_factory=list)
    location: Location = Field(default_factory=Location)
    capacity: Capacity = Field(default_factory=Capacity)
    equipment: Equipment = Field(default_factory=Equipment)
    price_includes: list[str] = Field(default_factory=list)
    price: Price = Field(default_factory=Price)
    all_inclusive: bool = False
    aggregate_rating: AggregateRating = Field(default_factory=AggregateRating)
    reviews: list[Review] = Field(default_factory=list)
    host: Host = Field(default_factory=Host)
    advert_type: Optional[Literal["individual", "professional"]] = None

    # Attached by the distance filter
    distance_km: Optional[float] = None

    @field_validator("ref")
    @classmethod
    def ref_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("ref must not be blank")
        return v.strip()
