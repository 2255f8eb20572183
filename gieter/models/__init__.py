"""
Pydantic models for Gieter.
All data contracts are defined here for strict validation.
"""

from .listing import (
    AggregateRating,
    Capacity,
    Equipment,
    Host,
    Listing,
    Location,
    OwnerReply,
    Price,
    Review,
    ReviewCriteria,
)
from .scoring import (
    AlgorithmicScores,
    EnrichedListing,
    Enrichment,
    JudgedListing,
    Judgment,
    RankedListing,
    RatingComponent,
    ScoredListing,
)
from .export import ItemFailure, RunExport, RunMetadata

__all__ = [
    # Listing
    "AggregateRating",
    "Capacity",
    "Equipment",
    "Host",
    "Listing",
    "Location",
    "OwnerReply",
    "Price",
    "Review",
    "ReviewCriteria",
    # Scoring
    "AlgorithmicScores",
    "EnrichedListing",
    "Enrichment",
    "JudgedListing",
    "Judgment",
    "RankedListing",
    "RatingComponent",
    "ScoredListing",
    # Export
    "ItemFailure",
    "RunExport",
    "RunMetadata",
]
