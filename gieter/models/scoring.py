"""
Scoring models - rating components, score sets and enriched results.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .listing import Listing


MIN_SCORE = 1.0
MAX_SCORE = 10.0


def clamp_score(score: float) -> float:
    """Clamp to [1, 10] and round to one decimal."""
    return round(min(MAX_SCORE, max(MIN_SCORE, score)), 1)


class RatingComponent(BaseModel):
    """A single scored dimension with its rationale."""
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=MIN_SCORE, le=MAX_SCORE, description="Score from 1-10")
    reason: str = Field(description="1-2 sentence explanation of the score")

    @classmethod
    def clamped(cls, score: float, reason: str) -> "RatingComponent":
        """Build a component from a possibly out-of-range raw score."""
        return cls(score=clamp_score(score), reason=reason)


class AlgorithmicScores(BaseModel):
    """Components computed deterministically from the listing record."""
    price: RatingComponent = Field(description="Price per person within the quality tier")
    social_proof: RatingComponent
    practical_amenities: RatingComponent

    @property
    def mean(self) -> float:
        scores = [self.price.score, self.social_proof.score, self.practical_amenities.score]
        return sum(scores) / len(scores)


class Judgment(BaseModel):
    """Components produced by the judgment provider."""
    outdoor_chill_potential: RatingComponent
    group_comfort: RatingComponent
    location_vibe: RatingComponent
    miscellaneous: RatingComponent

    def components(self) -> dict[str, RatingComponent]:
        return {
            "outdoor_chill_potential": self.outdoor_chill_potential,
            "group_comfort": self.group_comfort,
            "location_vibe": self.location_vibe,
            "miscellaneous": self.miscellaneous,
        }


class Enrichment(BaseModel):
    """
    Every component of a listing plus the final score.
    Only built by the aggregator, once all components exist.
    """
    algorithmic: AlgorithmicScores
    judgment: Judgment
    value: RatingComponent = Field(description="Quality relative to effective price")
    final_score: float = Field(ge=MIN_SCORE, le=MAX_SCORE)

    def components(self) -> dict[str, RatingComponent]:
        """The components contributing to the final score."""
        return {
            "value": self.value,
            "social_proof": self.algorithmic.social_proof,
            "practical_amenities": self.algorithmic.practical_amenities,
            **self.judgment.components(),
        }


class ScoredListing(BaseModel):
    """A listing with its algorithmic scores."""
    listing: Listing
    algorithmic: AlgorithmicScores


class JudgedListing(BaseModel):
    """A listing with algorithmic scores and a judgment."""
    listing: Listing
    algorithmic: AlgorithmicScores
    judgment: Judgment


class EnrichedListing(BaseModel):
    """The original record plus its full enrichment."""
    listing: Listing
    enrichment: Enrichment

    @property
    def final_score(self) -> float:
        return self.enrichment.final_score


class RankedListing(EnrichedListing):
    """An enriched listing with its position in the ranking."""
    rank: int = Field(ge=1)

    # Quick access fields for downstream consumers
    @property
    def has_reviews(self) -> bool:
        return self.listing.aggregate_rating.count > 0

    def component_score(self, name: str) -> Optional[float]:
        component = self.enrichment.components().get(name)
        return component.score if component else None
