"""
Aggregation - value for money and the final score.

Value for money depends on every other component, so it is computed in two
passes over the judged population: first the quality sum of each listing,
then the quality/price ratio ranked across all priced listings. Only then is
the final mean taken.
"""
import logging
from typing import Optional

from ..models.listing import Listing
from ..models.scoring import (
    EnrichedListing,
    Enrichment,
    JudgedListing,
    RatingComponent,
    clamp_score,
)
from .normalize import NEUTRAL_SCORE, scale_to_range


logger = logging.getLogger(__name__)


ALL_INCLUSIVE_FACTOR = 0.85
INCLUDES_FACTOR = 0.93
MIN_INCLUDED_ITEMS = 2

VALUE_RANGE = (1.0, 10.0)

# Exact components of the final score, equally weighted
FINAL_COMPONENTS = (
    "value",
    "social_proof",
    "practical_amenities",
    "outdoor_chill_potential",
    "group_comfort",
    "location_vibe",
    "miscellaneous",
)


def compute_final_score(components: dict[str, RatingComponent]) -> float:
    """
    Unweighted mean of FINAL_COMPONENTS, rounded to one decimal.

    Raises:
        ValueError: If any required component is missing
    """
    missing = [name for name in FINAL_COMPONENTS if name not in components]
    if missing:
        raise ValueError(f"Cannot aggregate, missing components: {', '.join(missing)}")
    scores = [components[name].score for name in FINAL_COMPONENTS]
    return clamp_score(sum(scores) / len(scores))


class Aggregator:
    """Computes value for money and final scores for a judged population."""

    def __init__(self, group_size: int = 8):
        self.group_size = group_size

    def effective_price(self, listing: Listing) -> Optional[float]:
        """Per-person nightly price, discounted for bundled inclusions."""
        if not listing.price.is_known:
            return None
        price = listing.price.amount / self.group_size
        if listing.all_inclusive:
            return price * ALL_INCLUSIVE_FACTOR
        if len(listing.price_includes) >= MIN_INCLUDED_ITEMS:
            return price * INCLUDES_FACTOR
        return price

    @staticmethod
    def quality_sum(judged: JudgedListing) -> float:
        """Sum of every component other than value."""
        scores = [
            judged.algorithmic.social_proof.score,
            judged.algorithmic.practical_amenities.score,
            *(c.score for c in judged.judgment.components().values()),
        ]
        return sum(scores)

    def _inclusion_text(self, listing: Listing) -> str:
        if listing.all_inclusive:
            return f"all-inclusive (price adjusted ×{ALL_INCLUSIVE_FACTOR})"
        if len(listing.price_includes) >= MIN_INCLUDED_ITEMS:
            items = ", ".join(listing.price_includes[:2]).lower()
            return f"includes {items} (price adjusted ×{INCLUDES_FACTOR})"
        return "few extras included"

    def score_value(
        self,
        judged: JudgedListing,
        quality: float,
        ratio_population: list[float],
    ) -> RatingComponent:
        """Rank this listing's quality/price ratio against the priced population."""
        listing = judged.listing
        max_quality = 10 * (len(FINAL_COMPONENTS) - 1)
        price = self.effective_price(listing)

        if price is None or not ratio_population:
            return RatingComponent.clamped(
                NEUTRAL_SCORE,
                f"Price unavailable, cannot assess value for money. "
                f"Quality sum {quality:.1f}/{max_quality}.",
            )

        lo, hi = VALUE_RANGE
        score = scale_to_range(quality / price, ratio_population, lo, hi, higher_is_better=True)
        pp = listing.price.amount / self.group_size

        return RatingComponent.clamped(
            score,
            f"Quality sum {quality:.1f}/{max_quality} at €{pp:.2f}/person/night, "
            f"{self._inclusion_text(listing)}. Ratio ranked across all priced listings.",
        )

    def aggregate(self, judged_listings: list[JudgedListing]) -> list[EnrichedListing]:
        """
        Build the full enrichment of every listing.

        Args:
            judged_listings: Listings with algorithmic scores and judgments

        Returns:
            EnrichedListing per input, in input order
        """
        # Pass 1: quality per listing, ratios over the priced population
        qualities = [self.quality_sum(j) for j in judged_listings]
        ratios = []
        for judged, quality in zip(judged_listings, qualities):
            price = self.effective_price(judged.listing)
            if price is not None:
                ratios.append(quality / price)

        logger.info(
            f"Aggregating {len(judged_listings)} listings "
            f"({len(ratios)} with a usable price)"
        )

        # Pass 2: value and final score
        enriched = []
        for judged, quality in zip(judged_listings, qualities):
            value = self.score_value(judged, quality, ratios)
            components = {
                "value": value,
                "social_proof": judged.algorithmic.social_proof,
                "practical_amenities": judged.algorithmic.practical_amenities,
                **judged.judgment.components(),
            }
            enrichment = Enrichment(
                algorithmic=judged.algorithmic,
                judgment=judged.judgment,
                value=value,
                final_score=compute_final_score(components),
            )
            enriched.append(EnrichedListing(listing=judged.listing, enrichment=enrichment))

        return enriched
