"""
Algorithmic score components - deterministic scoring from the listing record.
"""
import logging
from typing import Optional

from ..models.listing import Listing
from ..models.scoring import AlgorithmicScores, RatingComponent, ScoredListing
from .normalize import (
    NEUTRAL_SCORE,
    damp,
    group_by_tier,
    tiered_scale,
)


logger = logging.getLogger(__name__)


# Both per-criterion averages at or above this earn CRITERIA_BONUS
CRITERIA_THRESHOLD = 4.5
CRITERIA_BONUS = 0.5

# Checklist label -> keywords matched case-insensitively against amenity text
PRACTICAL_CHECKLIST: list[tuple[str, tuple[str, ...]]] = [
    ("wifi", ("wifi", "wi-fi", "internet")),
    ("dishwasher", ("dishwasher",)),
    ("washing machine", ("washing machine", "laundry")),
    ("barbecue", ("barbecue", "bbq", "plancha")),
    ("garden", ("garden", "lawn", "grounds")),
    ("terrace", ("terrace", "patio", "deck")),
    ("parking", ("parking", "garage", "car park")),
    ("pool", ("swimming pool", "pool")),
]

# Floor area per occupant (m²) -> bonus, checked in order
SPACE_BONUS_TIERS = [(20.0, 1.0), (12.0, 0.5)]


class AlgorithmicScorer:
    """
    Computes the algorithmic components for a population of listings.
    All scores are 1-10, higher is better.
    """

    def __init__(self, group_size: int = 8, min_tier_size: int = 3):
        self.group_size = group_size
        self.min_tier_size = min_tier_size

    def price_per_person(self, listing: Listing) -> Optional[float]:
        """Nightly price per party member, None if unknown."""
        if not listing.price.is_known:
            return None
        return listing.price.amount / self.group_size

    def score_price(self, listing: Listing, population: list[Listing]) -> RatingComponent:
        """Rank price per person against listings of the same quality tier."""
        pp = self.price_per_person(listing)
        if pp is None:
            return RatingComponent.clamped(
                NEUTRAL_SCORE,
                "Price unavailable, cannot compare against similar listings.",
            )

        tiers = group_by_tier(
            (l for l in population if l.price.is_known),
            key=lambda l: l.quality,
        )
        peers = [self.price_per_person(l) for l in tiers.get(listing.quality, [])]
        # The listing itself belongs to its tier even if absent from the population
        if not any(l.ref == listing.ref for l in tiers.get(listing.quality, [])):
            peers.append(pp)

        score = tiered_scale(pp, peers, min_tier_size=self.min_tier_size)

        if len(peers) < max(self.min_tier_size, 2):
            reason = (
                f"€{pp:.0f}/person/night; only {len(peers)} priced {listing.quality}-épi "
                f"listing{'s' if len(peers) != 1 else ''}, too few to compare."
            )
        else:
            reason = (
                f"€{pp:.0f}/person/night, ranked against {len(peers)} "
                f"{listing.quality}-épi listings (€{min(peers):.0f}-€{max(peers):.0f})."
            )
        return RatingComponent.clamped(score, reason)

    def score_social_proof(self, listing: Listing) -> RatingComponent:
        """
        Aggregate rating damped by review count, plus a bonus when comfort and
        cleanliness are both consistently high.
        """
        value = listing.aggregate_rating.value
        count = listing.aggregate_rating.count

        if count == 0:
            return RatingComponent.clamped(
                NEUTRAL_SCORE,
                "No reviews yet, no social proof available.",
            )

        damped = damp((value / 5) * 10, count)

        criteria = self._criteria_averages(listing)
        bonus = 0.0
        if criteria and min(criteria) >= CRITERIA_THRESHOLD:
            bonus = CRITERIA_BONUS

        if count >= 3:
            confidence = "solid"
        elif count == 2:
            confidence = "limited"
        else:
            confidence = "very limited"

        reason = f"{value}/5 from {count} review{'s' if count != 1 else ''} ({confidence} sample)."
        if criteria:
            comfort, cleanliness = criteria
            reason += f" Comfort avg {comfort:.1f}/5, cleanliness avg {cleanliness:.1f}/5."

        return RatingComponent.clamped(damped + bonus, reason)

    def _criteria_averages(self, listing: Listing) -> Optional[tuple[float, float]]:
        """Mean (comfort, cleanliness) over reviews that rate both."""
        rated = [
            r.criteria for r in listing.reviews
            if r.criteria.comfort is not None and r.criteria.cleanliness is not None
        ]
        if not rated:
            return None
        comfort = sum(c.comfort for c in rated) / len(rated)
        cleanliness = sum(c.cleanliness for c in rated) / len(rated)
        return comfort, cleanliness

    def score_practical_amenities(self, listing: Listing) -> RatingComponent:
        """Share of the practical checklist present, plus a space bonus."""
        text = " | ".join(listing.equipment.all_items()).lower()

        matched = []
        missed = []
        for label, keywords in PRACTICAL_CHECKLIST:
            present = any(k in text for k in keywords)
            if label == "wifi" and listing.capacity.wifi:
                present = True
            (matched if present else missed).append(label)

        base = len(matched) / len(PRACTICAL_CHECKLIST) * 10

        bonus = 0.0
        surface = listing.capacity.surface_m2
        people = listing.capacity.people
        if surface and people > 0:
            per_person = surface / people
            for threshold, tier_bonus in SPACE_BONUS_TIERS:
                if per_person >= threshold:
                    bonus = tier_bonus
                    break
            space_text = f"{per_person:.0f} m² per occupant (+{bonus:g})."
        else:
            space_text = "Floor area unknown, no space bonus."

        reason = f"{len(matched)}/{len(PRACTICAL_CHECKLIST)} practical items."
        if matched:
            reason += f" Has: {', '.join(matched)}."
        if missed:
            reason += f" Missing: {', '.join(missed)}."
        reason += f" {space_text}"

        return RatingComponent.clamped(base + bonus, reason)

    def score(self, listing: Listing, population: list[Listing]) -> AlgorithmicScores:
        """Calculate all algorithmic components for one listing."""
        return AlgorithmicScores(
            price=self.score_price(listing, population),
            social_proof=self.score_social_proof(listing),
            practical_amenities=self.score_practical_amenities(listing),
        )

    def score_all(self, listings: list[Listing]) -> list[ScoredListing]:
        """Score every listing against the whole population."""
        logger.info(f"Scoring {len(listings)} listings algorithmically")
        return [
            ScoredListing(listing=listing, algorithmic=self.score(listing, listings))
            for listing in listings
        ]
