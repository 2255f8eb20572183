"""
Listing judge - derived rating components from the judgment provider.
"""
import json
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from ..errors import JudgmentError
from ..models.listing import Listing
from ..models.scoring import Judgment, RatingComponent
from .llm_client import LLMClient


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are evaluating holiday rental listings for a group of 8 students (20s) planning a relaxing week in France in late July. Their goal is to chill: sunbathe, sit outside, enjoy nature, cook together, and have space to hang out as a group.

You will be given a listing's details and must rate FOUR components on a scale of 1-10 and provide a 1-2 sentence reason for each. Be strict with the criteria.

1. outdoorChillPotential (1-10)
   Does this place excel for outdoor relaxation in summer? Look for: pool, large private garden, quality terrace, deckchairs, barbecue, countryside setting, shade, views. Penalise heavily: small or shared outdoor space, urban location. Hard caps on pool:
   - No pool at all: score 5 maximum.
   - Pool present but explicitly shared with other guests or properties: score 6 maximum.
   - Pool present and private, or pool type unspecified (assume private): no cap from this rule.
   No garden at all scores 3 or below.

2. groupComfort (1-10)
   How comfortable is the layout for 8 people sharing for a week? Look for: enough double beds (not just bunks), multiple bathrooms, a spacious communal living area, a good kitchen for cooking together. Penalise: split across separate units, many bunk beds, a single bathroom, cramped common space.

3. locationVibe (1-10)
   Is the property's IMMEDIATE setting a proper holiday environment? Score the property's surroundings, NOT the broader region or nearby attractions.
   Look for: directly in nature (forest, fields, river, sea, vineyard), private or rural setting, no neighbours visible, countryside or coastal isolation.
   Penalise very heavily: a village centre or village street (even a charming one), a town, suburban sprawl, industrial areas, or anywhere neighbours are visible or audible. A property in the middle of a village scores 3-4 at most.

4. miscellaneous (1-10, default 5)
   Anything notable NOT already captured by the three components above. Use 5 if there is nothing special to report. Go above 5 for standout bonuses (private pool on top of a garden, vineyard on-site, exceptional views, spa, unique architecture). Go below 5 for red flags (owner lives on-site and may restrict noise, parties forbidden, facilities shared with other guests, access issues). Read the reviews carefully for red flags the description glosses over.

Return ONLY a JSON object in this exact shape, with no markdown fences or extra text:
{
  "outdoorChillPotential": { "score": <number 1-10>, "reason": "<1-2 sentences>" },
  "groupComfort": { "score": <number 1-10>, "reason": "<1-2 sentences>" },
  "locationVibe": { "score": <number 1-10>, "reason": "<1-2 sentences>" },
  "miscellaneous": { "score": <number 1-10>, "reason": "<1-2 sentences>" }
}"""


class RawComponent(BaseModel):
    """A component exactly as returned by the provider, before clamping."""
    model_config = ConfigDict(strict=True)

    score: float
    reason: str

    def to_component(self) -> RatingComponent:
        return RatingComponent.clamped(self.score, self.reason)


class JudgmentResponse(BaseModel):
    """Schema the provider's JSON must match, no extra keys."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    outdoor_chill_potential: RawComponent = Field(alias="outdoorChillPotential")
    group_comfort: RawComponent = Field(alias="groupComfort")
    location_vibe: RawComponent = Field(alias="locationVibe")
    miscellaneous: RawComponent = Field(alias="miscellaneous")

    def to_judgment(self) -> Judgment:
        return Judgment(
            outdoor_chill_potential=self.outdoor_chill_potential.to_component(),
            group_comfort=self.group_comfort.to_component(),
            location_vibe=self.location_vibe.to_component(),
            miscellaneous=self.miscellaneous.to_component(),
        )


def build_digest(listing: Listing) -> str:
    """
    Condensed JSON description of a listing for the provider.
    Photos are left out; review text is kept as the strongest signal for
    setting and red flags.
    """
    condensed = {
        "title": listing.title,
        "type": listing.type,
        "summary": listing.summary,
        "description": listing.description,
        "location": listing.location.model_dump(),
        "capacity": listing.capacity.model_dump(),
        "equipment": listing.equipment.model_dump(),
        "priceIncludes": listing.price_includes,
        "distanceKm": listing.distance_km,
        "reviews": [
            {
                "rating": r.rating,
                "title": r.title,
                "body": r.body,
                "criteria": r.criteria.model_dump(exclude_none=True),
            }
            for r in listing.reviews
        ],
    }
    return json.dumps(condensed, indent=2, ensure_ascii=False)


class ListingJudge:
    """
    Asks the provider for the four derived components of a listing.
    Malformed responses are retried up to ``max_attempts`` times.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, max_attempts: int = 3):
        self.llm_client = llm_client or LLMClient()
        self.max_attempts = max_attempts

    def _request(self, digest: str) -> JudgmentResponse:
        return self.llm_client.call_with_schema(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=digest,
            response_model=JudgmentResponse,
        )

    def judge(self, listing: Listing) -> Judgment:
        """
        Args:
            listing: The listing to judge

        Returns:
            Judgment with every score clamped to [1, 10]

        Raises:
            JudgmentError: If no valid response arrived within max_attempts
        """
        logger.info(f"Judging \"{listing.title}\" ({listing.ref})")
        digest = build_digest(listing)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type((ValidationError, json.JSONDecodeError)),
            before_sleep=lambda retry_state: logger.warning(
                f"Invalid judgment for {listing.ref} "
                f"(attempt {retry_state.attempt_number}/{self.max_attempts}), retrying"
            ),
            reraise=True,
        )

        try:
            response = retrying(self._request, digest)
        except (ValidationError, json.JSONDecodeError) as e:
            raise JudgmentError(
                listing.ref,
                f"response failed schema validation after {self.max_attempts} attempts: {e}",
            ) from e

        return response.to_judgment()
