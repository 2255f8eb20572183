"""
Export models - run metadata and the ranked results file.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .scoring import RankedListing


class ItemFailure(BaseModel):
    """A single item dropped during a run."""
    stage: str
    item: str = Field(description="Listing ref or URL")
    error: str


class RunMetadata(BaseModel):
    """Metadata for a pipeline run."""
    run_id: str = Field(description="Unique run identifier")
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Processing stats
    urls_found: int = 0
    listings_fetched: int = 0
    listings_in_range: int = 0
    listings_judged: int = 0

    # Cache stats
    cache_hits: int = 0
    cache_misses: int = 0

    # Error tracking
    failures: list[ItemFailure] = Field(default_factory=list)


class RunExport(BaseModel):
    """
    Complete export of a pipeline run.
    Results are sorted by final score, best first.
    """
    metadata: RunMetadata
    results: list[RankedListing] = Field(default_factory=list)

    # Market summary
    market_summary: dict[str, Any] = Field(
        default_factory=dict,
        description="Price statistics over the ranked listings"
    )
