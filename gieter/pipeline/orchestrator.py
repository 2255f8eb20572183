"""
Pipeline orchestrator - runs the full rating pipeline.
"""
import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np

from ..config import Config, get_config
from ..models.export import RunExport, RunMetadata
from ..models.scoring import EnrichedListing, RankedListing
from .cache import FileCache
from .stage import StageRunner
from .steps import PipelineSteps


logger = logging.getLogger(__name__)


def rank_listings(enriched: list[EnrichedListing]) -> list[RankedListing]:
    """
    Order by final score, best first.
    The sort is stable: equal scores keep their input order.
    """
    ordered = sorted(enriched, key=lambda e: e.final_score, reverse=True)
    return [
        RankedListing(listing=e.listing, enrichment=e.enrichment, rank=i)
        for i, e in enumerate(ordered, 1)
    ]


def market_summary(ranked: list[RankedListing], group_size: int) -> dict:
    """Nightly price statistics over the ranked listings."""
    prices = [r.listing.price.amount for r in ranked if r.listing.price.is_known]
    if not prices:
        return {"total_listings": len(ranked), "with_price": 0}
    return {
        "total_listings": len(ranked),
        "with_price": len(prices),
        "median_price": float(np.median(prices)),
        "median_price_per_person": float(np.median(prices)) / group_size,
        "min_price": float(min(prices)),
        "max_price": float(max(prices)),
    }


def run_pipeline(
    steps: Optional[PipelineSteps] = None,
    config: Optional[Config] = None,
) -> RunExport:
    """
    Run the full rating pipeline.

    Pipeline steps:
    1. fetch-urls: collect listing URLs from the search pages
    2. fetch-listings: fetch and extract every listing
    3. filter-distance: keep listings within range of the reference point
    4. algorithmic-enrich: price, social proof and amenity components
    5. filter-algorithmic: gate on the mean algorithmic score
    6. ai-enrich: judged components from the judgment provider
    7. compute-final-rating: value component and final score
    8. Rank by final score

    Stages run strictly one after another; each goes through the cache.

    Args:
        steps: Prebuilt steps (a file cache under ``config.cache_dir`` if None)
        config: Configuration (global config if None)

    Returns:
        RunExport with ranked results and run metadata
    """
    config = config or get_config()
    if steps is None:
        steps = PipelineSteps(StageRunner(FileCache(config.cache_dir)), config=config)
    runner = steps.runner

    run_id = str(uuid.uuid4())[:8]
    started_at = datetime.now()
    logger.info(f"Starting pipeline run {run_id}")

    urls = runner.run(steps.fetch_urls(), None)
    logger.info(f"Step 1: {len(urls)} listing URLs")

    listings = runner.run(steps.fetch_listings(), urls)
    logger.info(f"Step 2: {len(listings)} listings fetched")

    in_range = runner.run(steps.filter_distance(), listings)
    logger.info(f"Step 3: {len(in_range)} listings within {config.pipeline.max_km:.0f} km")

    scored = runner.run(steps.algorithmic_enrich(), in_range)
    candidates = runner.run(steps.filter_algorithmic(), scored)
    logger.info(f"Step 4-5: {len(candidates)}/{len(scored)} listings pass the algorithmic gate")

    judged = runner.run(steps.ai_enrich(), candidates)
    logger.info(f"Step 6: {len(judged)} listings judged")

    enriched = runner.run(steps.compute_final_rating(), judged)
    ranked = rank_listings(enriched)

    metadata = RunMetadata(
        run_id=run_id,
        started_at=started_at,
        completed_at=datetime.now(),
        urls_found=len(urls),
        listings_fetched=len(listings),
        listings_in_range=len(in_range),
        listings_judged=len(judged),
        cache_hits=runner.hits,
        cache_misses=runner.misses,
        failures=list(steps.failures),
    )

    logger.info(
        f"Pipeline completed: {len(ranked)} ranked listings, "
        f"{runner.hits} cache hits, {runner.misses} misses, {len(steps.failures)} failures"
    )
    return RunExport(
        metadata=metadata,
        results=ranked,
        market_summary=market_summary(ranked, config.pipeline.group_size),
    )


def export_results(export: RunExport, path: Path) -> Path:
    """Write the run export as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(export.model_dump(mode="json"), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    logger.info(f"Wrote {len(export.results)} results to {path}")
    return path
