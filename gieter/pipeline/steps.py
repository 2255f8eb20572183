"""
Pipeline steps - the concrete stages, their versions and per-item caching.

Each stage's version must be bumped whenever its logic changes output.
Per-item stages (one listing fetched or judged) are nested inside their
outer stage so a single new or changed listing never forces recomputation
of the others.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests
from pydantic import BaseModel

from ..ai.judge import ListingJudge
from ..client.gites import GitesClient, url_slug
from ..client.parse import parse_listing
from ..config import Config, get_config
from ..errors import ListingParseError
from ..models.export import ItemFailure
from ..models.listing import Listing
from ..models.scoring import EnrichedListing, JudgedListing, ScoredListing
from .aggregate import Aggregator
from .cache import settings_version
from .components import AlgorithmicScorer
from .filter import AlgorithmicGate, DistanceFilter
from .stage import Stage, StageRunner


logger = logging.getLogger(__name__)


class PipelineSteps:
    """
    Builds the pipeline's stages from the current configuration.

    Per-item failures are recorded in ``failures``; the affected item is
    dropped and the stage result is returned uncached so a later run retries it.
    """

    def __init__(
        self,
        runner: StageRunner,
        client: Optional[GitesClient] = None,
        judge: Optional[ListingJudge] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.runner = runner
        self._client = client
        self._judge = judge

        self.failures: list[ItemFailure] = []
        self._failures_lock = threading.Lock()
        self._incomplete = False

    # Collaborators are created lazily so cached runs need no network or API key
    @property
    def client(self) -> GitesClient:
        if self._client is None:
            self._client = GitesClient(self.config.search)
        return self._client

    @property
    def judge(self) -> ListingJudge:
        if self._judge is None:
            self._judge = ListingJudge(max_attempts=self.config.judge.max_attempts)
        return self._judge

    def _record_failure(self, stage: str, item: str, error: Exception) -> None:
        logger.error(f"[{stage}] {item} failed: {error}")
        with self._failures_lock:
            self.failures.append(ItemFailure(stage=stage, item=item, error=str(error)))
            self._incomplete = True

    def _complete(self, _result) -> bool:
        return not self._incomplete

    @staticmethod
    def _version(version: str, settings: BaseModel, *fields: str) -> str:
        # Settings that shape a stage's output are part of its cache identity
        return settings_version(version, settings.model_dump(include=set(fields)))

    # === fetch-urls ===

    def fetch_urls(self) -> Stage[None, list[str]]:
        return Stage(
            name="fetch-urls",
            version=self._version(
                "2", self.config.search, "site_url", "search_params", "last_page", "max_pages"
            ),
            run=lambda _: self.client.fetch_listing_urls(),
            output_type=list[str],
        )

    # === fetch-listings ===

    def fetch_listing(self, url: str) -> Stage[str, Optional[Listing]]:
        """
        Per-URL stage. A page that fails to parse is cached as None;
        transport errors raise and are not cached.
        """
        def run(u: str) -> Optional[Listing]:
            logger.info(f"[fetch-listing] {u}")
            html = self.client.fetch_listing_html(u)
            try:
                return parse_listing(html)
            except ListingParseError as e:
                logger.warning(f"[fetch-listing] parse failed for {u}: {e}")
                return None

        return Stage(
            name=f"fetch-listing-{url_slug(url)}",
            version="1",
            run=run,
            output_type=Optional[Listing],
        )

    def _fetch_listings(self, urls: list[str]) -> list[Listing]:
        self._incomplete = False
        listings: list[Listing] = []
        seen_refs: set[str] = set()

        for i, url in enumerate(urls, 1):
            logger.info(f"[{i}/{len(urls)}] {url}")
            try:
                listing = self.runner.run(self.fetch_listing(url), url)
            except requests.RequestException as e:
                self._record_failure("fetch-listing", url, e)
                continue
            if listing is None or listing.ref in seen_refs:
                continue
            seen_refs.add(listing.ref)
            listings.append(listing)

        return listings

    def fetch_listings(self) -> Stage[list[str], list[Listing]]:
        return Stage(
            name="fetch-listings",
            version="2",
            run=self._fetch_listings,
            output_type=list[Listing],
            should_cache=self._complete,
        )

    # === filter-distance ===

    def filter_distance(self) -> Stage[list[Listing], list[Listing]]:
        p = self.config.pipeline
        return Stage(
            name="filter-distance",
            version=self._version("1", p, "ref_lat", "ref_lon", "max_km"),
            run=DistanceFilter(p.ref_lat, p.ref_lon, p.max_km).filter,
            output_type=list[Listing],
        )

    # === algorithmic-enrich / filter-algorithmic ===

    def algorithmic_enrich(self) -> Stage[list[Listing], list[ScoredListing]]:
        p = self.config.pipeline
        return Stage(
            name="algorithmic-enrich",
            version=self._version("6", p, "group_size", "min_tier_size"),
            run=AlgorithmicScorer(p.group_size, p.min_tier_size).score_all,
            output_type=list[ScoredListing],
        )

    def filter_algorithmic(self) -> Stage[list[ScoredListing], list[ScoredListing]]:
        p = self.config.pipeline
        return Stage(
            name="filter-algorithmic",
            version=self._version("1", p, "min_algorithmic_score"),
            run=AlgorithmicGate(p.min_algorithmic_score).filter,
            output_type=list[ScoredListing],
        )

    # === ai-enrich ===

    def judge_listing(self, ref: str) -> Stage[ScoredListing, JudgedListing]:
        """Per-listing stage keyed by ref; its input is the full scored listing."""
        def run(scored: ScoredListing) -> JudgedListing:
            return JudgedListing(
                listing=scored.listing,
                algorithmic=scored.algorithmic,
                judgment=self.judge.judge(scored.listing),
            )

        return Stage(
            name=f"ai-enrich-{ref}",
            version=self._version("5", self.config.judge, "model", "temperature"),
            run=run,
            output_type=JudgedListing,
        )

    def _judge_one(self, scored: ScoredListing) -> Optional[JudgedListing]:
        try:
            return self.runner.run(self.judge_listing(scored.listing.ref), scored)
        except Exception as e:
            # Isolate the item: transport and validation failures drop only this listing
            self._record_failure("ai-enrich", scored.listing.ref, e)
            return None

    def _ai_enrich(self, scored_listings: list[ScoredListing]) -> list[JudgedListing]:
        self._incomplete = False
        batch_size = self.config.judge.batch_size
        judged: dict[str, JudgedListing] = {}
        total_batches = (len(scored_listings) + batch_size - 1) // batch_size

        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            for start in range(0, len(scored_listings), batch_size):
                batch = scored_listings[start:start + batch_size]
                logger.info(
                    f"[ai-enrich] Batch {start // batch_size + 1}/{total_batches} "
                    f"({len(batch)} listings)"
                )
                futures = {
                    s.listing.ref: executor.submit(self._judge_one, s) for s in batch
                }
                for ref, future in futures.items():
                    result = future.result()
                    if result is not None:
                        judged[ref] = result

        # Input order, never completion order
        return [judged[s.listing.ref] for s in scored_listings if s.listing.ref in judged]

    def ai_enrich(self) -> Stage[list[ScoredListing], list[JudgedListing]]:
        return Stage(
            name="ai-enrich",
            version=self._version("6", self.config.judge, "model", "temperature"),
            run=self._ai_enrich,
            output_type=list[JudgedListing],
            should_cache=self._complete,
        )

    # === compute-final-rating ===

    def compute_final_rating(self) -> Stage[list[JudgedListing], list[EnrichedListing]]:
        p = self.config.pipeline
        return Stage(
            name="compute-final-rating",
            version=self._version("8", p, "group_size"),
            run=Aggregator(p.group_size).aggregate,
            output_type=list[EnrichedListing],
        )
