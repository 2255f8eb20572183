"""
End-to-end pipeline tests with a fake listing source and a fake judge.
"""
import json
from unittest.mock import Mock

import pytest
import requests

from gieter.ai.judge import ListingJudge
from gieter.client.gites import GitesClient
from gieter.config import Config, JudgeConfig, PipelineConfig
from gieter.errors import JudgmentError
from gieter.pipeline.aggregate import Aggregator
from gieter.pipeline.cache import FileCache
from gieter.pipeline.orchestrator import export_results, rank_listings, run_pipeline
from gieter.pipeline.stage import StageRunner
from gieter.pipeline.steps import PipelineSteps


BASE = "https://www.gites-de-france.com/en/dordogne/"
JUDGE_SCORES = {"A1": 9.0, "B2": 6.0, "C3": 7.0}


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        judge=JudgeConfig(api_key="", batch_size=2),
        pipeline=PipelineConfig(ref_lat=45.0, ref_lon=1.0, max_km=300, min_algorithmic_score=1.0),
        cache_dir=tmp_path / "cache",
        results_path=tmp_path / "data" / "results.json",
    )


@pytest.fixture
def pages(page) -> dict[str, str]:
    return {
        BASE + "a1?from=search": page(ref="A1", price="800", lat="45.0", lng="1.0"),
        BASE + "b2?from=search": page(ref="B2", price="1600", lat="45.1", lng="1.1"),
        BASE + "c3?from=search": page(ref="C3", price="1200", lat="45.2", lng="1.2"),
        BASE + "far?from=search": page(ref="FAR", lat="60.0", lng="20.0"),
        BASE + "broken?from=search": "<html><body>Gone</body></html>",
    }


@pytest.fixture
def client(pages) -> Mock:
    client = Mock(spec=GitesClient)
    client.fetch_listing_urls.return_value = list(pages)
    client.fetch_listing_html.side_effect = lambda url: pages[url]
    return client


@pytest.fixture
def judge(make_judgment) -> Mock:
    judge = Mock(spec=ListingJudge)
    judge.judge.side_effect = lambda listing: make_judgment(JUDGE_SCORES[listing.ref])
    return judge


def build_steps(config, client, judge) -> PipelineSteps:
    runner = StageRunner(FileCache(config.cache_dir))
    return PipelineSteps(runner, client=client, judge=judge, config=config)


class TestRunPipeline:
    """Full runs against a temporary cache directory."""

    def test_ranked_results(self, config, client, judge):
        export = run_pipeline(build_steps(config, client, judge), config)

        assert [r.listing.ref for r in export.results] == ["A1", "C3", "B2"]
        assert [r.rank for r in export.results] == [1, 2, 3]
        scores = [r.final_score for r in export.results]
        assert scores == sorted(scores, reverse=True)

    def test_metadata_counts(self, config, client, judge):
        metadata = run_pipeline(build_steps(config, client, judge), config).metadata

        assert metadata.urls_found == 5
        assert metadata.listings_fetched == 4
        assert metadata.listings_in_range == 3
        assert metadata.listings_judged == 3
        assert metadata.failures == []
        assert metadata.cache_hits == 0

    def test_rerun_is_fully_cached(self, config, client, judge):
        """Test that an unchanged second run computes nothing."""
        first = run_pipeline(build_steps(config, client, judge), config)
        client.reset_mock()
        judge.judge.reset_mock()

        second = run_pipeline(build_steps(config, client, judge), config)

        client.fetch_listing_urls.assert_not_called()
        client.fetch_listing_html.assert_not_called()
        judge.judge.assert_not_called()
        assert second.metadata.cache_misses == 0
        assert [r.listing for r in second.results] == [r.listing for r in first.results]
        assert [r.final_score for r in second.results] == [r.final_score for r in first.results]

    def test_judgment_failure_drops_only_that_listing(self, config, client, judge, make_judgment):
        def flaky(listing):
            if listing.ref == "B2":
                raise JudgmentError(listing.ref, "invalid response")
            return make_judgment(JUDGE_SCORES[listing.ref])

        judge.judge.side_effect = flaky
        export = run_pipeline(build_steps(config, client, judge), config)

        assert [r.listing.ref for r in export.results] == ["A1", "C3"]
        assert len(export.metadata.failures) == 1
        assert export.metadata.failures[0].stage == "ai-enrich"
        assert export.metadata.failures[0].item == "B2"

        # Next run retries only the failed listing
        judge.judge.reset_mock()
        judge.judge.side_effect = lambda listing: make_judgment(JUDGE_SCORES[listing.ref])
        retried = run_pipeline(build_steps(config, client, judge), config)

        assert [c.args[0].ref for c in judge.judge.call_args_list] == ["B2"]
        assert len(retried.results) == 3
        assert retried.metadata.failures == []

    def test_transport_failure_drops_only_that_listing(self, config, client, judge, pages):
        failing_url = BASE + "c3?from=search"

        def fetch(url):
            if url == failing_url:
                raise requests.ConnectionError("connection reset")
            return pages[url]

        client.fetch_listing_html.side_effect = fetch
        export = run_pipeline(build_steps(config, client, judge), config)

        assert [r.listing.ref for r in export.results] == ["A1", "B2"]
        assert export.metadata.failures[0].stage == "fetch-listing"
        assert export.metadata.failures[0].item == failing_url

        client.fetch_listing_html.reset_mock()
        client.fetch_listing_html.side_effect = lambda url: pages[url]
        run_pipeline(build_steps(config, client, judge), config)

        assert [c.args[0] for c in client.fetch_listing_html.call_args_list] == [failing_url]

    def test_export_written(self, config, client, judge):
        export = run_pipeline(build_steps(config, client, judge), config)
        path = export_results(export, config.results_path)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["metadata"]["run_id"] == export.metadata.run_id
        assert data["results"][0]["listing"]["ref"] == "A1"
        assert data["results"][0]["enrichment"]["final_score"] == export.results[0].final_score
        assert data["market_summary"]["with_price"] == 3

    def test_changed_range_is_recomputed(self, config, client, judge):
        run_pipeline(build_steps(config, client, judge), config)

        config.pipeline.max_km = 1
        narrowed = run_pipeline(build_steps(config, client, judge), config)

        assert [r.listing.ref for r in narrowed.results] == ["A1"]
        assert narrowed.metadata.listings_in_range == 1

    def test_changed_page_limit_refetches_urls(self, config, client, judge):
        run_pipeline(build_steps(config, client, judge), config)
        client.fetch_listing_urls.reset_mock()

        config.search.max_pages = 1
        run_pipeline(build_steps(config, client, judge), config)

        client.fetch_listing_urls.assert_called_once()

    def test_changed_gate_is_recomputed(self, config, client, judge):
        run_pipeline(build_steps(config, client, judge), config)

        config.pipeline.min_algorithmic_score = 10.0
        gated = run_pipeline(build_steps(config, client, judge), config)

        assert gated.results == []


class TestRanking:

    def test_stable_for_equal_scores(self, make_judged):
        enriched = Aggregator().aggregate([make_judged(ref=r) for r in ["X", "Y", "Z"]])
        ranked = rank_listings(enriched)

        assert [r.listing.ref for r in ranked] == ["X", "Y", "Z"]
        assert [r.rank for r in ranked] == [1, 2, 3]
