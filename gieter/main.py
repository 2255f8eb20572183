"""
Entry point: run the pipeline and export the ranked listings.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import get_config
from .pipeline import export_results, run_pipeline


logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    config = get_config()
    parser = argparse.ArgumentParser(description="Rank holiday rentals for a group trip")
    parser.add_argument("--output", type=Path, default=config.results_path, help="Where to save the ranked JSON")
    parser.add_argument("--cache-dir", type=Path, default=config.cache_dir, help="Stage cache directory")
    parser.add_argument("--max-pages", type=int, default=None, help="Search pages to walk (0 = all)")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = get_config()
    config.cache_dir = args.cache_dir
    config.results_path = args.output
    if args.max_pages is not None:
        config.search.max_pages = args.max_pages or None

    if not config.judge.api_key:
        logger.warning("GIETER_OPENROUTER_API_KEY not set, only cached judgments can be used")

    export = run_pipeline(config=config)
    export_results(export, config.results_path)

    for result in export.results[:10]:
        listing = result.listing
        reviews = "" if result.has_reviews else ", no reviews"
        logger.info(
            f"#{result.rank} {result.final_score:.1f} {listing.ref} {listing.title} "
            f"(value {result.component_score('value'):.1f}{reviews})"
        )

    if export.metadata.failures:
        logger.warning(f"{len(export.metadata.failures)} items dropped, see {config.results_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
