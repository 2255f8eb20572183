"""
Configuration and environment handling for Gieter.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()


DEFAULT_SEARCH_PARAMS = (
    "travelers=8&arrival=2026-07-20&departure=2026-07-27&seed=183b8e53"
    "&f%5B0%5D=category%3A36212&f%5B1%5D=category%3A70752"
    "&f%5B2%5D=thematics%3A70742&f%5B3%5D=thematics%3A36143&f%5B4%5D=thematics%3A36142"
)


class JudgeConfig(BaseModel):
    """Judgment provider (OpenAI-compatible API) configuration."""
    api_key: str = Field(default_factory=lambda: os.getenv("GIETER_OPENROUTER_API_KEY", ""))
    base_url: str = Field(
        default_factory=lambda: os.getenv("GIETER_LLM_BASE_URL", "https://openrouter.ai/api/v1")
    )
    model: str = Field(
        default_factory=lambda: os.getenv("GIETER_LLM_MODEL", "google/gemini-3-flash-preview")
    )
    temperature: float = Field(default=0.2)
    max_attempts: int = Field(default=3, ge=1, description="Attempts before a malformed judgment is fatal")
    batch_size: int = Field(default=16, gt=0, description="Listings judged concurrently per batch")


class SearchConfig(BaseModel):
    """Listing source configuration."""
    site_url: str = Field(default="https://www.gites-de-france.com")
    search_params: str = Field(default_factory=lambda: os.getenv("GIETER_SEARCH_PARAMS", DEFAULT_SEARCH_PARAMS))
    last_page: int = Field(default=46, description="Index of the last search results page")
    max_pages: Optional[int] = Field(
        default_factory=lambda: int(os.getenv("GIETER_MAX_PAGES", "3")) or None,
        description="Stop after this many pages (None = all)",
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (X11; Linux x86_64; rv:124.0) Gecko/20100101 Firefox/124.0"
    )


class PipelineConfig(BaseModel):
    """Scoring and filtering configuration."""
    group_size: int = Field(default=8, ge=1, description="Travellers sharing the price")
    ref_lat: float = Field(default_factory=lambda: float(os.getenv("LAT", "52.3676")))
    ref_lon: float = Field(default_factory=lambda: float(os.getenv("LON", "4.9041")))
    max_km: float = Field(default_factory=lambda: float(os.getenv("MAX_KM", "700")))
    min_algorithmic_score: float = Field(
        default=5.0,
        description="Minimum mean algorithmic score required before judgment",
    )
    min_tier_size: int = Field(default=3, ge=1, description="Minimum peers for tiered price comparison")


class Config(BaseModel):
    """Main configuration."""
    judge: JudgeConfig = Field(default_factory=JudgeConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    # Paths
    cache_dir: Path = Field(default_factory=lambda: Path(os.getenv("GIETER_CACHE_DIR", ".cache")))
    results_path: Path = Field(default=Path("data/results.json"))


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
