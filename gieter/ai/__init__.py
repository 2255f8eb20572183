"""AI modules for listing judgment."""

from .llm_client import LLMClient
from .judge import ListingJudge, build_digest

__all__ = ["LLMClient", "ListingJudge", "build_digest"]
