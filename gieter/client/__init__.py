"""Listing source client and page parser."""

from .gites import GitesClient, url_slug
from .parse import parse_listing

__all__ = ["GitesClient", "url_slug", "parse_listing"]
