"""Gieter - incremental scrape, score and rank pipeline for holiday rentals."""

__version__ = "1.0.0"
