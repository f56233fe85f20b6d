"""Collection pipeline for YouTube trending and keyword-search metadata."""

__version__ = "0.1.0"
