"""albumfeed - music RSS feed ingestion and album/publisher API."""

__version__ = "0.1.0"
