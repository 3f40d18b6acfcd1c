"""feedhub: syndication feed catalog ingestion."""

__version__ = "0.1.0"
