"""
Crawl websites or GitHub repositories into chunked, embedded vector collections.
"""
from .core.pipeline import IngestionPipeline
from .models import CrawlTarget, RepoSource, RepoScope, IngestionResult, IngestionStatus

__version__ = "0.1.0"

__all__ = [
    "IngestionPipeline",
    "CrawlTarget",
    "RepoSource",
    "RepoScope",
    "IngestionResult",
    "IngestionStatus",
]
