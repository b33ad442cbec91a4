"""
Pydantic records shared across the pipeline
"""
from .document import PageRecord, FileEntry, Chunk, IndexPoint, IndexPayload, ExportRecord
from .crawl import CrawlTarget, QueueItem, CrawlState, CrawlStats, CrawlResult, ValidationReport
from .source import RepoSource, RepoScope
from .job import IngestionStatus, IngestionResult

__all__ = [
    "PageRecord",
    "FileEntry",
    "Chunk",
    "IndexPoint",
    "IndexPayload",
    "ExportRecord",
    "CrawlTarget",
    "QueueItem",
    "CrawlState",
    "CrawlStats",
    "CrawlResult",
    "ValidationReport",
    "RepoSource",
    "RepoScope",
    "IngestionStatus",
    "IngestionResult",
]
