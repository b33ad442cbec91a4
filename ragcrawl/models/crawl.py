from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ragcrawl.config import settings
from ragcrawl.models.document import PageRecord


class CrawlTarget(BaseModel):
    """
    Resolved description of one website crawl run. Immutable for the duration of the run.
    An empty allowed_domains means "the hosts of the seed URLs".
    """
    model_config = ConfigDict(frozen=True)

    seed_urls: Tuple[str, ...] = Field(..., min_length=1)
    allowed_domains: Tuple[str, ...] = ()
    base_path: Optional[str] = None
    max_depth: int = Field(default_factory=lambda: settings.CRAWLER_MAX_DEPTH, ge=0)
    max_pages: int = Field(default_factory=lambda: settings.CRAWLER_MAX_PAGES, gt=0)
    delay_ms: int = Field(default_factory=lambda: settings.CRAWLER_DELAY_MS, ge=0)
    concurrency: int = Field(default_factory=lambda: settings.CRAWLER_CONCURRENCY, ge=1)
    user_agent: str = Field(default_factory=lambda: settings.CRAWLER_USER_AGENT)
    respect_robots: bool = Field(default_factory=lambda: settings.CRAWLER_RESPECT_ROBOTS)
    follow_sitemaps: bool = Field(default_factory=lambda: settings.CRAWLER_FOLLOW_SITEMAPS)

    @field_validator("allowed_domains")
    @classmethod
    def _lowercase_domains(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(d.strip().strip(".").lower() for d in value if d and d.strip())

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip()
        return value if value.startswith("/") else f"/{value}"


class QueueItem(BaseModel):
    """A discovered URL waiting in the frontier, consumed exactly once."""
    model_config = ConfigDict(frozen=True)

    url: str
    depth: int


class CrawlState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CrawlStats(BaseModel):
    processed: int = 0
    failed: int = 0
    disallowed: int = 0 # Robots denials, counted apart from failures
    skipped_short: int = 0
    duplicates: int = 0 # Redirects that landed on an already fetched URL


class ValidationReport(BaseModel):
    """Pre-flight check of a target's first usable seed."""
    seed_url: Optional[str] = None
    robots_allowed: bool = True
    sitemap_found: bool = False
    estimated_pages: Optional[int] = None
    issues: List[str] = []


class CrawlResult(BaseModel):
    state: CrawlState
    pages: List[PageRecord] = []
    stats: CrawlStats = Field(default_factory=CrawlStats)
    error: Optional[str] = None
