"""
Error taxonomy for the crawl and indexing pipeline.

Per-URL and per-file errors (network, HTTP status, robots) are raised and caught
inside a single unit of work so the run continues. Pipeline errors (embedding,
vector index) abort indexing for the whole job.
"""
from typing import Optional


class RagCrawlError(Exception):
    """Base class for all ragcrawl errors."""


class TargetValidationError(RagCrawlError):
    """A crawl target or repository source is malformed."""


class NetworkError(RagCrawlError):
    """The fetcher gave up on a URL without receiving any response."""

    def __init__(self, url: str, message: str = "Request failed after retries"):
        self.url = url
        super().__init__(f"{message}: {url}")


class NetworkTimeout(NetworkError):
    def __init__(self, url: str):
        super().__init__(url, "Request timed out after retries")


class HttpStatusError(RagCrawlError):
    """A non-2xx response remained after retries."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code}: {url}")


class RobotsDisallowed(RagCrawlError):
    """Not a failure: the robots policy forbids this path."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Disallowed by robots policy: {url}")


class ParseError(RagCrawlError):
    """Malformed HTML or XML."""


class PipelineError(RagCrawlError):
    """Fatal to the indexing pipeline of a job."""


class EmbeddingServiceError(PipelineError):
    pass


class IndexServiceError(PipelineError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class StorageError(RagCrawlError):
    """Writing an export artifact failed."""
