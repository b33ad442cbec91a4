import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, List, NamedTuple, Optional, Set, Tuple
from urllib.parse import urlsplit

from ragcrawl.config import settings
from ragcrawl.core.extractor import ContentExtractor
from ragcrawl.core.fetcher import RetryingFetcher
from ragcrawl.core.frontier import (
    Frontier,
    extract_links,
    host_of,
    is_allowed_domain,
    is_allowed_path,
    normalize_url,
)
from ragcrawl.core.robots import RobotsCache
from ragcrawl.core.sitemap import SitemapDiscoverer
from ragcrawl.exceptions import HttpStatusError, NetworkError, RobotsDisallowed, TargetValidationError
from ragcrawl.models.crawl import CrawlResult, CrawlState, CrawlStats, CrawlTarget, QueueItem, ValidationReport
from ragcrawl.models.document import FileEntry, PageRecord
from ragcrawl.utils.rate_limiter import HostThrottle
from ragcrawl.utils.reporting import CancellationToken, JobReporter, LoggingReporter, ProgressRange
from ragcrawl.utils.text_utils import sanitize_file_name

logger = logging.getLogger(__name__)


def page_to_file_entry(page: PageRecord) -> FileEntry:
    """Crawled page -> file entry named after its URL path, e.g. `docs_intro.html`."""
    path = urlsplit(page.url).path.lstrip("/")
    name = sanitize_file_name(path) or "index.html"
    if not name.endswith(".html"):
        name = f"{name}.html"
    text = "\n\n".join(part for part in (page.title, page.text) if part).strip()
    return FileEntry(
        name=name,
        url=page.url,
        type="doc",
        size=len(text.encode("utf-8")),
        text=text,
        title=page.title,
        headings=page.headings,
    )


class CrawlContext:
    """
    Caches scoped to one crawl run: robots rules and per-host request timestamps.
    Built at the start of `crawl` and dropped at its end, so concurrent jobs never share them.
    """
    def __init__(
        self,
        fetcher: RetryingFetcher,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.robots = RobotsCache(fetcher)
        self.sitemaps = SitemapDiscoverer(fetcher, self.robots)
        self.throttle = HostThrottle(clock=clock, sleep=sleep)


class Outcome(str, Enum):
    OK = "ok"
    FAILED = "failed"
    DISALLOWED = "disallowed"
    TOO_SHORT = "too_short"
    CANCELLED = "cancelled"


class WorkResult(NamedTuple):
    item: QueueItem
    outcome: Outcome
    page: Optional[PageRecord] = None
    links: Tuple[str, ...] = ()
    final_url: Optional[str] = None # Where redirects landed, when a response was received


class WebCrawler:
    """
    A web crawler that fetches pages breadth-first from seed URLs, respecting
    domain allowlists, base path, max pages, max depth and the politeness policy
    (robots rules plus per-host request spacing).
    """
    def __init__(
        self,
        fetcher: Optional[RetryingFetcher] = None,
        extractor: Optional[ContentExtractor] = None,
        min_content_chars: Optional[int] = None,
        max_links_per_page: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or RetryingFetcher()
        self.extractor = extractor or ContentExtractor()
        self.min_content_chars = min_content_chars if min_content_chars is not None else settings.CRAWLER_MIN_CONTENT_CHARS
        self.max_links_per_page = max_links_per_page or settings.CRAWLER_MAX_LINKS_PER_PAGE
        self._clock = clock
        self._sleep = sleep
        self.state = CrawlState.IDLE

    def _valid_seeds(self, target: CrawlTarget, reporter: JobReporter) -> List[str]:
        seeds = []
        for seed in target.seed_urls:
            normalized = normalize_url(seed)
            if normalized is None:
                reporter.log("error", f"Invalid URL seed: {seed}")
                continue
            seeds.append(normalized)
        if not seeds:
            raise TargetValidationError(f"No valid http(s) seed URL in {list(target.seed_urls)}")
        return seeds

    def _allowed_domains(self, target: CrawlTarget, seeds: List[str]) -> List[str]:
        if target.allowed_domains:
            return list(target.allowed_domains)
        return sorted({host_of(seed) for seed in seeds})

    async def _process(
        self,
        item: QueueItem,
        target: CrawlTarget,
        allowed_domains: List[str],
        context: CrawlContext,
        semaphore: asyncio.Semaphore,
        reporter: JobReporter,
        cancel_token: CancellationToken,
    ) -> WorkResult:
        """One unit of work. Both the global slot and the host slot are released on every exit path."""
        async with semaphore:
            if cancel_token.cancelled:
                return WorkResult(item, Outcome.CANCELLED)
            try:
                if target.respect_robots and not await context.robots.is_allowed(item.url, target.user_agent):
                    raise RobotsDisallowed(item.url)

                reporter.log("debug", f"Fetch {item.url} (depth {item.depth})")
                async with context.throttle.slot(host_of(item.url), target.delay_ms):
                    response = await self.fetcher.get_ok(
                        item.url, headers={"User-Agent": target.user_agent}, reporter=reporter
                    )

                if cancel_token.cancelled:
                    return WorkResult(item, Outcome.CANCELLED)

                # The client follows redirects, so the landing URL gets the same scope and robots checks
                final_url = normalize_url(str(response.url)) or item.url
                if final_url != item.url:
                    if not is_allowed_domain(final_url, allowed_domains) or not is_allowed_path(final_url, target.base_path):
                        reporter.log("warning", f"Skipping {item.url}: redirected out of scope to {final_url}")
                        return WorkResult(item, Outcome.FAILED)
                    if target.respect_robots and not await context.robots.is_allowed(final_url, target.user_agent):
                        raise RobotsDisallowed(final_url)

                content_type = response.headers.get("content-type", "").lower()
                if content_type and "html" not in content_type and not content_type.startswith("text/"):
                    reporter.log("warning", f"Skipping {item.url}: unsupported content type {content_type}")
                    return WorkResult(item, Outcome.FAILED, final_url=final_url)

                soup = self.extractor.parse(response.text)
                links: Tuple[str, ...] = ()
                if item.depth < target.max_depth:
                    links = tuple(extract_links(
                        soup, final_url, allowed_domains, target.base_path, self.max_links_per_page
                    ))
                page = self.extractor.extract(soup, final_url)

                if len(page.text.strip()) < self.min_content_chars:
                    reporter.log("debug", f"Skipping {item.url}: only {len(page.text.strip())} characters of content")
                    return WorkResult(item, Outcome.TOO_SHORT, final_url=final_url)
                return WorkResult(item, Outcome.OK, page, links, final_url)
            except RobotsDisallowed as e:
                reporter.log("warning", str(e))
                return WorkResult(item, Outcome.DISALLOWED)
            except (NetworkError, HttpStatusError) as e:
                reporter.log("error", f"Failed to scrape {item.url}: {e}")
                return WorkResult(item, Outcome.FAILED)
            except Exception as e:
                logger.error(f"Unexpected error scraping {item.url}: {e}", exc_info=True)
                reporter.log("error", f"Failed to scrape {item.url}: {e}")
                return WorkResult(item, Outcome.FAILED)

    async def crawl(
        self,
        target: CrawlTarget,
        job_id: str = "",
        reporter: Optional[JobReporter] = None,
        cancel_token: Optional[CancellationToken] = None,
        progress: Optional[ProgressRange] = None,
    ) -> CrawlResult:
        """
        Runs one crawl to completion, cancellation, or failure.
        Pages come back in the order their batches completed, seeds first.
        """
        reporter = reporter or LoggingReporter(job_id)
        cancel_token = cancel_token or CancellationToken()
        progress = progress or ProgressRange(reporter, 0, 70)

        try:
            seeds = self._valid_seeds(target, reporter)
        except TargetValidationError as e:
            self.state = CrawlState.FAILED
            reporter.log("error", str(e))
            raise

        self.state = CrawlState.RUNNING
        allowed_domains = self._allowed_domains(target, seeds)
        context = CrawlContext(self.fetcher, clock=self._clock, sleep=self._sleep)
        frontier = Frontier(allowed_domains, target.base_path)
        stats = CrawlStats()
        pages: List[PageRecord] = []
        landed: Set[str] = set()

        try:
            frontier.enqueue_all(seeds, 0)
            if target.follow_sitemaps:
                for seed in seeds:
                    if cancel_token.cancelled:
                        break
                    sitemap_urls = await context.sitemaps.discover(seed, target.user_agent, target.max_pages)
                    added = frontier.enqueue_all(sitemap_urls, 0)
                    if added:
                        reporter.log("info", f"Sitemap added {added} URLs for {seed}")

            reporter.log("info", f"Starting website crawl with {len(frontier)} queued URLs")
            semaphore = asyncio.Semaphore(target.concurrency)

            while len(frontier) and stats.processed < target.max_pages:
                if cancel_token.cancelled:
                    reporter.log("info", "Cancellation requested. Stopping crawl loop.")
                    break

                batch = frontier.next_batch(min(target.concurrency, target.max_pages - stats.processed))
                if not batch:
                    continue

                results = await asyncio.gather(*(
                    self._process(item, target, allowed_domains, context, semaphore, reporter, cancel_token)
                    for item in batch
                ))

                for result in results:
                    if result.outcome is Outcome.CANCELLED or cancel_token.cancelled:
                        continue
                    if result.final_url is not None:
                        if result.final_url in landed:
                            stats.duplicates += 1
                            reporter.log("debug", f"Skipping {result.item.url}: already fetched as {result.final_url}")
                            continue
                        landed.add(result.final_url)
                        if result.final_url != result.item.url:
                            frontier.mark_visited(result.final_url)
                    if result.outcome is Outcome.OK:
                        pages.append(result.page)
                        stats.processed += 1
                        added = frontier.enqueue_all(result.links, result.item.depth + 1)
                        reporter.log("info", f"Scraped: {result.item.url} ({added} new links)")
                    elif result.outcome is Outcome.DISALLOWED:
                        stats.disallowed += 1
                    elif result.outcome is Outcome.TOO_SHORT:
                        stats.skipped_short += 1
                    else:
                        stats.failed += 1
                    progress.update(stats.processed, target.max_pages)
        except Exception as e:
            self.state = CrawlState.FAILED
            logger.error(f"Job {job_id}: Crawl failed: {e}", exc_info=True)
            raise

        self.state = CrawlState.CANCELLED if cancel_token.cancelled else CrawlState.COMPLETED
        reporter.log(
            "info",
            f"Website crawl {self.state.value}: {stats.processed} pages processed, {stats.failed} failed, "
            f"{stats.disallowed} disallowed, {stats.skipped_short} too short, {stats.duplicates} duplicates",
        )
        return CrawlResult(state=self.state, pages=pages, stats=stats)

    async def validate(self, target: CrawlTarget) -> ValidationReport:
        """Checks the first usable seed against robots and estimates the page count from sitemaps."""
        report = ValidationReport()
        context = CrawlContext(self.fetcher, clock=self._clock, sleep=self._sleep)
        for seed in target.seed_urls:
            normalized = normalize_url(seed)
            if normalized is None:
                report.issues.append(f"Invalid URL: {seed}")
                continue
            report.seed_url = normalized
            report.robots_allowed = await context.robots.is_allowed(normalized, target.user_agent)
            if not report.robots_allowed:
                report.issues.append(f"Robots policy blocks access to {normalized}")
            sitemap_urls = await context.sitemaps.discover(normalized, target.user_agent, target.max_pages)
            report.sitemap_found = bool(sitemap_urls)
            report.estimated_pages = len(sitemap_urls) if sitemap_urls else None
            break
        return report

    async def aclose(self):
        if self._owns_fetcher:
            await self.fetcher.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
