import logging
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence, Set
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from ragcrawl.models.crawl import QueueItem

logger = logging.getLogger(__name__)

SKIPPED_PREFIXES = ("mailto:", "tel:", "javascript:", "#")


def normalize_url(url: str) -> Optional[str]:
    """
    Fragment-stripped, scheme/host-lowercased form used as the dedup key.
    Returns None for anything that is not an absolute http(s) URL.
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not parts.netloc:
        return None
    return urlunsplit((scheme, parts.netloc.lower(), parts.path or "/", parts.query, ""))


def host_of(url: str) -> str:
    return (urlsplit(url).hostname or "").lower()


def is_allowed_domain(url: str, allowed_domains: Sequence[str]) -> bool:
    """Exact host or any subdomain of an allowed domain. No allow-list means no restriction."""
    if not allowed_domains:
        return True
    host = host_of(url)
    return any(host == domain or host.endswith(f".{domain}") for domain in allowed_domains)


def is_allowed_path(url: str, base_path: Optional[str]) -> bool:
    if not base_path:
        return True
    base = base_path.rstrip("/") or "/"
    if base == "/":
        return True
    path = urlsplit(url).path or "/"
    return path == base or path.startswith(f"{base}/")


def resolve_link(href: str, base_url: str) -> Optional[str]:
    href = (href or "").strip()
    if not href or href.lower().startswith(SKIPPED_PREFIXES):
        return None
    try:
        absolute = urljoin(base_url, href)
    except ValueError:
        return None
    return normalize_url(absolute)


def extract_links(
    soup: BeautifulSoup,
    base_url: str,
    allowed_domains: Sequence[str],
    base_path: Optional[str],
    cap: int = 200,
) -> List[str]:
    """Outbound links in document order, filtered by domain and base path, deduplicated and capped."""
    links: List[str] = []
    seen: Set[str] = set()
    for a_tag in soup.find_all("a", href=True):
        url = resolve_link(a_tag["href"], base_url)
        if url is None or url in seen:
            continue
        if not is_allowed_domain(url, allowed_domains) or not is_allowed_path(url, base_path):
            continue
        seen.add(url)
        links.append(url)
        if len(links) >= cap:
            break
    return links


class Frontier:
    """
    FIFO work queue plus the seen and visited sets of one crawl run.
    Only the scheduler loop mutates it; workers hand discovered links back to the loop.
    """
    def __init__(self, allowed_domains: Sequence[str] = (), base_path: Optional[str] = None):
        self.allowed_domains = tuple(allowed_domains)
        self.base_path = base_path
        self._queue: Deque[QueueItem] = deque()
        self._seen: Set[str] = set()
        self.visited: Set[str] = set()

    def __len__(self) -> int:
        return len(self._queue)

    def enqueue(self, url: str, depth: int) -> bool:
        normalized = normalize_url(url)
        if normalized is None:
            return False
        if not is_allowed_domain(normalized, self.allowed_domains) or not is_allowed_path(normalized, self.base_path):
            return False
        if normalized in self._seen or normalized in self.visited:
            return False
        self._seen.add(normalized)
        self._queue.append(QueueItem(url=normalized, depth=depth))
        return True

    def enqueue_all(self, urls: Iterable[str], depth: int) -> int:
        return sum(1 for url in urls if self.enqueue(url, depth))

    def mark_visited(self, url: str) -> bool:
        """Records a URL reached through a redirect so it is never queued or fetched again."""
        if url in self.visited:
            return False
        self.visited.add(url)
        self._seen.add(url)
        return True

    def next_batch(self, size: int) -> List[QueueItem]:
        """Drains up to `size` unvisited items from the front and marks them visited."""
        batch: List[QueueItem] = []
        while self._queue and len(batch) < size:
            item = self._queue.popleft()
            if item.url in self.visited:
                continue
            self.visited.add(item.url)
            batch.append(item)
        return batch
