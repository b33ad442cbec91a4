import logging
import re
from typing import List, Optional, Set
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx

from ragcrawl.core.fetcher import RetryingFetcher
from ragcrawl.core.robots import RobotsCache

logger = logging.getLogger(__name__)

# Lightweight pattern match instead of an XML parser, to tolerate malformed sitemaps
LOC_RE = re.compile(r"<\s*loc[^>]*>\s*([^<\s]+)\s*<\s*/\s*loc\s*>", re.IGNORECASE)
SITEMAP_INDEX_RE = re.compile(r"<\s*sitemapindex", re.IGNORECASE)


def extract_locs(xml: str) -> List[str]:
    return [m.group(1).strip() for m in LOC_RE.finditer(xml or "") if m.group(1).strip()]


def is_sitemap_index(xml: str) -> bool:
    return bool(SITEMAP_INDEX_RE.search(xml or ""))


class SitemapDiscoverer:
    """
    Expands the default /sitemap.xml and any `Sitemap:` entries from the robots
    policy into a deduplicated, insertion-ordered list of page URLs, bounded by `max_urls`.
    """
    def __init__(self, fetcher: RetryingFetcher, robots: Optional[RobotsCache] = None):
        self.fetcher = fetcher
        self.robots = robots

    async def discover(self, seed_url: str, user_agent: str, max_urls: int) -> List[str]:
        discovered: List[str] = []
        seen_urls: Set[str] = set()
        fetched_sitemaps: Set[str] = set()

        def full() -> bool:
            return len(discovered) >= max_urls

        async def expand(sitemap_url: str):
            if full() or sitemap_url in fetched_sitemaps:
                return
            fetched_sitemaps.add(sitemap_url)
            try:
                response = await self.fetcher.get(sitemap_url, headers={"User-Agent": user_agent})
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.debug(f"Sitemap fetch failed for {sitemap_url}: {e}")
                return
            if response is None or response.status_code != 200 or not response.text:
                return
            body = response.text
            locs = extract_locs(body)
            if is_sitemap_index(body):
                logger.debug(f"Sitemap index {sitemap_url} lists {len(locs)} sitemaps")
                for loc in locs:
                    if full():
                        return
                    await expand(loc)
            else:
                for loc in locs:
                    if full():
                        return
                    if loc not in seen_urls:
                        seen_urls.add(loc)
                        discovered.append(loc)

        parts = urlsplit(seed_url)
        await expand(urlunsplit((parts.scheme, parts.netloc, "/sitemap.xml", "", "")))

        if self.robots is not None and not full():
            rules = await self.robots.get_rules(seed_url, user_agent)
            for entry in rules.sitemaps:
                if full():
                    break
                await expand(urljoin(seed_url, entry.split()[0]))

        logger.info(f"Sitemap discovery for {seed_url} found {len(discovered)} URLs")
        return discovered[:max_urls]
