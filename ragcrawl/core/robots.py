import asyncio
import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpx
from pydantic import BaseModel

from ragcrawl.core.fetcher import RetryingFetcher

logger = logging.getLogger(__name__)


def normalize_rule_path(raw: str) -> str:
    """Strips wildcards (prefix-only matching) and ensures a leading slash. Empty stays empty."""
    path = raw.strip()
    if not path:
        return path
    path = path.replace("*", "").replace("$", "")
    if not path.startswith("/"):
        path = f"/{path}"
    return path


class RobotsRules(BaseModel):
    """Allow/Disallow path prefixes of the user-agent group selected for one crawler."""
    allow: List[str] = []
    disallow: List[str] = []
    sitemaps: List[str] = []

    @classmethod
    def allow_all(cls) -> "RobotsRules":
        return cls(allow=[""], disallow=[])

    def is_allowed(self, path: str) -> bool:
        """
        Longest matching Allow against longest matching Disallow; ties go to Allow.
        An empty Allow rule matches everything with length 0, an empty Disallow matches nothing.
        """
        path = path or "/"
        best_allow = -1
        best_disallow = -1
        for rule in self.allow:
            if not rule:
                best_allow = max(best_allow, 0)
            elif path.startswith(rule):
                best_allow = max(best_allow, len(rule))
        for rule in self.disallow:
            if rule and path.startswith(rule):
                best_disallow = max(best_disallow, len(rule))
        if best_disallow < 0:
            return True
        return best_allow >= best_disallow


def parse_robots(text: str, user_agent: str) -> RobotsRules:
    """
    Splits the document into user-agent groups (consecutive User-agent lines share
    one group) and returns the rules of the group whose agent name is contained in
    `user_agent`, falling back to `*`. Malformed lines are skipped.
    """
    groups: Dict[str, List[Tuple[bool, str]]] = {"*": []}
    current: List[str] = ["*"]
    in_agent_block = False
    sitemaps: List[str] = []

    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            agent = value.lower() or "*"
            if not in_agent_block:
                current = []
            current.append(agent)
            groups.setdefault(agent, [])
            in_agent_block = True
            continue

        in_agent_block = False
        if key in ("allow", "disallow"):
            for agent in current:
                groups[agent].append((key == "allow", normalize_rule_path(value)))
        elif key == "sitemap" and value:
            sitemaps.append(value)

    ua = user_agent.lower()
    selected: Optional[List[Tuple[bool, str]]] = None
    for agent, rules in groups.items():
        if agent != "*" and agent in ua:
            selected = rules
            break
    if selected is None:
        selected = groups["*"]

    return RobotsRules(
        allow=[path for is_allow, path in selected if is_allow],
        disallow=[path for is_allow, path in selected if not is_allow],
        sitemaps=sitemaps,
    )


def robots_url_for(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, "/robots.txt", "", ""))


class RobotsCache:
    """
    Run-scoped robots rules keyed by (host, user-agent). A per-key lock keeps
    concurrent workers from fetching the same robots document twice.
    """
    def __init__(self, fetcher: RetryingFetcher):
        self.fetcher = fetcher
        self._rules: Dict[Tuple[str, str], RobotsRules] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def _key(self, url: str, user_agent: str) -> Tuple[str, str]:
        return urlsplit(url).netloc.lower(), user_agent.lower()

    async def get_rules(self, url: str, user_agent: str) -> RobotsRules:
        key = self._key(url, user_agent)
        cached = self._rules.get(key)
        if cached is not None:
            return cached
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._rules.get(key)
            if cached is not None:
                return cached
            rules = await self._load(url, user_agent)
            self._rules[key] = rules
            return rules

    async def _load(self, url: str, user_agent: str) -> RobotsRules:
        robots_url = robots_url_for(url)
        try:
            response = await self.fetcher.get(robots_url, headers={"User-Agent": user_agent})
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Could not fetch {robots_url}, allowing all: {e}")
            return RobotsRules.allow_all()
        if response is None or response.status_code != 200:
            logger.debug(f"No robots policy at {robots_url}, allowing all")
            return RobotsRules.allow_all()
        rules = parse_robots(response.text, user_agent)
        logger.info(f"Loaded robots policy for {robots_url}: {len(rules.allow)} allow, {len(rules.disallow)} disallow")
        return rules

    async def is_allowed(self, url: str, user_agent: str) -> bool:
        rules = await self.get_rules(url, user_agent)
        return rules.is_allowed(urlsplit(url).path or "/")
