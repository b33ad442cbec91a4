import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import httpx

from ragcrawl.config import settings
from ragcrawl.exceptions import HttpStatusError, NetworkError, NetworkTimeout
from ragcrawl.utils.reporting import JobReporter

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = {429, 502, 503, 504}

RETRY_AFTER_MIN_MS, RETRY_AFTER_MAX_MS = 1000, 120000
RATE_RESET_MIN_MS, RATE_RESET_MAX_MS = 1000, 300000
EXP_MIN_MS, EXP_MAX_MS = 500, 15000


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def compute_backoff_ms(
    attempt: int,
    headers: Optional[Mapping[str, str]] = None,
    now: Optional[float] = None,
) -> int:
    """
    Delay before retry number `attempt` (1-based), in priority order:
    Retry-After seconds, then rate-limit reset time when the remaining quota is
    zero, then exponential backoff with jitter.
    """
    h = httpx.Headers(headers or {})

    retry_after = _parse_int(h.get("retry-after"))
    if retry_after is not None:
        return _clamp(retry_after * 1000, RETRY_AFTER_MIN_MS, RETRY_AFTER_MAX_MS)

    reset = _parse_int(h.get("x-ratelimit-reset"))
    if h.get("x-ratelimit-remaining", "").strip() == "0" and reset is not None:
        now = time.time() if now is None else now
        delta_ms = int((reset - now) * 1000)
        if delta_ms > 0:
            return _clamp(delta_ms, RATE_RESET_MIN_MS, RATE_RESET_MAX_MS)

    base = 500 * (2 ** (attempt - 1))
    jitter = int(base * 0.3) * ((attempt % 5) + 1)
    return _clamp(base + jitter, EXP_MIN_MS, EXP_MAX_MS)


def is_retryable(response: httpx.Response) -> bool:
    if response.status_code in RETRYABLE_STATUSES:
        return True
    # GitHub signals an exhausted quota with 403 and zero remaining
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


class RetryingFetcher:
    """
    Issues one outbound HTTP request at a time with a timeout, retrying rate-limited,
    transient (502/503/504), timed-out and connection-failed attempts with backoff.

    After `max_retries` retries the last response (or None when no response was
    ever received) is returned; callers decide whether that is fatal.
    """
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.user_agent = user_agent or settings.CRAWLER_USER_AGENT
        self.timeout = timeout if timeout is not None else settings.CRAWLER_REQUEST_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else settings.CRAWLER_MAX_RETRIES
        self._sleep = sleep
        self._clock = clock
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
            follow_redirects=True,
        )

    def _note(self, reporter: Optional[JobReporter], level: str, message: str) -> None:
        logger.log(logging.WARNING if level == "error" else logging.INFO, message)
        if reporter is not None:
            reporter.log(level, message)

    def _log_rate_limit(self, response: httpx.Response, url: str) -> None:
        remaining = _parse_int(response.headers.get("x-ratelimit-remaining"))
        if remaining is None or remaining > 100:
            return
        reset = _parse_int(response.headers.get("x-ratelimit-reset"))
        resets_in = f" (resets in {int(reset - self._clock())}s)" if reset is not None else ""
        logger.info(f"Rate limit remaining: {remaining}{resets_in} for {url}")

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]],
        json: Any,
        timeout: Optional[float],
        reporter: Optional[JobReporter],
    ) -> Tuple[Optional[httpx.Response], Optional[Exception]]:
        kwargs: Dict[str, Any] = {}
        if headers:
            kwargs["headers"] = headers
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self.client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                if attempt > self.max_retries:
                    self._note(reporter, "error", f"Request timeout after {attempt} attempts: {url}")
                    return None, e
                wait_ms = compute_backoff_ms(attempt, None, self._clock())
                self._note(reporter, "info", f"Timeout, retrying in {wait_ms}ms: {url}")
                await self._sleep(wait_ms / 1000.0)
                continue
            except httpx.RequestError as e:
                if attempt > self.max_retries:
                    self._note(reporter, "error", f"Request failed after {attempt} attempts: {url}: {e}")
                    return None, e
                wait_ms = compute_backoff_ms(attempt, None, self._clock())
                self._note(reporter, "info", f"Request error, retrying in {wait_ms}ms: {url}: {e}")
                await self._sleep(wait_ms / 1000.0)
                continue

            self._log_rate_limit(response, url)
            if not is_retryable(response):
                return response, None

            wait_ms = compute_backoff_ms(attempt, response.headers, self._clock())
            self._note(reporter, "info", f"HTTP backoff {wait_ms}ms for {url} (status {response.status_code})")
            if attempt > self.max_retries:
                return response, None
            await self._sleep(wait_ms / 1000.0)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
        reporter: Optional[JobReporter] = None,
    ) -> Optional[httpx.Response]:
        response, _ = await self._send(method, url, headers, json, timeout, reporter)
        return response

    async def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        reporter: Optional[JobReporter] = None,
    ) -> Optional[httpx.Response]:
        return await self.request("GET", url, headers=headers, timeout=timeout, reporter=reporter)

    async def get_ok(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        reporter: Optional[JobReporter] = None,
    ) -> httpx.Response:
        """Like `get`, but raises NetworkTimeout / NetworkError / HttpStatusError instead of returning failures."""
        response, error = await self._send("GET", url, headers, None, timeout, reporter)
        if response is None:
            if isinstance(error, httpx.TimeoutException):
                raise NetworkTimeout(url)
            raise NetworkError(url)
        if not response.is_success:
            raise HttpStatusError(response.status_code, url)
        return response

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
