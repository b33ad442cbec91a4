import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

class HostThrottle:
    """
    Per-host politeness for one crawl run.

    Requests to the same host are serialized by a per-host lock and spaced by at
    least `delay_ms` measured from the end of the previous request to that host.
    The lock map and timestamp map are created lazily under a shared lock so two
    workers racing on a new host end up with the same lock.
    """
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._host_locks: Dict[str, asyncio.Lock] = {}
        self._last_request: Dict[str, float] = {}
        self._registry_lock = asyncio.Lock()

    async def _lock_for(self, host: str) -> asyncio.Lock:
        async with self._registry_lock:
            lock = self._host_locks.get(host)
            if lock is None:
                lock = asyncio.Lock()
                self._host_locks[host] = lock
            return lock

    def last_request_at(self, host: str) -> Optional[float]:
        return self._last_request.get(host)

    @asynccontextmanager
    async def slot(self, host: str, delay_ms: int) -> AsyncIterator[None]:
        """Holds the host lock for the duration of one request."""
        lock = await self._lock_for(host)
        async with lock:
            last = self._last_request.get(host)
            if last is not None and delay_ms > 0:
                remaining = delay_ms / 1000.0 - (self._clock() - last)
                if remaining > 0:
                    logger.debug(f"Waiting {remaining:.3f}s before next request to {host}")
                    await self._sleep(remaining)
            try:
                yield
            finally:
                self._last_request[host] = self._clock()
