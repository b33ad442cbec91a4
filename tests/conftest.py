import httpx
import pytest

from ragcrawl.core.fetcher import RetryingFetcher


class RecordingReporter:
    """JobReporter that keeps every log line and progress value for assertions."""

    def __init__(self):
        self.logs = []
        self.progress = []

    def log(self, level, message):
        self.logs.append((level, message))

    def report(self, percent):
        self.progress.append(percent)

    def messages(self, level=None):
        return [m for lvl, m in self.logs if level is None or lvl == level]


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


async def no_sleep(seconds):
    return None


def make_fetcher(handler, max_retries=2, sleep=no_sleep, clock=None, **kwargs):
    """RetryingFetcher over an in-process httpx.MockTransport."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    if clock is not None:
        kwargs["clock"] = clock
    return RetryingFetcher(client=client, max_retries=max_retries, sleep=sleep, **kwargs)


def html_page(title, body, links=()):
    anchors = "".join(f'<a href="{href}">link</a>' for href in links)
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><nav>{anchors}</nav><main><h1>{title}</h1><p>{body}</p></main></body></html>"
    )


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def fake_clock():
    return FakeClock()
