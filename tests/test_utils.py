import logging
import threading

import pytest

from ragcrawl.utils import logger as logger_module
from ragcrawl.utils.rate_limiter import HostThrottle
from ragcrawl.utils.reporting import CancellationToken, LoggingReporter, ProgressRange


def test_logging_reporter_prefixes_job_id(caplog):
    reporter = LoggingReporter("job-7")
    with caplog.at_level(logging.INFO, logger="ragcrawl.utils.reporting"):
        reporter.log("warning", "Skipping page")
    assert "Job job-7: Skipping page" in caplog.text
    assert caplog.records[-1].levelno == logging.WARNING


def test_logging_reporter_progress_never_goes_backwards():
    reporter = LoggingReporter()
    reporter.report(40)
    reporter.report(25)
    reporter.report(150)
    assert reporter.progress == 100


def test_progress_range_maps_into_sub_range(reporter):
    progress = ProgressRange(reporter, 70, 99)
    assert progress.scale(0, 4) == 70
    assert progress.scale(1, 2) == 84
    assert progress.scale(4, 4) == 99
    assert progress.scale(9, 4) == 99
    assert progress.update(3, 0) == 99
    assert reporter.progress == [99]


def test_progress_range_rejects_invalid_bounds(reporter):
    with pytest.raises(ValueError):
        ProgressRange(reporter, 80, 70)
    with pytest.raises(ValueError):
        ProgressRange(reporter, 0, 101)


def test_cancellation_token_can_be_set_from_another_thread():
    token = CancellationToken()
    assert not token.cancelled
    thread = threading.Thread(target=token.cancel)
    thread.start()
    thread.join()
    assert token.cancelled


@pytest.mark.asyncio
async def test_host_throttle_spaces_same_host_requests(fake_clock):
    throttle = HostThrottle(clock=fake_clock, sleep=fake_clock.sleep)

    async with throttle.slot("a.test", 500):
        pass
    async with throttle.slot("a.test", 500):
        pass
    async with throttle.slot("b.test", 500):
        pass

    assert fake_clock.sleeps == [0.5]
    assert throttle.last_request_at("a.test") == fake_clock.now


@pytest.mark.asyncio
async def test_host_throttle_only_waits_for_remaining_delay(fake_clock):
    throttle = HostThrottle(clock=fake_clock, sleep=fake_clock.sleep)

    async with throttle.slot("a.test", 500):
        pass
    fake_clock.now += 0.3
    async with throttle.slot("a.test", 500):
        pass
    fake_clock.now += 2
    async with throttle.slot("a.test", 500):
        pass

    assert fake_clock.sleeps == [pytest.approx(0.2)]


@pytest.mark.asyncio
async def test_host_throttle_records_time_even_when_request_fails(fake_clock):
    throttle = HostThrottle(clock=fake_clock, sleep=fake_clock.sleep)

    with pytest.raises(RuntimeError):
        async with throttle.slot("a.test", 100):
            raise RuntimeError("boom")

    assert throttle.last_request_at("a.test") == fake_clock.now


@pytest.fixture
def fresh_root_logger(monkeypatch):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    monkeypatch.setattr(logger_module, "_configured", False)
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_setup_logging_adds_file_handler_once(fresh_root_logger, tmp_path):
    before = len(fresh_root_logger.handlers)

    logger_module.setup_logging("debug", str(tmp_path / "logs"))
    logger_module.setup_logging("debug", str(tmp_path / "logs"))

    assert len(fresh_root_logger.handlers) == before + 2
    assert fresh_root_logger.level == logging.DEBUG
    assert (tmp_path / "logs" / "ragcrawl.log").exists()
    assert logging.getLogger("httpx").level == logging.WARNING
