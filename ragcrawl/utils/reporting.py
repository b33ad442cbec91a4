"""
The narrow job-facing interfaces the core depends on: a reporter for log lines and
progress, and a cancellation token polled at defined points.
"""
import logging
import threading
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class JobReporter(Protocol):
    def log(self, level: str, message: str) -> None:
        ...

    def report(self, percent: int) -> None:
        ...


class LoggingReporter:
    """
    Default reporter: forwards log lines to `logging` and keeps the highest
    progress value seen, so progress never moves backwards.
    """
    def __init__(self, job_id: Optional[str] = None, log: Optional[logging.Logger] = None):
        self.job_id = job_id
        self.progress = 0
        self._logger = log or logger

    def log(self, level: str, message: str) -> None:
        prefix = f"Job {self.job_id}: " if self.job_id else ""
        self._logger.log(_LEVELS.get(level.lower(), logging.INFO), f"{prefix}{message}")

    def report(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        if percent > self.progress:
            self.progress = percent


class ProgressRange:
    """Maps a done/total fraction into the [start, end] sub-range the caller owns."""

    def __init__(self, reporter: JobReporter, start: int, end: int):
        if not 0 <= start <= end <= 100:
            raise ValueError(f"Invalid progress range {start}..{end}")
        self.reporter = reporter
        self.start = start
        self.end = end

    def scale(self, done: int, total: int) -> int:
        fraction = min(1.0, done / max(1, total))
        return self.start + int(fraction * (self.end - self.start))

    def update(self, done: int, total: int) -> int:
        percent = self.scale(done, total)
        self.reporter.report(percent)
        return percent


class CancellationToken:
    """Run-scoped cancellation flag; safe to set from another thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
