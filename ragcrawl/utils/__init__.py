"""
Utility functions
"""
from .logger import setup_logging
from .rate_limiter import HostThrottle
from .reporting import JobReporter, LoggingReporter, ProgressRange, CancellationToken
from .text_utils import normalize, chunk_text, estimate_tokens, sanitize_file_name

__all__ = [
    "setup_logging",
    "HostThrottle",
    "JobReporter",
    "LoggingReporter",
    "ProgressRange",
    "CancellationToken",
    "normalize",
    "chunk_text",
    "estimate_tokens",
    "sanitize_file_name",
]
