import logging
import os
from typing import Optional

from ragcrawl.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False

def setup_logging(level: Optional[str] = None, log_path: Optional[str] = None) -> None:
    """
    Configures the root logger once: a console handler, plus a file handler
    under `log_path` when one is set.
    """
    global _configured
    if _configured:
        return

    level = (level or settings.LOG_LEVEL).upper()
    log_path = settings.LOG_PATH if log_path is None else log_path

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_path:
        os.makedirs(log_path, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_path, "ragcrawl.log"), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
