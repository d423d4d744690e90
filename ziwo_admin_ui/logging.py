"""Logging setup for the Ziwo Admin UI.

Records pass through :class:`RedactSecretsFilter` so that an access token or
password that ends up in a message (for example inside an echoed request
URL or an API error body) is masked before it reaches any handler.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from .config import PROJECT_ROOT

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_LOG_FILE = PROJECT_ROOT / "logs" / "ziwo_admin_ui.log"

_SECRET_PATTERN = re.compile(
    r"(?P<key>access_token|password)"
    r"(?P<sep>['\"]?\s*[:=]\s*['\"]?)"
    r"(?P<value>[^'\"&,\s}]+)",
    re.IGNORECASE,
)


class RedactSecretsFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRET_PATTERN.sub(r"\g<key>\g<sep>***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _resolve_level() -> int:
    name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, name, logging.INFO)
    return level if isinstance(level, int) else logging.INFO


def _log_file_path() -> Path:
    configured = os.getenv("LOG_FILE")
    return Path(configured) if configured else DEFAULT_LOG_FILE


def configure_logging() -> logging.Logger:
    """Install stream and file handlers on the root logger.

    Existing root handlers are replaced, so calling this once per
    ``create_app()`` does not duplicate output.
    """
    level = _resolve_level()
    formatter = logging.Formatter(LOG_FORMAT)
    redactor = RedactSecretsFilter()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.addFilter(redactor)
    root.addHandler(console)

    log_file = _log_file_path()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as error:
        root.warning("Unable to open log file %s (%s)", log_file, error)
    else:
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        file_handler.addFilter(redactor)
        root.addHandler(file_handler)

    # urllib3 logs full request URLs at DEBUG.
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))

    return logging.getLogger("ziwo_admin_ui")
