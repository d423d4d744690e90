"""Configuration constants and environment bootstrap utilities."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv  # type: ignore[import-not-found]

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent
ENV_PATH = PROJECT_ROOT / ".env"

DEFAULT_PLATFORM_DOMAIN = "aswat.co"
DEFAULT_PAGE_SIZE = 50
ZIWO_TIMEOUT = 90  # seconds
DEFAULT_DATETIME_FORMAT = "%c"
EXPORT_JOB_TTL = 1800
SESSION_KEY = "ziwo"


def load_environment() -> None:
    """Load variables from the optional project-level ``.env`` file."""
    if ENV_PATH.exists():
        load_dotenv(dotenv_path=ENV_PATH)
    else:
        logging.getLogger(__name__).warning("Missing .env file at %s", ENV_PATH)


def platform_domain() -> str:
    raw = str(os.getenv("ZIWO_PLATFORM_DOMAIN") or "").strip().strip(".")
    return raw or DEFAULT_PLATFORM_DOMAIN


def request_timeout() -> float:
    raw = os.getenv("ZIWO_TIMEOUT")
    if not raw:
        return ZIWO_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring invalid ZIWO_TIMEOUT=%r; using %s seconds", raw, ZIWO_TIMEOUT
        )
        return ZIWO_TIMEOUT
    return value if value > 0 else ZIWO_TIMEOUT


def datetime_format() -> str:
    return os.getenv("ZIWO_DATETIME_FORMAT") or DEFAULT_DATETIME_FORMAT
