"""Central transport constants for talking to the GitHub REST API."""

from __future__ import annotations

import os

USER_AGENT = "gh-analytics/1.0"
BASE_URL = "https://api.github.com"
PER_PAGE = 100
MAX_PAGES = 50
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "90"))
BACKOFF_BASE_SEC = 2
MAX_WAIT_ON_403 = int(os.getenv("MAX_WAIT_ON_403", "180"))
MAX_RATE_LIMIT_RETRIES = int(os.getenv("MAX_RATE_LIMIT_RETRIES", "0"))  # 0 = fail fast

__all__ = [
    "USER_AGENT",
    "BASE_URL",
    "PER_PAGE",
    "MAX_PAGES",
    "REQUEST_TIMEOUT",
    "BACKOFF_BASE_SEC",
    "MAX_WAIT_ON_403",
    "MAX_RATE_LIMIT_RETRIES",
]
