"""
security_engine/http_client.py

Shared requests plumbing for the HTTP-backed scanners.

Every scanner owns its own Session so no connection state is shared between
concurrently running scanner threads. Retries are a fixed count with a small
backoff on server errors; there is no adaptive rate limiting.
"""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

RETRY_MAX = 3
RETRY_BACKOFF = 0.5
RETRY_STATUSES = (500, 502, 503, 504)

USER_AGENT = "depguard/0.1.0"


def build_session(retries: int = RETRY_MAX) -> requests.Session:
    """Return a Session that retries idempotent and POST calls on 5xx."""
    retry = Retry(
        total=retries,
        backoff_factor=RETRY_BACKOFF,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET", "POST"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)

    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    })
    return session


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
