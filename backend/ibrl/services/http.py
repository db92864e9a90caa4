"""Shared requests.Session factory for outbound collaborators.

Every call carries a bounded timeout; idempotent reads are retried by urllib3
with a short backoff. The engine itself never retries.
"""
from typing import Iterable

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

RETRY_STATUSES = (429, 500, 502, 503, 504)


def build_session(max_retries: int = 2, allowed_methods: Iterable[str] = ("GET",)) -> requests.Session:
    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        backoff_factor=0.3,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset(m.upper() for m in allowed_methods),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"Accept": "application/json", "User-Agent": "ibrl-agent/0.1"})
    return session
