"""
SOL/USD price from Pyth Hermes.

FAIL CLOSED: if the feed cannot be read or parsed, raise UpstreamUnavailable.
There is no fabricated fallback price anywhere in the engine.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from ibrl.core.exceptions import UpstreamUnavailable
from ibrl.services.http import build_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    price: float
    conf: Optional[float] = None
    publish_time: Optional[int] = None
    source: str = "pyth"


class PythHermesOracle:
    def __init__(self, base_url: str, feed_id: str, timeout: float = 12, max_retries: int = 2,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.feed_id = feed_id
        self.timeout = timeout
        self.session = session or build_session(max_retries)

    def get_price(self) -> PriceQuote:
        url = f"{self.base_url}/v2/updates/price/latest"
        try:
            r = self.session.get(url, params={"ids[]": self.feed_id, "parsed": "true"}, timeout=self.timeout)
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[Oracle] Hermes request failed: {e}")
            raise UpstreamUnavailable("price_oracle", str(e)) from e

        try:
            entry = body["parsed"][0]["price"]
            expo = int(entry["expo"])
            price = int(entry["price"]) * (10 ** expo)
            conf = int(entry["conf"]) * (10 ** expo) if entry.get("conf") is not None else None
            publish_time = entry.get("publish_time")
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"[Oracle] Unexpected Hermes payload: {e}")
            raise UpstreamUnavailable("price_oracle", "malformed payload") from e

        if not math.isfinite(price) or price <= 0:
            raise UpstreamUnavailable("price_oracle", f"invalid price {price}")

        return PriceQuote(price=float(price), conf=conf, publish_time=publish_time, source="pyth")


class CachedPriceOracle:
    """TTL cache in front of any oracle. Failures are never cached."""

    def __init__(self, inner, ttl_seconds: float = 15, clock: Callable[[], float] = time.monotonic):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[PriceQuote] = None
        self._fetched_at = 0.0

    def get_price(self) -> PriceQuote:
        with self._lock:
            now = self._clock()
            if self._cached is not None and now - self._fetched_at < self.ttl_seconds:
                return self._cached
            quote = self.inner.get_price()
            self._cached = quote
            self._fetched_at = now
            return quote
