"""
Jupiter swap API (v1) adapter: quote + build.

Jupiter picks the route; we only record a summary of it. Both calls return
None on any failure so the engine can treat them as a soft skip.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from ibrl.schemas.payloads import QuoteSnapshot, RouteSummary
from ibrl.services.http import build_session

logger = logging.getLogger(__name__)

MAX_ROUTE_VENUES = 6


@dataclass(frozen=True)
class Quote:
    snapshot: QuoteSnapshot
    raw: dict


@dataclass(frozen=True)
class BuiltSwap:
    tx_base64: str


def summarize_route(route_plan) -> Optional[RouteSummary]:
    if not isinstance(route_plan, list):
        return None
    venues = []
    for hop in route_plan:
        label = (hop.get("swapInfo") or {}).get("label") if isinstance(hop, dict) else None
        if label and label not in venues:
            venues.append(label)
    return RouteSummary(hop_count=len(route_plan), venues=venues[:MAX_ROUTE_VENUES])


class JupiterSwapRouter:
    def __init__(self, base_url: str, timeout: float = 12, max_retries: int = 2,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or build_session(max_retries)

    def quote(self, input_mint: str, output_mint: str, amount_base_units: int, slippage_bps: int) -> Optional[Quote]:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount_base_units),
            "slippageBps": str(slippage_bps),
        }
        try:
            r = self.session.get(f"{self.base_url}/quote", params=params, timeout=self.timeout)
            r.raise_for_status()
            raw = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[Jupiter] Quote failed: {e}")
            return None

        try:
            threshold = raw.get("otherAmountThreshold")
            snapshot = QuoteSnapshot(
                input_mint=raw["inputMint"],
                output_mint=raw["outputMint"],
                in_amount=int(raw["inAmount"]),
                out_amount=int(raw["outAmount"]),
                min_out_amount=int(threshold) if threshold is not None else None,
                price_impact_pct=str(raw["priceImpactPct"]) if raw.get("priceImpactPct") is not None else None,
                slippage_bps=int(raw.get("slippageBps", slippage_bps)),
                route=summarize_route(raw.get("routePlan")),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"[Jupiter] Unexpected quote payload: {e}")
            return None

        return Quote(snapshot=snapshot, raw=raw)

    def build(self, quote: Quote, owner: str) -> Optional[BuiltSwap]:
        payload = {
            "quoteResponse": quote.raw,
            "userPublicKey": owner,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
        }
        try:
            r = self.session.post(f"{self.base_url}/swap", json=payload, timeout=self.timeout)
            r.raise_for_status()
            tx = r.json().get("swapTransaction")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[Jupiter] Swap build failed: {e}")
            return None

        if not tx:
            logger.warning("[Jupiter] Swap build returned no transaction")
            return None
        return BuiltSwap(tx_base64=tx)
