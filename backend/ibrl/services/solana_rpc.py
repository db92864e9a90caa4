"""
Solana JSON-RPC client: balance reads and transaction simulation.

Reads and simulations are side-effect free, so the session retries them.
Nothing here signs or sends a transaction.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ibrl.core.exceptions import UpstreamUnavailable
from ibrl.schemas.payloads import SimulationResult
from ibrl.services.http import build_session

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


@dataclass(frozen=True)
class TokenBalance:
    amount_base_units: int
    decimals: int


class SolanaRpcClient:
    def __init__(self, rpc_url: str, timeout: float = 12, max_retries: int = 2,
                 session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or build_session(max_retries, allowed_methods=("GET", "POST"))
        self._next_id = 0

    def _call(self, method: str, params: list) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        try:
            r = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[SolanaRPC] {method} failed: {e}")
            raise UpstreamUnavailable("solana_rpc", f"{method}: {e}") from e

        if body.get("error"):
            logger.warning(f"[SolanaRPC] {method} returned error: {body['error']}")
            raise UpstreamUnavailable("solana_rpc", f"{method}: {body['error'].get('message', body['error'])}")
        return body.get("result")

    def get_native_balance(self, owner: str) -> int:
        result = self._call("getBalance", [owner, {"commitment": "confirmed"}])
        return int(result["value"])

    def get_token_balance(self, owner: str, mint: str) -> Optional[TokenBalance]:
        """Sum of all token accounts for mint. None when the owner holds no account."""
        result = self._call(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": "confirmed"}],
        )
        accounts = result.get("value") or []
        if not accounts:
            return None

        total = 0
        decimals = 0
        for account in accounts:
            amount = account["account"]["data"]["parsed"]["info"]["tokenAmount"]
            total += int(amount["amount"])
            decimals = int(amount["decimals"])
        return TokenBalance(amount_base_units=total, decimals=decimals)

    def simulate(self, tx_base64: str) -> SimulationResult:
        result = self._call(
            "simulateTransaction",
            [
                tx_base64,
                {
                    "encoding": "base64",
                    "sigVerify": False,
                    "replaceRecentBlockhash": True,
                    "commitment": "processed",
                },
            ],
        )
        value = (result or {}).get("value") or {}
        err = value.get("err")
        return SimulationResult(
            ok=err is None,
            err=err,
            logs=value.get("logs") or [],
            units_consumed=value.get("unitsConsumed"),
        )
