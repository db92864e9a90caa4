"""Live wallet balances and the deterministic portfolio answer."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ibrl.agent.units import USDC_MINT, format_base_units, from_base_units
from ibrl.schemas.intent import Asset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletBalances:
    lamports: int
    usdc_base_units: int

    def base_units(self, asset: Asset) -> int:
        return self.lamports if Asset(asset) == Asset.SOL else self.usdc_base_units

    @property
    def sol(self) -> Decimal:
        return from_base_units(self.lamports, Asset.SOL)

    @property
    def usdc(self) -> Decimal:
        return from_base_units(self.usdc_base_units, Asset.USDC)


def read_balances(chain, owner: str) -> WalletBalances:
    """Read SOL + USDC for an owner. A wallet with no USDC account holds zero USDC."""
    lamports = chain.get_native_balance(owner)
    token = chain.get_token_balance(owner, USDC_MINT)
    usdc = token.amount_base_units if token is not None else 0
    return WalletBalances(lamports=int(lamports), usdc_base_units=int(usdc))


def portfolio_snapshot(owner: str, balances: WalletBalances, price: Optional[float]) -> dict:
    snapshot = {
        "owner": owner,
        "sol": format_base_units(balances.lamports, Asset.SOL),
        "usdc": format_base_units(balances.usdc_base_units, Asset.USDC),
        "lamports": balances.lamports,
        "usdc_base_units": balances.usdc_base_units,
        "sol_usd": price,
        "total_usd": None,
    }
    if price is not None:
        total = balances.sol * Decimal(str(price)) + balances.usdc
        snapshot["total_usd"] = f"{total.quantize(Decimal('0.01'))}"
    return snapshot


def portfolio_answer(snapshot: dict) -> str:
    lines = [
        f"Wallet {snapshot['owner'][:4]}...{snapshot['owner'][-4:]}",
        f"- SOL: {snapshot['sol']}",
        f"- USDC: {snapshot['usdc']}",
    ]
    if snapshot["sol_usd"] is not None:
        lines.append(f"- SOL/USD: ${snapshot['sol_usd']:.2f}")
        lines.append(f"- Estimated value: ${snapshot['total_usd']}")
    else:
        lines.append("- SOL/USD: unavailable")
    return "\n".join(lines)
