"""
Policy Gate: every intent passes here before anything is built.

Runs at arm time AND again at fire/refresh time with freshly read balances:
an automation that was affordable when armed may not be affordable now.

Spend rule: requested base units must not exceed 95% of the live balance of
the asset being sold. Compared as integers (requested * 100 <= balance * 95).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple, assert_never

from ibrl.agent.units import to_base_units
from ibrl.core.exceptions import InsufficientFundsError, ValidationError
from ibrl.schemas.intent import (
    Asset,
    ChatIntent,
    DcaSwapIntent,
    ExitToUsdcIntent,
    PortfolioQaIntent,
    PriceTriggerEntryIntent,
    PriceTriggerExitIntent,
    SwapIntent,
    UnsupportedIntent,
)
from ibrl.services.portfolio import WalletBalances

logger = logging.getLogger(__name__)

MAX_SLIPPAGE_BPS = 100
MIN_THRESHOLD_USD = Decimal("1")
MAX_THRESHOLD_USD = Decimal("10000")
SAFE_SPEND_PCT = 95
SUPPORTED_ASSETS = frozenset({Asset.SOL, Asset.USDC})


@dataclass(frozen=True)
class PolicyResult:
    ok: bool
    reason: Optional[str] = None
    asset: Optional[Asset] = None
    requested_base_units: Optional[int] = None
    spendable_base_units: Optional[int] = None

    @property
    def insufficient_funds(self) -> bool:
        return self.requested_base_units is not None and not self.ok

    @property
    def shortfall_base_units(self) -> int:
        if not self.insufficient_funds:
            return 0
        return self.requested_base_units - self.spendable_base_units


PASS = PolicyResult(ok=True)


def swap_pair(intent) -> Optional[Tuple[Asset, Asset]]:
    """(sell, buy) assets for a monetary intent, None for conversational kinds."""
    match intent:
        case SwapIntent() | DcaSwapIntent():
            return intent.from_asset, intent.to_asset
        case PriceTriggerEntryIntent():
            return Asset.USDC, Asset.SOL
        case ExitToUsdcIntent() | PriceTriggerExitIntent():
            return Asset.SOL, Asset.USDC
        case ChatIntent() | PortfolioQaIntent() | UnsupportedIntent():
            return None
        case _:
            assert_never(intent)


def check_policy(owner: Optional[str], intent, balances: Optional[WalletBalances]) -> PolicyResult:
    """Pure gate. Returns a PolicyResult instead of raising."""
    match intent:
        case ChatIntent() | PortfolioQaIntent():
            return PASS
        case UnsupportedIntent():
            return PolicyResult(ok=False, reason=intent.reason)
        case SwapIntent() | ExitToUsdcIntent() | PriceTriggerExitIntent() | PriceTriggerEntryIntent() | DcaSwapIntent():
            pass
        case _:
            assert_never(intent)

    if not owner:
        return PolicyResult(ok=False, reason="Wallet not connected")

    if intent.slippage_bps > MAX_SLIPPAGE_BPS:
        return PolicyResult(ok=False, reason=f"Slippage too high (max {MAX_SLIPPAGE_BPS} bps)")

    sell, buy = swap_pair(intent)
    if sell not in SUPPORTED_ASSETS or buy not in SUPPORTED_ASSETS:
        return PolicyResult(ok=False, reason="Only SOL and USDC are supported")
    if sell == buy:
        return PolicyResult(ok=False, reason="Swap assets must differ")
    if intent.amount.unit != sell:
        return PolicyResult(
            ok=False,
            reason=f"Amount unit {intent.amount.unit.value} must match the asset being sold ({sell.value})",
        )

    if isinstance(intent, (PriceTriggerExitIntent, PriceTriggerEntryIntent)):
        if intent.threshold_usd < MIN_THRESHOLD_USD or intent.threshold_usd > MAX_THRESHOLD_USD:
            return PolicyResult(ok=False, reason="Threshold out of bounds")

    requested = to_base_units(intent.amount.value, sell)
    if requested <= 0:
        return PolicyResult(ok=False, reason="Amount is below one base unit")

    if balances is None:
        return PolicyResult(ok=False, reason="Live balances unavailable")

    balance = balances.base_units(sell)
    spendable = balance * SAFE_SPEND_PCT // 100
    if requested * 100 > balance * SAFE_SPEND_PCT:
        return PolicyResult(
            ok=False,
            reason=(
                f"Requested {intent.amount.value} {sell.value} exceeds safe spend "
                f"({SAFE_SPEND_PCT}% of balance)"
            ),
            asset=sell,
            requested_base_units=requested,
            spendable_base_units=spendable,
        )

    return PASS


def enforce_policy(owner: Optional[str], intent, balances: Optional[WalletBalances]) -> PolicyResult:
    """Raising variant used on every build path."""
    result = check_policy(owner, intent, balances)
    if result.ok:
        return result
    if result.insufficient_funds:
        logger.info(
            f"[Policy] Insufficient funds for {owner}: {result.asset.value} "
            f"requested={result.requested_base_units} spendable={result.spendable_base_units}"
        )
        raise InsufficientFundsError(
            result.asset.value, result.requested_base_units, result.spendable_base_units
        )
    raise ValidationError(result.reason)
