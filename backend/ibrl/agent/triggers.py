"""Trigger / schedule evaluation for standing automations."""
from decimal import Decimal
from typing import Optional, assert_never

from ibrl.core.clock import MINUTE_MS
from ibrl.schemas.intent import (
    ChatIntent,
    DcaSwapIntent,
    ExitToUsdcIntent,
    PortfolioQaIntent,
    PriceTriggerEntryIntent,
    PriceTriggerExitIntent,
    SwapIntent,
    UnsupportedIntent,
)

PRICE_TRIGGER_THROTTLE_MS = 15 * MINUTE_MS


def automation_due(intent, last_fired_at: Optional[int], price: Optional[float], now: int) -> bool:
    """
    Whether an ACTIVE automation's condition holds at `now`.

    Price triggers: price <= threshold, and never fired or fired >= 15 min ago.
    DCA: never fired, or fired >= intervalMinutes ago.
    The pending-proposal check is the engine's job.
    """
    match intent:
        case PriceTriggerExitIntent() | PriceTriggerEntryIntent():
            if price is None:
                return False
            if Decimal(str(price)) > intent.threshold_usd:
                return False
            return last_fired_at is None or now - last_fired_at >= PRICE_TRIGGER_THROTTLE_MS
        case DcaSwapIntent():
            return last_fired_at is None or now - last_fired_at >= intent.interval_minutes * MINUTE_MS
        case SwapIntent() | ExitToUsdcIntent() | ChatIntent() | PortfolioQaIntent() | UnsupportedIntent():
            return False
        case _:
            assert_never(intent)
