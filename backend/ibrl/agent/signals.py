"""
Signal Detectors: autonomous, non-trigger proposals.

Each detector is a pure function of a SignalContext (balances, recent price
samples, recent signal proposals for the owner, now). It returns None or a
SignalDecision carrying a synthesized EXIT_TO_USDC intent, a human-readable
rationale and the numbers behind it.

Detectors never build, persist or gate anything themselves: the engine runs
the Policy Gate and Quote/Build/Simulate for every decision they return.
Money sizes are Decimal. Volatility statistics are floats (analytics only).
"""
import math
import statistics
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from typing import Callable, List, Optional, Sequence

from ibrl.core.clock import DAY_MS, HOUR_MS, MINUTE_MS
from ibrl.schemas.intent import Amount, Asset, ExitToUsdcIntent
from ibrl.schemas.payloads import ReportSignal
from ibrl.services.portfolio import WalletBalances

DRAWDOWN_HEDGE = "DRAWDOWN_HEDGE"
USDC_BUFFER = "USDC_BUFFER"
VOLATILITY_REDUCE = "VOLATILITY_REDUCE"

SIGNAL_SLIPPAGE_BPS = 50
LAMPORT = Decimal("0.000000001")
CENT = Decimal("0.01")

# Drawdown hedge
DRAWDOWN_WINDOW_MS = 12 * MINUTE_MS
DRAWDOWN_THRESHOLD = Decimal("0.03")
DRAWDOWN_COOLDOWN_MS = 30 * MINUTE_MS
DRAWDOWN_MIN_BALANCE_SOL = Decimal("0.06")
DRAWDOWN_FRACTION = Decimal("0.25")
DRAWDOWN_MAX_SOL = Decimal("0.25")
DRAWDOWN_MIN_SOL = Decimal("0.05")

# USDC buffer maintenance
BUFFER_MIN_SOL = Decimal("0.15")
BUFFER_TARGET_USDC = Decimal("2")
BUFFER_COOLDOWN_MS = 2 * HOUR_MS
BUFFER_ACTIVITY_WINDOW_MS = 7 * DAY_MS
BUFFER_FRACTION = Decimal("0.08")
BUFFER_MIN_SOL_SIZE = Decimal("0.02")
BUFFER_MAX_SOL_SIZE = Decimal("0.05")

# Volatility reduce-risk
VOLATILITY_WINDOW_MS = 30 * MINUTE_MS
VOLATILITY_MAX_SAMPLES = 500
VOLATILITY_MIN_SAMPLES = 12
VOLATILITY_MIN_RETURNS = 10
VOLATILITY_RANGE_PCT = 0.035
VOLATILITY_STDEV = 0.006
VOLATILITY_COOLDOWN_MS = 6 * HOUR_MS
VOLATILITY_MAX_USDC = Decimal("25")
VOLATILITY_MIN_SOL = Decimal("0.25")
VOLATILITY_FRACTION = Decimal("0.12")
VOLATILITY_MIN_SOL_SIZE = Decimal("0.05")
VOLATILITY_MAX_SOL_SIZE = Decimal("0.15")

# Longest lookback any detector needs, for callers loading history
MAX_COOLDOWN_MS = VOLATILITY_COOLDOWN_MS
MAX_WINDOW_MS = VOLATILITY_WINDOW_MS


@dataclass(frozen=True)
class RecentProposal:
    signal: Optional[str]
    created_at: int
    status: str


@dataclass
class SignalContext:
    owner: str
    balances: WalletBalances
    samples: Sequence  # PricePoint-like: .ts, .price; oldest first
    recent_proposals: Sequence[RecentProposal]
    now: int
    price: Optional[float] = None
    last_interaction_at: Optional[int] = None


@dataclass(frozen=True)
class SignalDecision:
    signal: str
    intent: ExitToUsdcIntent
    rationale: str
    metrics: dict = field(default_factory=dict)

    def to_report(self) -> ReportSignal:
        return ReportSignal(name=self.signal, rationale=self.rationale, metrics=self.metrics)


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def _in_cooldown(ctx: SignalContext, signal: str, cooldown_ms: int) -> bool:
    return any(
        p.signal == signal and ctx.now - p.created_at < cooldown_ms
        for p in ctx.recent_proposals
    )


def _window(ctx: SignalContext, window_ms: int) -> list:
    start = ctx.now - window_ms
    return [s for s in ctx.samples if start <= s.ts <= ctx.now]


def _exit(size_sol: Decimal) -> ExitToUsdcIntent:
    return ExitToUsdcIntent(
        amount=Amount(value=size_sol, unit=Asset.SOL),
        slippage_bps=SIGNAL_SLIPPAGE_BPS,
    )


def _valid_price(price) -> bool:
    return price is not None and math.isfinite(price) and price > 0


def detect_drawdown_hedge(ctx: SignalContext) -> Optional[SignalDecision]:
    """Fire when price has fallen >= 3% from the 12-minute high."""
    sol = ctx.balances.sol
    if sol < DRAWDOWN_MIN_BALANCE_SOL:
        return None
    if _in_cooldown(ctx, DRAWDOWN_HEDGE, DRAWDOWN_COOLDOWN_MS):
        return None

    prices = [s.price for s in _window(ctx, DRAWDOWN_WINDOW_MS) if _valid_price(s.price)]
    current = ctx.price if _valid_price(ctx.price) else (prices[-1] if prices else None)
    if current is None or not prices:
        return None

    high = Decimal(str(max(max(prices), current)))
    cur = Decimal(str(current))
    drawdown = (high - cur) / high
    if drawdown < DRAWDOWN_THRESHOLD:
        return None

    size = min(DRAWDOWN_MAX_SOL, sol * DRAWDOWN_FRACTION).quantize(CENT, rounding=ROUND_DOWN)
    size = max(size, DRAWDOWN_MIN_SOL)

    pct = (drawdown * 100).quantize(CENT)
    return SignalDecision(
        signal=DRAWDOWN_HEDGE,
        intent=_exit(size),
        rationale=(
            f"SOL is down {pct}% from its 12-minute high (${high} -> ${cur}). "
            f"Hedging {size} SOL into USDC."
        ),
        metrics={
            "window_minutes": DRAWDOWN_WINDOW_MS // MINUTE_MS,
            "max_price": float(high),
            "current_price": float(cur),
            "drawdown_pct": float(pct),
            "samples": len(prices),
        },
    )


def detect_usdc_buffer(ctx: SignalContext) -> Optional[SignalDecision]:
    """Keep a small USDC buffer for owners who are actively using the agent."""
    sol, usdc = ctx.balances.sol, ctx.balances.usdc
    if sol < BUFFER_MIN_SOL or usdc >= BUFFER_TARGET_USDC:
        return None
    if ctx.last_interaction_at is None or ctx.now - ctx.last_interaction_at > BUFFER_ACTIVITY_WINDOW_MS:
        return None
    if _in_cooldown(ctx, USDC_BUFFER, BUFFER_COOLDOWN_MS):
        return None

    size = _clamp(sol * BUFFER_FRACTION, BUFFER_MIN_SOL_SIZE, BUFFER_MAX_SOL_SIZE).quantize(LAMPORT, rounding=ROUND_DOWN)
    return SignalDecision(
        signal=USDC_BUFFER,
        intent=_exit(size),
        rationale=(
            f"USDC balance is {usdc.normalize():f}, below the {BUFFER_TARGET_USDC} buffer. "
            f"Converting {size.normalize():f} SOL to keep fees and small buys covered."
        ),
        metrics={
            "sol_balance": float(sol),
            "usdc_balance": float(usdc),
            "target_usdc": float(BUFFER_TARGET_USDC),
        },
    )


def volatility_stats(samples: Sequence) -> Optional[dict]:
    """Log-return stdev and range over a sample window, or None when there is too little data."""
    recent = list(samples)[-VOLATILITY_MAX_SAMPLES:]
    if len(recent) < VOLATILITY_MIN_SAMPLES:
        return None

    prices = [s.price for s in recent if _valid_price(s.price)]
    returns = [math.log(b / a) for a, b in zip(prices, prices[1:])]
    if len(returns) < VOLATILITY_MIN_RETURNS:
        return None

    low, high = min(prices), max(prices)
    return {
        "samples": len(recent),
        "returns": len(returns),
        "stdev_log_return": statistics.stdev(returns),
        "range_pct": (high - low) / low,
        "min_price": low,
        "max_price": high,
    }


def detect_volatility_spike(ctx: SignalContext) -> Optional[SignalDecision]:
    """Reduce risk when the last 30 minutes were both wide-ranging and choppy."""
    sol, usdc = ctx.balances.sol, ctx.balances.usdc
    if usdc >= VOLATILITY_MAX_USDC or sol < VOLATILITY_MIN_SOL:
        return None
    if _in_cooldown(ctx, VOLATILITY_REDUCE, VOLATILITY_COOLDOWN_MS):
        return None

    stats = volatility_stats(_window(ctx, VOLATILITY_WINDOW_MS))
    if stats is None:
        return None
    # Both must hold: a single outlier tick widens the range without lifting stdev
    if stats["range_pct"] < VOLATILITY_RANGE_PCT or stats["stdev_log_return"] < VOLATILITY_STDEV:
        return None

    size = _clamp(sol * VOLATILITY_FRACTION, VOLATILITY_MIN_SOL_SIZE, VOLATILITY_MAX_SOL_SIZE).quantize(LAMPORT, rounding=ROUND_DOWN)
    return SignalDecision(
        signal=VOLATILITY_REDUCE,
        intent=_exit(size),
        rationale=(
            f"SOL swung {stats['range_pct'] * 100:.2f}% over 30 minutes "
            f"(log-return stdev {stats['stdev_log_return']:.4f}). "
            f"Reducing exposure by {size.normalize():f} SOL."
        ),
        metrics={
            "window_minutes": VOLATILITY_WINDOW_MS // MINUTE_MS,
            "stdev_log_return": round(stats["stdev_log_return"], 6),
            "range_pct": round(stats["range_pct"], 6),
            "samples": stats["samples"],
            "returns": stats["returns"],
        },
    )


DETECTORS: List[Callable[[SignalContext], Optional[SignalDecision]]] = [
    detect_drawdown_hedge,
    detect_usdc_buffer,
    detect_volatility_spike,
]
