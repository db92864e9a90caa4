"""
Decision report: the human-facing audit record attached to every proposal.

Captures what was checked (policy, simulation), what the quote says in human
units, the risks, two price-move scenarios and, for autonomous proposals,
the signal and the numbers that fired it. Rendered to Markdown as well.
"""
from decimal import Decimal
from typing import List, Optional, assert_never

from ibrl.agent.policy import PolicyResult, swap_pair
from ibrl.agent.units import format_base_units, from_base_units
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
from ibrl.schemas.payloads import (
    CheckResult,
    DecisionReport,
    ProposalHeader,
    QuoteSnapshot,
    ReportChecks,
    ReportQuote,
    ReportSignal,
    Scenario,
    SimulationResult,
)

HIGH_SLIPPAGE_BPS = 75
SCENARIO_MOVES_PCT = (-1, 1)


def _amt(intent) -> str:
    return f"{intent.amount.value.normalize():f} {intent.amount.unit.value}"


def build_summary(intent) -> str:
    match intent:
        case SwapIntent():
            return f"Swap {_amt(intent)} to {intent.to_asset.value}"
        case ExitToUsdcIntent():
            return f"Exit {_amt(intent)} to USDC"
        case PriceTriggerExitIntent():
            return f"Sell {_amt(intent)} to USDC when SOL <= ${intent.threshold_usd.normalize():f}"
        case PriceTriggerEntryIntent():
            return f"Buy SOL with {_amt(intent)} when SOL <= ${intent.threshold_usd.normalize():f}"
        case DcaSwapIntent():
            return f"DCA {_amt(intent)} to {intent.to_asset.value} every {intent.interval_minutes} min"
        case ChatIntent():
            return "Chat"
        case PortfolioQaIntent():
            return "Portfolio question"
        case UnsupportedIntent():
            return f"Unsupported: {intent.reason}"
        case _:
            assert_never(intent)


def _report_quote(quote: QuoteSnapshot, sell: Asset, buy: Asset) -> ReportQuote:
    return ReportQuote(
        from_asset=sell.value,
        to_asset=buy.value,
        in_human=format_base_units(quote.in_amount, sell),
        out_human=format_base_units(quote.out_amount, buy),
        min_out_human=format_base_units(quote.min_out_amount, buy) if quote.min_out_amount is not None else None,
        price_impact_pct=quote.price_impact_pct,
        slippage_bps=quote.slippage_bps,
        route=quote.route,
    )


def _risks(slippage_bps: int, simulation: SimulationResult) -> List[str]:
    risks = [
        "Price can move between simulation and send.",
        "The route may change by the time the transaction is sent.",
        "Simulation ran at processed commitment; on-chain state can change before confirmation.",
    ]
    if slippage_bps >= HIGH_SLIPPAGE_BPS:
        risks.append(f"High slippage tolerance ({slippage_bps} bps).")
    if not simulation.ok:
        risks.append(f"Simulation failed ({simulation.err}): do not send.")
    return risks


def _scenarios(quote: QuoteSnapshot, sell: Asset, buy: Asset) -> List[Scenario]:
    """Rough output at send time if SOL/USD moves by each percentage."""
    out = from_base_units(quote.out_amount, buy)
    scenarios = []
    for pct in SCENARIO_MOVES_PCT:
        factor = 1 + Decimal(pct) / 100
        # Selling SOL scales USDC out with price; buying SOL scales inversely
        moved = out * factor if sell == Asset.SOL else out / factor
        places = Decimal("0.000001") if buy == Asset.SOL else Decimal("0.01")
        scenarios.append(Scenario(
            if_price_moves_pct=pct,
            note=f"Output would be about {moved.quantize(places)} {buy.value}",
        ))
    return scenarios


def _markdown(report: DecisionReport) -> str:
    lines = [
        f"## {report.proposal.summary}",
        "",
        f"- Policy: {'pass' if report.checks.policy.ok else 'FAIL: ' + (report.checks.policy.reason or '')}",
        f"- Simulation: {'pass' if report.checks.simulation.ok else 'FAIL: ' + str(report.checks.simulation.err)}",
    ]
    if report.quote:
        q = report.quote
        lines.append(f"- Quote: {q.in_human} -> {q.out_human}")
        if q.min_out_human:
            lines.append(f"- Minimum out: {q.min_out_human} ({q.slippage_bps} bps slippage)")
        if q.price_impact_pct is not None:
            lines.append(f"- Price impact: {q.price_impact_pct}%")
        if q.route and q.route.venues:
            lines.append(f"- Route: {' / '.join(q.route.venues)} ({q.route.hop_count} hop(s))")
    if report.signal:
        lines += ["", f"### Why: {report.signal.name}", report.signal.rationale]
    if report.risks:
        lines += ["", "### Risks"] + [f"- {r}" for r in report.risks]
    if report.scenarios:
        lines += ["", "### Scenarios"] + [
            f"- SOL {s.if_price_moves_pct:+d}%: {s.note}" for s in report.scenarios
        ]
    lines += ["", f"**Sendable:** {'yes' if report.sendable else 'no'}"]
    return "\n".join(lines)


def build_decision_report(
    owner: str,
    prompt: str,
    intent,
    policy: PolicyResult,
    quote: Optional[QuoteSnapshot],
    simulation: SimulationResult,
    now: int,
    signal: Optional[ReportSignal] = None,
) -> DecisionReport:
    pair = swap_pair(intent)
    report_quote = None
    scenarios: List[Scenario] = []
    if quote is not None and pair is not None:
        sell, buy = pair
        report_quote = _report_quote(quote, sell, buy)
        scenarios = _scenarios(quote, sell, buy)

    slippage = getattr(intent, "slippage_bps", 0)
    report = DecisionReport(
        generated_at=now,
        owner=owner,
        prompt=prompt,
        proposal=ProposalHeader(kind=intent.kind, summary=build_summary(intent)),
        checks=ReportChecks(
            policy=CheckResult(ok=policy.ok, reason=policy.reason),
            simulation=CheckResult(ok=simulation.ok, err=simulation.err),
        ),
        quote=report_quote,
        signal=signal,
        risks=_risks(slippage, simulation),
        scenarios=scenarios,
        sendable=policy.ok and simulation.ok,
        markdown="",
    )
    return report.model_copy(update={"markdown": _markdown(report)})
