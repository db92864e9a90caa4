"""
Proposal Builder: gate -> quote -> build -> simulate -> decision report.

================================================================================
THIS MODULE BUILDS DRAFTS, NOT EXECUTIONS
================================================================================

Nothing here signs or sends. The output is a ProposalDraft that the engine
persists as PENDING_APPROVAL; the owner signs in-wallet after reviewing it.

Failure semantics:
- Policy violation        -> ValidationError / InsufficientFundsError (raised)
- No quote / no build     -> UpstreamUnavailable (soft; skip this cycle)
- simulate() raised       -> UpstreamUnavailable (soft; skip this cycle)
- simulate() returned err -> draft is still produced, report marks it unsendable

A draft is only ever returned fully built and simulated.
================================================================================
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ibrl.agent.decision_report import build_decision_report, build_summary
from ibrl.agent.policy import enforce_policy, swap_pair
from ibrl.agent.units import MINTS, to_base_units
from ibrl.core.exceptions import IBRLError, SimulationFailed, UpstreamUnavailable, ValidationError
from ibrl.schemas.payloads import DecisionReport, QuoteSnapshot, ReportSignal, SimulationResult
from ibrl.services.portfolio import WalletBalances, read_balances

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposalDraft:
    owner: str
    intent: object
    summary: str
    quote: QuoteSnapshot
    tx_base64: str
    simulation: SimulationResult
    report: DecisionReport
    signal: Optional[ReportSignal] = None

    @property
    def signal_name(self) -> Optional[str]:
        return self.signal.name if self.signal else None


class ProposalBuilder:
    def __init__(self, chain, router):
        self.chain = chain
        self.router = router

    def build(
        self,
        owner: str,
        intent,
        prompt: str,
        now: int,
        signal: Optional[ReportSignal] = None,
        balances: Optional[WalletBalances] = None,
    ) -> ProposalDraft:
        """
        Build a fully simulated draft for a monetary intent.

        Args:
            balances: live balances if the caller has just read them; read here otherwise
        """
        pair = swap_pair(intent)
        if pair is None:
            raise ValidationError(f"{intent.kind} does not produce a transaction")

        if balances is None:
            balances = read_balances(self.chain, owner)
        policy = enforce_policy(owner, intent, balances)

        sell, buy = pair
        amount = to_base_units(intent.amount.value, sell)

        quote = self.router.quote(MINTS[sell], MINTS[buy], amount, intent.slippage_bps)
        if quote is None:
            raise UpstreamUnavailable("swap_router", "no quote")

        built = self.router.build(quote, owner)
        if built is None:
            raise UpstreamUnavailable("swap_router", "no transaction")

        try:
            simulation = self.chain.simulate(built.tx_base64)
        except IBRLError:
            raise
        except Exception as e:
            raise UpstreamUnavailable("simulator", str(e)) from e

        if not simulation.ok:
            # Informational: the owner must see exactly what failed
            logger.info(f"[Builder] {SimulationFailed(simulation.err)} for {owner} ({intent.kind})")

        report = build_decision_report(
            owner=owner,
            prompt=prompt,
            intent=intent,
            policy=policy,
            quote=quote.snapshot,
            simulation=simulation,
            now=now,
            signal=signal,
        )
        return ProposalDraft(
            owner=owner,
            intent=intent,
            summary=build_summary(intent),
            quote=quote.snapshot,
            tx_base64=built.tx_base64,
            simulation=simulation,
            report=report,
            signal=signal,
        )
