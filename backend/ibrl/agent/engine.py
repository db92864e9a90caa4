"""
Proposal Engine: the orchestrator behind every proposal.

================================================================================
AUTONOMY MODEL
================================================================================

Each tick:
1. Fetch SOL/USD (fails closed: no price, no price-dependent checks)
2. Record the sample, prune samples past retention
3. For each tracked owner, concurrently across owners:
   a. read live balances
   b. run each signal detector (drawdown, USDC buffer, volatility)
   c. evaluate each ACTIVE automation (price triggers, DCA)
   d. for anything that fires: Policy Gate -> quote -> build -> simulate -> persist

The engine only ever CREATES PENDING_APPROVAL proposals. It never signs,
sends or retries; a failed call defers to the next tick.

Concurrency:
- One threading.Lock per owner serializes every write for that owner
  (tick evaluation, refresh, user proposals, arming).
- Proposal insert and automation.last_fired_at commit together.
- The partial unique index on pending proposals per automation is the
  last line of defence; an IntegrityError there is a skip, not a failure.
- The tick waits OWNER_EVAL_TIMEOUT_SECONDS for owners and abandons
  stragglers; their later writes are keyed by proposal id and stay valid.
================================================================================
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ibrl.agent.decision_report import build_summary
from ibrl.agent.policy import enforce_policy
from ibrl.agent.proposal_builder import ProposalBuilder
from ibrl.agent.signals import (
    DETECTORS,
    MAX_COOLDOWN_MS,
    MAX_WINDOW_MS,
    VOLATILITY_MAX_SAMPLES,
    SignalContext,
)
from ibrl.agent.triggers import automation_due
from ibrl.core.audit import AuditLog
from ibrl.core.clock import HOUR_MS, now_ms
from ibrl.core.exceptions import (
    InsufficientFundsError,
    UpstreamUnavailable,
    ValidationError,
)
from ibrl.models.automation import Automation
from ibrl.models.proposal import PENDING_APPROVAL, Proposal
from ibrl.schemas.intent import AUTOMATION_KINDS, IntentKind
from ibrl.services.automation_service import create_automation, list_active
from ibrl.services.interaction_service import last_interaction_at, tracked_owners
from ibrl.services.portfolio import WalletBalances, portfolio_snapshot, read_balances
from ibrl.services.price_service import prune_samples, record_sample, samples_since
from ibrl.services.proposal_service import (
    get_proposal,
    has_pending_for_automation,
    recent_signal_proposals,
    refresh_pending,
    store_proposal,
)

logger = logging.getLogger(__name__)


@dataclass
class OwnerReport:
    owner: str
    created: List[str] = field(default_factory=list)
    skipped: List[Dict[str, str]] = field(default_factory=list)
    error: Optional[str] = None

    def skip(self, what: str, reason: str) -> None:
        self.skipped.append({"what": what, "reason": reason})


@dataclass
class TickReport:
    started_at: int
    price: Optional[float] = None
    owners: List[OwnerReport] = field(default_factory=list)
    timed_out: List[str] = field(default_factory=list)

    @property
    def proposals_created(self) -> List[str]:
        return [pid for o in self.owners for pid in o.created]

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at,
            "price": self.price,
            "owners_evaluated": len(self.owners),
            "proposals_created": self.proposals_created,
            "timed_out": self.timed_out,
            "owners": [asdict(o) for o in self.owners],
        }


class ProposalEngine:
    def __init__(self, database, oracle, chain, router, settings):
        self.database = database
        self.oracle = oracle
        self.chain = chain
        self.settings = settings
        self.builder = ProposalBuilder(chain, router)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self.last_tick: Optional[TickReport] = None

    def owner_lock(self, owner: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(owner)
            if lock is None:
                lock = threading.Lock()
                self._locks[owner] = lock
            return lock

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now: Optional[int] = None, owners: Optional[List[str]] = None) -> TickReport:
        now = now if now is not None else now_ms()
        report = TickReport(started_at=now)

        price = None
        source = "pyth"
        try:
            quote = self.oracle.get_price()
            price, source = quote.price, quote.source
        except UpstreamUnavailable as e:
            logger.warning(f"[Engine] Price unavailable, skipping price-dependent checks: {e}")
        report.price = price

        with self.database.session() as db:
            if price is not None:
                record_sample(db, price, now, source=source)
            prune_samples(db, now - self.settings.PRICE_SAMPLE_RETENTION_HOURS * HOUR_MS)
            if owners is None:
                owners = tracked_owners(db, now)
            samples = samples_since(db, now - MAX_WINDOW_MS, limit=VOLATILITY_MAX_SAMPLES)

        if not owners:
            logger.debug("[Engine] No tracked owners")
            self.last_tick = report
            return report

        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.settings.TICK_MAX_WORKERS, len(owners))),
            thread_name_prefix="ibrl-owner",
        )
        futures = {
            executor.submit(self._evaluate_owner_safely, owner, price, samples, now): owner
            for owner in owners
        }
        try:
            done, not_done = wait(futures, timeout=self.settings.OWNER_EVAL_TIMEOUT_SECONDS)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for future in done:
            report.owners.append(future.result())
        for future in not_done:
            owner = futures[future]
            report.timed_out.append(owner)
            logger.warning(f"[Engine] Owner {owner} exceeded {self.settings.OWNER_EVAL_TIMEOUT_SECONDS}s; abandoned this tick")

        created = report.proposals_created
        if created:
            logger.info(f"[Engine] Tick created {len(created)} proposal(s) across {len(report.owners)} owner(s)")
        else:
            logger.info(f"[Engine] Tick complete: {len(report.owners)} owner(s), no new proposals")
        AuditLog.log_tick({
            "price": price,
            "owners": len(owners),
            "created": len(created),
            "timed_out": len(report.timed_out),
        })
        self.last_tick = report
        return report

    def _evaluate_owner_safely(self, owner: str, price: Optional[float], samples, now: int) -> OwnerReport:
        try:
            return self.evaluate_owner(owner, price, samples, now)
        except Exception as e:
            logger.error(f"[Engine] Owner {owner} evaluation failed: {e}", exc_info=True)
            return OwnerReport(owner=owner, error=type(e).__name__)

    def evaluate_owner(self, owner: str, price: Optional[float], samples, now: int) -> OwnerReport:
        result = OwnerReport(owner=owner)
        with self.owner_lock(owner):
            try:
                balances = read_balances(self.chain, owner)
            except UpstreamUnavailable as e:
                logger.warning(f"[Engine] Balances unavailable for {owner}: {e}")
                result.skip("owner", "balances unavailable")
                return result

            with self.database.session() as db:
                self._run_detectors(db, owner, balances, price, samples, now, result)
                self._run_automations(db, owner, balances, price, now, result)
        return result

    def _run_detectors(self, db: Session, owner: str, balances: WalletBalances,
                       price: Optional[float], samples, now: int, result: OwnerReport) -> None:
        ctx = SignalContext(
            owner=owner,
            balances=balances,
            samples=samples,
            recent_proposals=recent_signal_proposals(db, owner, now - MAX_COOLDOWN_MS),
            now=now,
            price=price,
            last_interaction_at=last_interaction_at(db, owner),
        )
        for detector in DETECTORS:
            label = detector.__name__
            try:
                decision = detector(ctx)
                if decision is None:
                    continue
                logger.info(f"[Engine] {decision.signal} fired for {owner}: {decision.rationale}")
                self._fire(
                    db, owner, decision.intent, f"[agent] {decision.rationale}", now, result,
                    label=decision.signal, balances=balances, signal=decision.to_report(),
                )
            except Exception as e:
                db.rollback()
                logger.error(f"[Engine] Detector {label} failed for {owner}: {e}", exc_info=True)
                result.skip(label, "error")

    def _run_automations(self, db: Session, owner: str, balances: WalletBalances,
                         price: Optional[float], now: int, result: OwnerReport) -> None:
        for automation in list_active(db, owner):
            label = f"automation:{automation.id}"
            try:
                intent = automation.intent
                if not automation_due(intent, automation.last_fired_at, price, now):
                    continue
                if has_pending_for_automation(db, automation.id):
                    logger.debug(f"[Engine] {label} has a pending proposal; not firing")
                    result.skip(label, "awaiting decision")
                    continue
                self._fire(
                    db, owner, intent, f"Automation {automation.id}: {build_summary(intent)}", now, result,
                    label=label, balances=balances, automation=automation,
                )
            except Exception as e:
                db.rollback()
                logger.error(f"[Engine] {label} failed for {owner}: {e}", exc_info=True)
                result.skip(label, "error")

    def _fire(self, db: Session, owner: str, intent, prompt: str, now: int, result: OwnerReport,
              label: str, balances: WalletBalances, signal=None,
              automation: Optional[Automation] = None) -> Optional[Proposal]:
        """Gate, build and persist one proposal. Soft failures are recorded as skips."""
        try:
            draft = self.builder.build(owner, intent, prompt, now, signal=signal, balances=balances)
        except InsufficientFundsError as e:
            logger.info(f"[Engine] {label} blocked for {owner}: shortfall {e.shortfall_base_units} {e.asset} base units")
            result.skip(label, "insufficient funds")
            return None
        except ValidationError as e:
            logger.info(f"[Engine] {label} rejected by policy for {owner}: {e.reason}")
            result.skip(label, "policy")
            return None
        except UpstreamUnavailable as e:
            logger.warning(f"[Engine] {label} skipped for {owner}: {e}")
            result.skip(label, "upstream unavailable")
            return None

        try:
            proposal = store_proposal(
                db, draft, now, created_by="agent",
                automation_id=automation.id if automation is not None else None,
            )
            if automation is not None:
                automation.last_fired_at = now
                automation.updated_at = now
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"[Engine] {label} already has a pending proposal; insert skipped")
            result.skip(label, "awaiting decision")
            return None

        result.created.append(proposal.id)
        AuditLog.log_action(
            "create", "proposal", proposal.id, owner, actor="agent",
            changes={"kind": proposal.kind, "signal": proposal.signal, "automation_id": proposal.automation_id,
                     "sendable": draft.report.sendable},
        )
        logger.info(f"[Engine] Created proposal {proposal.id} for {owner}: {draft.summary}")
        return proposal

    # ------------------------------------------------------------------
    # User-triggered paths (raise; the API maps errors to HTTP)
    # ------------------------------------------------------------------

    def arm_automation(self, db: Session, owner: str, intent, now: Optional[int] = None) -> Automation:
        """Gate against live balances, then persist ACTIVE. Nothing is stored on failure."""
        now = now if now is not None else now_ms()
        if IntentKind(intent.kind) not in AUTOMATION_KINDS:
            raise ValidationError(f"{intent.kind} cannot be armed as an automation")
        with self.owner_lock(owner):
            balances = read_balances(self.chain, owner)
            enforce_policy(owner, intent, balances)
            automation = create_automation(db, owner, intent, now)
        AuditLog.log_action("create", "automation", automation.id, owner, changes={"kind": automation.kind})
        return automation

    def propose_now(self, db: Session, owner: str, intent, prompt: str, now: Optional[int] = None) -> Proposal:
        """Build a user-requested proposal (POST /intent with execute)."""
        now = now if now is not None else now_ms()
        with self.owner_lock(owner):
            draft = self.builder.build(owner, intent, prompt, now)
            proposal = store_proposal(db, draft, now, created_by="user")
            db.commit()
            db.refresh(proposal)
        AuditLog.log_action("create", "proposal", proposal.id, owner, changes={"kind": proposal.kind})
        return proposal

    def refresh_proposal(self, db: Session, owner: str, proposal_id: str, now: Optional[int] = None) -> Proposal:
        """
        Rebuild quote, transaction, simulation and report of a pending proposal in place.

        Re-runs the Policy Gate with fresh balances. Non-pending proposals are
        returned unchanged.
        """
        now = now if now is not None else now_ms()
        with self.owner_lock(owner):
            proposal = get_proposal(db, owner, proposal_id)
            if proposal.status != PENDING_APPROVAL:
                logger.info(f"[Engine] Refresh ignored: proposal {proposal_id} is {proposal.status}")
                return proposal

            previous = proposal.decision_report
            draft = self.builder.build(owner, proposal.intent, previous.prompt, now, signal=previous.signal)
            rewritten = refresh_pending(db, owner, proposal_id, draft, now)
            db.refresh(proposal)
            if not rewritten:
                logger.info(f"[Engine] Refresh discarded: proposal {proposal_id} became {proposal.status} while rebuilding")
                return proposal
        AuditLog.log_action("refresh", "proposal", proposal.id, owner,
                            changes={"sendable": draft.report.sendable})
        return proposal

    def portfolio(self, owner: str) -> dict:
        balances = read_balances(self.chain, owner)
        try:
            price = self.oracle.get_price().price
        except UpstreamUnavailable:
            price = None
        return portfolio_snapshot(owner, balances, price)
