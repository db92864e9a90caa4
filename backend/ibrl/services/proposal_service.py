"""
Proposal store and approval state machine.

PENDING_APPROVAL -> SENT | DENIED, both terminal.

decide() is a compare-and-set UPDATE guarded by status, so a duplicate click
or a concurrent tick can never move a proposal out of a terminal state.
A decision on a proposal that is no longer pending returns its current
status unchanged.
"""
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ibrl.agent.signals import RecentProposal
from ibrl.core.exceptions import NotFoundError, ValidationError
from ibrl.models.proposal import DENIED, PENDING_APPROVAL, SENT, Proposal
from ibrl.schemas.intent import intent_to_dict
from ibrl.schemas.payloads import PAYLOAD_VERSION

logger = logging.getLogger(__name__)

DECISIONS = (SENT, DENIED)
MAX_PAGE_SIZE = 200


def store_proposal(
    db: Session,
    draft,
    now: int,
    created_by: str = "agent",
    automation_id: Optional[str] = None,
) -> Proposal:
    """Add a proposal built from a ProposalDraft. The caller commits."""
    proposal = Proposal(
        id=str(uuid.uuid4()),
        owner=draft.owner,
        automation_id=automation_id,
        kind=draft.intent.kind,
        summary=draft.summary,
        signal=draft.signal_name,
        payload_version=PAYLOAD_VERSION,
        created_by=created_by,
        status=PENDING_APPROVAL,
        created_at=now,
    )
    for column, value in draft_values(draft, now).items():
        setattr(proposal, column, value)
    db.add(proposal)
    return proposal


def draft_values(draft, now: int) -> dict:
    """Column values for the built payloads of a ProposalDraft."""
    return {
        "summary": draft.summary,
        "intent_json": intent_to_dict(draft.intent),
        "quote_json": draft.quote.model_dump(mode="json"),
        "tx_base64": draft.tx_base64,
        "simulation_json": draft.simulation.model_dump(mode="json"),
        "decision_report_json": draft.report.model_dump(mode="json"),
        "payload_version": PAYLOAD_VERSION,
        "updated_at": now,
    }


def refresh_pending(db: Session, owner: str, proposal_id: str, draft, now: int) -> bool:
    """
    Swap in freshly built payloads, only while the proposal is still pending.

    Same compare-and-set as decide(): a decision that lands while the
    transaction is being rebuilt wins, and the decided row keeps the payloads
    the owner actually signed. Returns True if the row was rewritten.
    """
    updated = (
        db.query(Proposal)
        .filter(
            Proposal.id == proposal_id,
            Proposal.owner == owner,
            Proposal.status == PENDING_APPROVAL,
        )
        .update(draft_values(draft, now), synchronize_session=False)
    )
    db.commit()
    return bool(updated)


def get_proposal(db: Session, owner: str, proposal_id: str) -> Proposal:
    proposal = (
        db.query(Proposal)
        .filter(Proposal.id == proposal_id, Proposal.owner == owner)
        .first()
    )
    if not proposal:
        raise NotFoundError("Proposal", proposal_id, reason=f"owner={owner}")
    return proposal


def list_proposals(
    db: Session,
    owner: str,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Proposal]:
    if status is not None and status not in (PENDING_APPROVAL, SENT, DENIED):
        raise ValidationError(f"Unknown status {status}")
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    query = db.query(Proposal).filter(Proposal.owner == owner)
    if status is not None:
        query = query.filter(Proposal.status == status)
    return (
        query.order_by(Proposal.created_at.desc())
        .offset(max(0, int(offset)))
        .limit(limit)
        .all()
    )


def list_pending(db: Session, owner: str) -> List[Proposal]:
    return list_proposals(db, owner, status=PENDING_APPROVAL, limit=MAX_PAGE_SIZE)


def has_pending_for_automation(db: Session, automation_id: str) -> bool:
    return (
        db.query(Proposal.id)
        .filter(Proposal.automation_id == automation_id, Proposal.status == PENDING_APPROVAL)
        .first()
        is not None
    )


def recent_signal_proposals(db: Session, owner: str, since_ts: int) -> List[RecentProposal]:
    rows = (
        db.query(Proposal.signal, Proposal.created_at, Proposal.status)
        .filter(Proposal.owner == owner)
        .filter(Proposal.signal.isnot(None))
        .filter(Proposal.created_at >= since_ts)
        .all()
    )
    return [RecentProposal(signal=s, created_at=c, status=st) for s, c, st in rows]


def decide(
    db: Session,
    owner: str,
    proposal_id: str,
    decision: str,
    signature: Optional[str] = None,
    now: int = 0,
) -> Tuple[str, bool]:
    """Resolve a pending proposal. Returns (status, changed)."""
    decision = (decision or "").upper()
    if decision not in DECISIONS:
        raise ValidationError(f"Decision must be one of {', '.join(DECISIONS)}")

    # Ownership first so a foreign id reads exactly like a missing one
    get_proposal(db, owner, proposal_id)

    values = {Proposal.status: decision, Proposal.updated_at: now}
    if decision == SENT and signature:
        values[Proposal.signature] = signature

    updated = (
        db.query(Proposal)
        .filter(
            Proposal.id == proposal_id,
            Proposal.owner == owner,
            Proposal.status == PENDING_APPROVAL,
        )
        .update(values, synchronize_session=False)
    )
    db.commit()

    current = db.query(Proposal.status).filter(Proposal.id == proposal_id).scalar()
    if updated:
        logger.info(f"[Proposals] {proposal_id} -> {current} by {owner}")
    else:
        logger.info(f"[Proposals] {proposal_id} already {current}; decision {decision} ignored")
    return current, bool(updated)


def is_stale(proposal: Proposal, now: int, stale_ms: int) -> bool:
    return proposal.status == PENDING_APPROVAL and now - proposal.updated_at > stale_ms


def is_sendable(proposal: Proposal, now: int, stale_ms: int) -> bool:
    if proposal.status != PENDING_APPROVAL or is_stale(proposal, now, stale_ms):
        return False
    return bool(proposal.decision_report.sendable and proposal.simulation.ok)
