"""
Proposals: the owner's approval queue.

Status flow: PENDING_APPROVAL -> SENT | DENIED (terminal).
The wallet signs and broadcasts; this API only records the outcome.
Repeating a decision on a terminal proposal returns its current status
with changed=false.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ibrl.api.deps import get_db, get_engine, get_settings, require_owner
from ibrl.core.audit import AuditLog
from ibrl.core.clock import now_ms
from ibrl.schemas.proposal import (
    DecisionRequest,
    DecisionResponse,
    ProposalResponse,
    RefreshRequest,
)
from ibrl.services.proposal_service import (
    MAX_PAGE_SIZE,
    decide,
    get_proposal,
    list_pending,
    list_proposals,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[ProposalResponse])
def get_proposals(
    owner: str = Depends(require_owner),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    settings=Depends(get_settings),
):
    now = now_ms()
    proposals = list_proposals(db, owner, status=status.upper() if status else None, limit=limit, offset=offset)
    return [ProposalResponse.from_model(p, now, settings.proposal_stale_ms) for p in proposals]


@router.get("/pending", response_model=List[ProposalResponse])
def get_pending(
    owner: str = Depends(require_owner),
    db: Session = Depends(get_db),
    settings=Depends(get_settings),
):
    """Pending proposals, newest first, with stale/sendable computed now."""
    now = now_ms()
    return [ProposalResponse.from_model(p, now, settings.proposal_stale_ms) for p in list_pending(db, owner)]


@router.get("/{proposal_id}", response_model=ProposalResponse)
def get_one(
    proposal_id: str,
    owner: str = Depends(require_owner),
    db: Session = Depends(get_db),
    settings=Depends(get_settings),
):
    return ProposalResponse.from_model(get_proposal(db, owner, proposal_id), now_ms(), settings.proposal_stale_ms)


@router.post("/{proposal_id}/decision", response_model=DecisionResponse)
def record_decision(proposal_id: str, body: DecisionRequest, db: Session = Depends(get_db)):
    """
    Record SENT (with the wallet's signature) or DENIED.

    Only a PENDING_APPROVAL proposal changes; anything else is a no-op.
    """
    owner = body.owner.strip()
    current, changed = decide(db, owner, proposal_id, body.decision, signature=body.signature, now=now_ms())
    if changed:
        AuditLog.log_action("decide", "proposal", proposal_id, owner,
                            changes={"status": current, "signature": body.signature if current == "SENT" else None})
    return DecisionResponse(id=proposal_id, status=current, changed=changed)


@router.post("/{proposal_id}/refresh", response_model=ProposalResponse)
def refresh(
    proposal_id: str,
    body: RefreshRequest,
    db: Session = Depends(get_db),
    engine=Depends(get_engine),
    settings=Depends(get_settings),
):
    """Re-quote, rebuild and re-simulate a pending proposal (clears staleness)."""
    proposal = engine.refresh_proposal(db, body.owner.strip(), proposal_id)
    return ProposalResponse.from_model(proposal, now_ms(), settings.proposal_stale_ms)
