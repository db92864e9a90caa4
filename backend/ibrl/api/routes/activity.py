"""
Activity: read back what the agent and the owner did.

/activity is the dashboard digest (counts, last-seen timestamps and the most
recent proposals, interactions, automations and price samples).
/history is the owner's prompt log, oldest first, like a chat transcript.
Both are scoped to the owner's wallet; price samples are global.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ibrl.api.deps import get_db, get_settings, require_owner
from ibrl.core.clock import HOUR_MS, now_ms
from ibrl.schemas.activity import (
    ActivityResponse,
    ActivitySummary,
    HistoryResponse,
    InteractionResponse,
    PriceSampleResponse,
)
from ibrl.schemas.automation import AutomationResponse
from ibrl.schemas.proposal import ProposalResponse
from ibrl.services.automation_service import ACTIVE, list_automations
from ibrl.services.interaction_service import list_interactions
from ibrl.services.price_service import recent_samples
from ibrl.services.proposal_service import list_pending, list_proposals

router = APIRouter()

RECENT_LIMIT = 50
SAMPLE_WINDOW_MS = 6 * HOUR_MS
SAMPLE_LIMIT = 200


@router.get("/activity", response_model=ActivityResponse)
def get_activity(
    owner: str = Depends(require_owner),
    db: Session = Depends(get_db),
    settings=Depends(get_settings),
):
    now = now_ms()
    proposals = list_proposals(db, owner, limit=RECENT_LIMIT)
    interactions = list_interactions(db, owner, limit=RECENT_LIMIT)
    automations = list_automations(db, owner)
    samples = recent_samples(db, now - SAMPLE_WINDOW_MS, limit=SAMPLE_LIMIT)

    summary = ActivitySummary(
        active_automations=sum(1 for a in automations if a.status == ACTIVE),
        total_automations=len(automations),
        pending_approvals=len(list_pending(db, owner)),
        last_proposal_at=proposals[0].created_at if proposals else None,
        last_interaction_at=interactions[0].created_at if interactions else None,
        last_price_sample_at=samples[0].ts if samples else None,
    )
    return ActivityResponse(
        owner=owner,
        summary=summary,
        proposals=[ProposalResponse.from_model(p, now, settings.proposal_stale_ms) for p in proposals],
        interactions=[InteractionResponse.model_validate(i) for i in interactions],
        automations=[AutomationResponse.model_validate(a) for a in automations],
        price_samples=[PriceSampleResponse.model_validate(s) for s in samples],
    )


@router.get("/history", response_model=HistoryResponse)
def get_history(
    owner: str = Depends(require_owner),
    limit: int = Query(RECENT_LIMIT, ge=1, le=200),
    db: Session = Depends(get_db),
):
    interactions = list_interactions(db, owner, limit=limit, newest_first=False)
    return HistoryResponse(
        owner=owner,
        interactions=[InteractionResponse.model_validate(i) for i in interactions],
    )
