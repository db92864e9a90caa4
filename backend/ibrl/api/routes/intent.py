"""
Natural-language entry point.

Chat and portfolio questions are answered directly. SWAP / EXIT_TO_USDC with
execute=true build a user proposal (PENDING_APPROVAL, created_by=user).
Triggers and DCA are only described here; arming goes through /automations.
Trust: nothing is signed or sent by the backend.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ibrl.agent.decision_report import build_summary
from ibrl.api.deps import get_db, get_engine, get_extractor, get_settings
from ibrl.core.clock import now_ms
from ibrl.core.exceptions import IBRLError, ValidationError
from ibrl.schemas.intent import (
    ChatIntent,
    DcaSwapIntent,
    ExitToUsdcIntent,
    IntentRequest,
    PortfolioQaIntent,
    PriceTriggerEntryIntent,
    PriceTriggerExitIntent,
    SwapIntent,
    UnsupportedIntent,
    intent_to_dict,
)
from ibrl.schemas.proposal import ProposalResponse
from ibrl.services.interaction_service import record_interaction
from ibrl.services.portfolio import portfolio_answer

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_owner(owner):
    if not owner:
        raise ValidationError("Wallet not connected")
    return owner


@router.post("")
def submit_intent(
    body: IntentRequest,
    db: Session = Depends(get_db),
    engine=Depends(get_engine),
    extractor=Depends(get_extractor),
    settings=Depends(get_settings),
):
    """
    Parse a prompt into a typed intent and act on it.

    Request: {"owner": "<wallet>", "prompt": "Swap 0.1 SOL to USDC", "execute": true}
    """
    now = now_ms()
    intent = extractor.extract(body.prompt)
    logger.info(f"[Intent] {body.owner or 'anonymous'}: '{body.prompt[:80]}' -> {intent.kind}")

    response = {"ok": True, "kind": intent.kind, "intent": intent_to_dict(intent)}
    try:
        match intent:
            case ChatIntent():
                response["message"] = intent.message
            case UnsupportedIntent():
                response["ok"] = False
                response["message"] = intent.reason
            case PortfolioQaIntent():
                snapshot = engine.portfolio(_require_owner(body.owner))
                response["portfolio"] = snapshot
                response["message"] = portfolio_answer(snapshot)
            case SwapIntent() | ExitToUsdcIntent():
                if body.execute:
                    proposal = engine.propose_now(db, _require_owner(body.owner), intent, body.prompt, now=now)
                    response["proposal"] = ProposalResponse.from_model(proposal, now, settings.proposal_stale_ms)
                    response["message"] = f"Proposal ready for approval: {proposal.summary}"
                else:
                    response["message"] = f"{build_summary(intent)}. Send with execute=true to build a proposal."
            case PriceTriggerExitIntent() | PriceTriggerEntryIntent() | DcaSwapIntent():
                response["message"] = f"{build_summary(intent)}. Arm it with POST /automations."
            case _:
                raise ValidationError(f"Unhandled intent {intent.kind}")
    except IBRLError as e:
        db.rollback()
        record_interaction(db, body.owner, body.prompt, body.execute, False, {"kind": intent.kind, "error": str(e)}, now)
        raise

    record_interaction(db, body.owner, body.prompt, body.execute, response["ok"], {"kind": intent.kind}, now)
    return response
