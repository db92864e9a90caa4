"""Automations: arm, list, pause/resume and delete standing rules (price triggers, DCA)."""
import logging
from typing import List

from fastapi import APIRouter, Depends
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

from ibrl.api.deps import get_db, get_engine, get_extractor, require_owner
from ibrl.core.audit import AuditLog
from ibrl.core.clock import now_ms
from ibrl.core.exceptions import BusinessError
from ibrl.schemas.automation import (
    AutomationAction,
    AutomationCreate,
    AutomationDeleted,
    AutomationResponse,
)
from ibrl.schemas.intent import AUTOMATION_KINDS, IntentKind, parse_intent
from ibrl.services.automation_service import delete_automation, list_automations, set_status

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[AutomationResponse])
def get_automations(owner: str = Depends(require_owner), db: Session = Depends(get_db)):
    return list_automations(db, owner)


@router.post("", response_model=AutomationResponse, status_code=201)
def arm_automation(
    body: AutomationCreate,
    db: Session = Depends(get_db),
    engine=Depends(get_engine),
    extractor=Depends(get_extractor),
):
    """
    Arm a price trigger or DCA schedule.

    Accepts either a prompt ("Sell 1 SOL if price drops below 120") or a
    structured intent. The Policy Gate runs against live balances first;
    nothing is stored when it fails.
    """
    if body.intent:
        try:
            intent = parse_intent(body.intent)
        except SchemaError as e:
            raise BusinessError.bad_request(e.errors(include_url=False, include_context=False))
    else:
        intent = extractor.extract(body.prompt)

    if intent.kind == IntentKind.UNSUPPORTED.value:
        raise BusinessError.bad_request(intent.reason)
    if IntentKind(intent.kind) not in AUTOMATION_KINDS:
        raise BusinessError.bad_request(f"{intent.kind} is not an automation; use POST /intent")

    return engine.arm_automation(db, body.owner.strip(), intent)


@router.patch("/{automation_id}", response_model=AutomationResponse)
def update_automation(automation_id: str, body: AutomationAction, db: Session = Depends(get_db)):
    owner = body.owner.strip()
    automation = set_status(db, owner, automation_id, body.action, now_ms())
    AuditLog.log_action(body.action.lower(), "automation", automation_id, owner,
                        changes={"status": automation.status})
    return automation


@router.delete("/{automation_id}", response_model=AutomationDeleted)
def remove_automation(automation_id: str, owner: str = Depends(require_owner), db: Session = Depends(get_db)):
    """Delete the rule. Its proposals are kept and detached."""
    detached = delete_automation(db, owner, automation_id)
    AuditLog.log_action("delete", "automation", automation_id, owner,
                        changes={"detached_proposals": detached})
    return AutomationDeleted(id=automation_id, detached_proposals=detached)
