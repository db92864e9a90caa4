"""
Automation store. Every read and write is scoped by owner; an automation
owned by another wallet is indistinguishable from a missing one.

Policy gating happens before anything reaches this module (see the engine).
"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from ibrl.core.exceptions import NotFoundError, ValidationError
from ibrl.models.automation import Automation
from ibrl.models.proposal import Proposal
from ibrl.schemas.intent import AUTOMATION_KINDS, IntentKind, intent_to_dict
from ibrl.schemas.payloads import PAYLOAD_VERSION

logger = logging.getLogger(__name__)

ACTIVE = "ACTIVE"
PAUSED = "PAUSED"


def create_automation(db: Session, owner: str, intent, now: int) -> Automation:
    if IntentKind(intent.kind) not in AUTOMATION_KINDS:
        raise ValidationError(f"{intent.kind} cannot be armed as an automation")

    automation = Automation(
        id=str(uuid.uuid4()),
        owner=owner,
        kind=intent.kind,
        config=intent_to_dict(intent),
        payload_version=PAYLOAD_VERSION,
        status=ACTIVE,
        created_at=now,
        updated_at=now,
        last_fired_at=None,
    )
    db.add(automation)
    db.commit()
    db.refresh(automation)
    logger.info(f"[Automations] Armed {automation.kind} {automation.id} for {owner}")
    return automation


def list_automations(db: Session, owner: str) -> List[Automation]:
    return (
        db.query(Automation)
        .filter(Automation.owner == owner)
        .order_by(Automation.created_at.desc())
        .all()
    )


def list_active(db: Session, owner: Optional[str] = None) -> List[Automation]:
    query = db.query(Automation).filter(Automation.status == ACTIVE)
    if owner is not None:
        query = query.filter(Automation.owner == owner)
    return query.order_by(Automation.created_at.asc()).all()


def get_automation(db: Session, owner: str, automation_id: str) -> Automation:
    automation = (
        db.query(Automation)
        .filter(Automation.id == automation_id, Automation.owner == owner)
        .first()
    )
    if not automation:
        raise NotFoundError("Automation", automation_id, reason=f"owner={owner}")
    return automation


def set_status(db: Session, owner: str, automation_id: str, action: str, now: int) -> Automation:
    """PAUSE / RESUME. Repeating the current state is a no-op."""
    automation = get_automation(db, owner, automation_id)
    target = {"PAUSE": PAUSED, "RESUME": ACTIVE}.get(action.upper())
    if target is None:
        raise ValidationError(f"Unknown action {action}")

    if automation.status != target:
        automation.status = target
        automation.updated_at = now
        db.commit()
        db.refresh(automation)
        logger.info(f"[Automations] {automation_id} -> {target}")
    return automation


def delete_automation(db: Session, owner: str, automation_id: str) -> int:
    """Delete the rule and detach its proposals. Returns how many were detached."""
    automation = get_automation(db, owner, automation_id)
    detached = (
        db.query(Proposal)
        .filter(Proposal.automation_id == automation.id)
        .update({Proposal.automation_id: None}, synchronize_session=False)
    )
    db.delete(automation)
    db.commit()
    logger.info(f"[Automations] Deleted {automation_id}; detached {detached} proposal(s)")
    return detached
