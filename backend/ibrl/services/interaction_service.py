"""Interaction log. Decides which owners the tick tracks."""
import uuid
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ibrl.core.clock import DAY_MS
from ibrl.models.automation import Automation
from ibrl.models.interaction import Interaction

ACTIVE_OWNER_WINDOW_MS = 7 * DAY_MS


def record_interaction(
    db: Session,
    owner: Optional[str],
    prompt: str,
    execute: bool,
    ok: bool,
    payload: Optional[dict],
    now: int,
) -> Interaction:
    interaction = Interaction(
        id=str(uuid.uuid4()),
        owner=owner,
        prompt=prompt,
        execute=execute,
        ok=ok,
        payload=payload,
        created_at=now,
    )
    db.add(interaction)
    db.commit()
    return interaction


def last_interaction_at(db: Session, owner: str) -> Optional[int]:
    return (
        db.query(func.max(Interaction.created_at))
        .filter(Interaction.owner == owner)
        .scalar()
    )


def tracked_owners(db: Session, now: int) -> List[str]:
    """Owners with an ACTIVE automation or an interaction in the last 7 days."""
    armed = {
        owner for (owner,) in
        db.query(Automation.owner).filter(Automation.status == "ACTIVE").distinct().all()
    }
    recent = {
        owner for (owner,) in
        db.query(Interaction.owner)
        .filter(Interaction.owner.isnot(None))
        .filter(Interaction.created_at >= now - ACTIVE_OWNER_WINDOW_MS)
        .distinct()
        .all()
    }
    return sorted(armed | recent)


def list_interactions(db: Session, owner: str, limit: int = 50, newest_first: bool = True) -> List[Interaction]:
    order = Interaction.created_at.desc() if newest_first else Interaction.created_at.asc()
    return (
        db.query(Interaction)
        .filter(Interaction.owner == owner)
        .order_by(order)
        .limit(limit)
        .all()
    )
