"""
Test the automation store: owner scoping, pause/resume, delete-detach.
"""
import pytest

from ibrl.core.exceptions import NotFoundError, ValidationError
from ibrl.schemas.automation import AutomationResponse
from ibrl.schemas.intent import parse_intent
from ibrl.services.automation_service import (
    ACTIVE,
    PAUSED,
    create_automation,
    delete_automation,
    get_automation,
    list_active,
    list_automations,
    set_status,
)
from ibrl.services.proposal_service import decide, list_proposals
from tests.helpers import OTHER_OWNER, OWNER, T0

DCA = parse_intent({
    "kind": "DCA_SWAP",
    "from": "USDC",
    "to": "SOL",
    "amount": {"value": "5", "unit": "USDC"},
    "intervalMinutes": 60,
})


def test_create_and_read_back(db):
    automation = create_automation(db, OWNER, DCA, T0)

    assert automation.status == ACTIVE
    assert automation.kind == "DCA_SWAP"
    assert automation.last_fired_at is None
    assert automation.config["intervalMinutes"] == 60
    assert get_automation(db, OWNER, automation.id).intent == DCA


def test_only_automation_kinds_are_stored(db):
    swap = parse_intent({"kind": "SWAP", "from": "SOL", "to": "USDC", "amount": {"value": "1", "unit": "SOL"}})
    with pytest.raises(ValidationError):
        create_automation(db, OWNER, swap, T0)


def test_pause_resume_is_idempotent(db):
    automation = create_automation(db, OWNER, DCA, T0)

    assert set_status(db, OWNER, automation.id, "PAUSE", T0 + 1).status == PAUSED
    assert set_status(db, OWNER, automation.id, "pause", T0 + 2).updated_at == T0 + 1
    assert list_active(db, OWNER) == []

    assert set_status(db, OWNER, automation.id, "RESUME", T0 + 3).status == ACTIVE
    assert [a.id for a in list_active(db)] == [automation.id]

    with pytest.raises(ValidationError):
        set_status(db, OWNER, automation.id, "STOP", T0 + 4)


def test_scoped_by_owner(db):
    automation = create_automation(db, OWNER, DCA, T0)

    assert list_automations(db, OTHER_OWNER) == []
    with pytest.raises(NotFoundError):
        get_automation(db, OTHER_OWNER, automation.id)
    with pytest.raises(NotFoundError):
        set_status(db, OTHER_OWNER, automation.id, "PAUSE", T0)
    with pytest.raises(NotFoundError):
        delete_automation(db, OTHER_OWNER, automation.id)


def test_delete_detaches_proposals(engine, db):
    automation = engine.arm_automation(db, OWNER, DCA, now=T0)
    engine.tick(now=T0, owners=[OWNER])
    proposal = list_proposals(db, OWNER)[0]
    decide(db, OWNER, proposal.id, "SENT", signature="5sig", now=T0 + 1)

    detached = delete_automation(db, OWNER, automation.id)

    assert detached == 1
    assert list_automations(db, OWNER) == []
    db.expire_all()
    kept = list_proposals(db, OWNER)
    assert len(kept) == 1
    assert kept[0].automation_id is None
    assert kept[0].status == "SENT"


def test_response_reads_orm_row(db):
    automation = create_automation(db, OWNER, DCA, T0)

    response = AutomationResponse.model_validate(automation)

    assert response.id == automation.id
    assert response.status == ACTIVE
    assert response.config["kind"] == "DCA_SWAP"
    assert response.last_fired_at is None
