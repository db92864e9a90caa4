"""
End-to-end API tests through FastAPI's TestClient with stubbed collaborators.
"""
from ibrl.services.interaction_service import record_interaction
from tests.helpers import OTHER_OWNER, OWNER, T0


def post_intent(client, prompt, execute=False, owner=OWNER):
    return client.post("/intent", json={"owner": owner, "prompt": prompt, "execute": execute})


def create_proposal(client):
    r = post_intent(client, "Swap 0.1 SOL to USDC", execute=True)
    assert r.status_code == 200, r.text
    return r.json()["proposal"]


def test_health_and_security_headers(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "autonomy": "disabled"}
    assert r.headers["X-Content-Type-Options"] == "nosniff"


# ---------------------------------------------------------------------------
# /intent
# ---------------------------------------------------------------------------

def test_chat(client):
    body = post_intent(client, "hello", owner=None).json()
    assert body["ok"] is True
    assert body["kind"] == "CHAT"


def test_portfolio_question(client):
    body = post_intent(client, "what is my balance").json()
    assert body["kind"] == "PORTFOLIO_QA"
    assert body["portfolio"]["sol"] == "2 SOL"
    assert body["portfolio"]["usdc"] == "100 USDC"
    assert body["portfolio"]["total_usd"] == "400.00"
    assert "SOL/USD: $150.00" in body["message"]


def test_portfolio_requires_wallet(client):
    r = post_intent(client, "show my portfolio", owner=None)
    assert r.status_code == 400
    assert r.json()["detail"] == "Wallet not connected"


def test_swap_without_execute_only_previews(client):
    body = post_intent(client, "Swap 0.1 SOL to USDC").json()
    assert body["kind"] == "SWAP"
    assert body["intent"]["amount"] == {"value": "0.1", "unit": "SOL"}
    assert "proposal" not in body
    assert "execute=true" in body["message"]


def test_swap_with_execute_creates_user_proposal(client):
    proposal = create_proposal(client)

    assert proposal["status"] == "PENDING_APPROVAL"
    assert proposal["created_by"] == "user"
    assert proposal["sendable"] is True
    assert proposal["stale"] is False
    assert proposal["tx_base64"]
    assert proposal["decision_report"]["checks"]["policy"]["ok"] is True
    assert proposal["decision_report"]["markdown"].startswith("## Swap 0.1 SOL to USDC")


def test_swap_over_safe_spend_is_rejected_with_shortfall(client):
    r = post_intent(client, "Swap 1.95 SOL to USDC", execute=True)

    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["error"] == "insufficient_funds"
    assert detail["asset"] == "SOL"
    assert detail["shortfall_base_units"] == 1_950_000_000 - 1_900_000_000
    assert client.get("/proposals", params={"owner": OWNER}).json() == []


def test_router_outage_is_502(client, router):
    router.fail_quote = True
    r = post_intent(client, "Exit 0.1 SOL", execute=True)
    assert r.status_code == 502


def test_unsupported(client):
    body = post_intent(client, "do a kickflip").json()
    assert body["ok"] is False
    assert body["kind"] == "UNSUPPORTED"
    assert "Could not interpret" in body["message"]


def test_trigger_prompt_points_at_automations(client):
    body = post_intent(client, "Sell 0.5 SOL if SOL drops below 120", execute=True).json()
    assert body["kind"] == "PRICE_TRIGGER_EXIT"
    assert "POST /automations" in body["message"]
    assert client.get("/proposals", params={"owner": OWNER}).json() == []


# ---------------------------------------------------------------------------
# /automations
# ---------------------------------------------------------------------------

def test_automation_lifecycle(client):
    r = client.post("/automations", json={"owner": OWNER, "prompt": "Sell 0.5 SOL if SOL drops below 120"})
    assert r.status_code == 201, r.text
    automation = r.json()
    assert automation["kind"] == "PRICE_TRIGGER_EXIT"
    assert automation["status"] == "ACTIVE"
    assert automation["config"]["thresholdUsd"] == "120"

    listed = client.get("/automations", params={"owner": OWNER}).json()
    assert [a["id"] for a in listed] == [automation["id"]]
    assert client.get("/automations", params={"owner": OTHER_OWNER}).json() == []

    r = client.patch(f"/automations/{automation['id']}", json={"owner": OWNER, "action": "PAUSE"})
    assert r.status_code == 200
    assert r.json()["status"] == "PAUSED"

    r = client.delete(f"/automations/{automation['id']}", params={"owner": OWNER})
    assert r.json() == {"ok": True, "id": automation["id"], "detached_proposals": 0}
    assert client.get("/automations", params={"owner": OWNER}).json() == []


def test_automation_from_structured_intent(client):
    r = client.post("/automations", json={
        "owner": OWNER,
        "intent": {
            "kind": "DCA_SWAP",
            "from": "USDC",
            "to": "SOL",
            "amount": {"value": "5", "unit": "USDC"},
            "intervalMinutes": 60,
        },
    })
    assert r.status_code == 201, r.text
    assert r.json()["kind"] == "DCA_SWAP"


def test_automation_rejections(client):
    bad_schema = client.post("/automations", json={
        "owner": OWNER,
        "intent": {"kind": "DCA_SWAP", "from": "USDC", "to": "SOL",
                   "amount": {"value": "5", "unit": "USDC"}, "intervalMinutes": 2},
    })
    assert bad_schema.status_code == 400

    not_automation = client.post("/automations", json={"owner": OWNER, "prompt": "Swap 0.1 SOL to USDC"})
    assert not_automation.status_code == 400

    unaffordable = client.post("/automations", json={"owner": OWNER, "prompt": "Sell 5 SOL if SOL drops below 120"})
    assert unaffordable.status_code == 400
    assert unaffordable.json()["detail"]["error"] == "insufficient_funds"

    empty = client.post("/automations", json={"owner": OWNER})
    assert empty.status_code == 422

    assert client.get("/automations", params={"owner": OWNER}).json() == []


def test_foreign_automation_is_404(client):
    automation = client.post(
        "/automations", json={"owner": OWNER, "prompt": "DCA 5 USDC to SOL every 60 minutes"},
    ).json()

    r = client.patch(f"/automations/{automation['id']}", json={"owner": OTHER_OWNER, "action": "PAUSE"})
    assert r.status_code == 404
    r = client.delete(f"/automations/{automation['id']}", params={"owner": OTHER_OWNER})
    assert r.status_code == 404


# ---------------------------------------------------------------------------
# /proposals
# ---------------------------------------------------------------------------

def test_decision_flow_is_idempotent(client):
    proposal = create_proposal(client)
    url = f"/proposals/{proposal['id']}/decision"

    pending = client.get("/proposals/pending", params={"owner": OWNER}).json()
    assert [p["id"] for p in pending] == [proposal["id"]]

    first = client.post(url, json={"owner": OWNER, "decision": "SENT", "signature": "5sig"}).json()
    assert first == {"ok": True, "id": proposal["id"], "status": "SENT", "changed": True}

    second = client.post(url, json={"owner": OWNER, "decision": "DENIED"}).json()
    assert second["status"] == "SENT"
    assert second["changed"] is False

    stored = client.get(f"/proposals/{proposal['id']}", params={"owner": OWNER}).json()
    assert stored["signature"] == "5sig"
    assert stored["sendable"] is False
    assert client.get("/proposals/pending", params={"owner": OWNER}).json() == []


def test_foreign_proposal_is_404(client):
    proposal = create_proposal(client)

    assert client.get(f"/proposals/{proposal['id']}", params={"owner": OTHER_OWNER}).status_code == 404
    r = client.post(f"/proposals/{proposal['id']}/decision", json={"owner": OTHER_OWNER, "decision": "SENT"})
    assert r.status_code == 404
    r = client.post(f"/proposals/{proposal['id']}/refresh", json={"owner": OTHER_OWNER})
    assert r.status_code == 404


def test_invalid_decision_and_paging(client):
    proposal = create_proposal(client)
    r = client.post(f"/proposals/{proposal['id']}/decision", json={"owner": OWNER, "decision": "APPROVE"})
    assert r.status_code == 422

    assert client.get("/proposals", params={"owner": OWNER, "limit": 500}).status_code == 422
    assert client.get("/proposals", params={"owner": OWNER, "status": "bogus"}).status_code == 400
    assert len(client.get("/proposals", params={"owner": OWNER, "status": "pending_approval"}).json()) == 1


def test_refresh(client):
    proposal = create_proposal(client)
    r = client.post(f"/proposals/{proposal['id']}/refresh", json={"owner": OWNER})
    assert r.status_code == 200
    refreshed = r.json()
    assert refreshed["id"] == proposal["id"]
    assert refreshed["updated_at"] >= proposal["updated_at"]
    assert refreshed["stale"] is False


# ---------------------------------------------------------------------------
# Autonomy, price, status
# ---------------------------------------------------------------------------

def test_manual_tick(client):
    client.post("/automations", json={"owner": OWNER, "prompt": "DCA 5 USDC to SOL every 60 minutes"})

    report = client.post("/autonomy/tick", params={"owner": OWNER}).json()

    assert report["price"] == 150.0
    assert report["owners_evaluated"] == 1
    assert len(report["proposals_created"]) == 1
    proposals = client.get("/proposals", params={"owner": OWNER}).json()
    assert proposals[0]["created_by"] == "agent"
    assert proposals[0]["automation_id"] is not None


def test_price(client, oracle):
    body = client.get("/price").json()
    assert body["price"] == 150.0
    assert body["source"] == "pyth"

    oracle.fail = True
    assert client.get("/price").status_code == 502


def test_status(client):
    body = client.get("/status").json()
    assert body["autonomy_enabled"] is False
    assert body["scheduler_running"] is False
    assert body["llm_available"] is False
    assert body["last_tick"] is None

    client.post("/autonomy/tick")
    assert client.get("/status").json()["last_tick"]["price"] == 150.0


# ---------------------------------------------------------------------------
# Activity and history
# ---------------------------------------------------------------------------

def test_history_lists_own_prompts_oldest_first(client, db):
    record_interaction(db, OWNER, "Swap 1.95 SOL to USDC", True, False, {"kind": "SWAP"}, T0 + 5)
    record_interaction(db, OWNER, "hello", False, True, {"kind": "CHAT"}, T0)
    record_interaction(db, OTHER_OWNER, "gm", False, True, {"kind": "CHAT"}, T0 + 1)

    body = client.get("/history", params={"owner": OWNER}).json()

    assert body["owner"] == OWNER
    assert [i["prompt"] for i in body["interactions"]] == ["hello", "Swap 1.95 SOL to USDC"]
    assert [i["ok"] for i in body["interactions"]] == [True, False]
    assert body["interactions"][1]["execute"] is True
    assert body["interactions"][1]["payload"]["kind"] == "SWAP"

    assert client.get("/history").status_code == 422


def test_activity_digest(client):
    empty = client.get("/activity", params={"owner": OWNER}).json()
    assert empty["summary"] == {
        "active_automations": 0,
        "total_automations": 0,
        "pending_approvals": 0,
        "last_proposal_at": None,
        "last_interaction_at": None,
        "last_price_sample_at": None,
    }

    proposal = create_proposal(client)
    paused = client.post("/automations", json={"owner": OWNER, "prompt": "DCA 5 USDC to SOL every 60 minutes"}).json()
    client.patch(f"/automations/{paused['id']}", json={"owner": OWNER, "action": "PAUSE"})
    client.post("/automations", json={"owner": OWNER, "prompt": "Sell 0.5 SOL if SOL drops below 120"})
    client.post("/autonomy/tick", params={"owner": OWNER})

    body = client.get("/activity", params={"owner": OWNER}).json()

    summary = body["summary"]
    assert summary["active_automations"] == 1
    assert summary["total_automations"] == 2
    assert summary["pending_approvals"] == 1
    assert summary["last_proposal_at"] == proposal["created_at"]
    assert summary["last_interaction_at"] is not None
    assert summary["last_price_sample_at"] == body["price_samples"][0]["ts"]
    assert [p["id"] for p in body["proposals"]] == [proposal["id"]]
    assert body["interactions"][0]["prompt"] == "Swap 0.1 SOL to USDC"
    assert body["price_samples"][0]["price"] == 150.0

    other = client.get("/activity", params={"owner": OTHER_OWNER}).json()
    assert other["proposals"] == []
    assert other["automations"] == []
    assert other["summary"]["pending_approvals"] == 0
