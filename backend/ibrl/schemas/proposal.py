from typing import Literal, Optional

from pydantic import BaseModel, Field

from ibrl.services.proposal_service import is_sendable, is_stale


class DecisionRequest(BaseModel):
    owner: str = Field(min_length=1, max_length=64)
    decision: Literal["SENT", "DENIED"]
    signature: Optional[str] = Field(default=None, max_length=128)


class RefreshRequest(BaseModel):
    owner: str = Field(min_length=1, max_length=64)


class DecisionResponse(BaseModel):
    ok: bool = True
    id: str
    status: str
    changed: bool


class ProposalResponse(BaseModel):
    """A proposal as the approval UI sees it. `stale` and `sendable` are computed at read time."""
    id: str
    owner: str
    automation_id: Optional[str] = None
    kind: str
    summary: str
    signal: Optional[str] = None
    intent: dict
    quote: dict
    tx_base64: str
    simulation: dict
    decision_report: dict
    created_by: str
    status: str
    signature: Optional[str] = None
    created_at: int
    updated_at: int
    stale: bool
    sendable: bool

    @classmethod
    def from_model(cls, proposal, now: int, stale_ms: int) -> "ProposalResponse":
        return cls(
            id=proposal.id,
            owner=proposal.owner,
            automation_id=proposal.automation_id,
            kind=proposal.kind,
            summary=proposal.summary,
            signal=proposal.signal,
            intent=proposal.intent_json,
            quote=proposal.quote_json,
            tx_base64=proposal.tx_base64,
            simulation=proposal.simulation_json,
            decision_report=proposal.decision_report_json,
            created_by=proposal.created_by,
            status=proposal.status,
            signature=proposal.signature,
            created_at=proposal.created_at,
            updated_at=proposal.updated_at,
            stale=is_stale(proposal, now, stale_ms),
            sendable=is_sendable(proposal, now, stale_ms),
        )
