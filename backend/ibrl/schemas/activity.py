from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ibrl.schemas.automation import AutomationResponse
from ibrl.schemas.proposal import ProposalResponse


class InteractionResponse(BaseModel):
    id: str
    prompt: str
    execute: bool
    ok: bool
    payload: Optional[dict] = None
    created_at: int

    model_config = ConfigDict(from_attributes=True)


class PriceSampleResponse(BaseModel):
    source: str
    price: float
    ts: int

    model_config = ConfigDict(from_attributes=True)


class ActivitySummary(BaseModel):
    active_automations: int
    total_automations: int
    pending_approvals: int
    last_proposal_at: Optional[int] = None
    last_interaction_at: Optional[int] = None
    last_price_sample_at: Optional[int] = None


class ActivityResponse(BaseModel):
    """Everything the agent did for one wallet lately, newest first."""
    owner: str
    summary: ActivitySummary
    proposals: List[ProposalResponse]
    interactions: List[InteractionResponse]
    automations: List[AutomationResponse]
    price_samples: List[PriceSampleResponse]


class HistoryResponse(BaseModel):
    owner: str
    interactions: List[InteractionResponse]
