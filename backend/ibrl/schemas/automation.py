from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AutomationCreate(BaseModel):
    """Arm a standing rule from a prompt or a structured intent."""
    owner: str = Field(min_length=1, max_length=64)
    prompt: Optional[str] = Field(default=None, max_length=2000)
    intent: Optional[dict] = None

    @model_validator(mode="after")
    def require_prompt_or_intent(self):
        if not (self.prompt and self.prompt.strip()) and not self.intent:
            raise ValueError("prompt or intent required")
        return self


class AutomationAction(BaseModel):
    owner: str = Field(min_length=1, max_length=64)
    action: Literal["PAUSE", "RESUME"]


class AutomationResponse(BaseModel):
    id: str
    owner: str
    kind: str
    config: dict
    status: str
    created_at: int
    updated_at: int
    last_fired_at: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class AutomationDeleted(BaseModel):
    ok: bool = True
    id: str
    detached_proposals: int
