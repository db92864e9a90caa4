"""Intent schema - the closed set of things a wallet owner can ask for.

Every intent is an immutable, tagged variant discriminated on ``kind``.
Monetary amounts are Decimals; JSON uses the camelCase field names
(``slippageBps``, ``thresholdUsd``, ``intervalMinutes``, ``from``, ``to``).
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class IntentKind(str, Enum):
    CHAT = "CHAT"
    PORTFOLIO_QA = "PORTFOLIO_QA"
    SWAP = "SWAP"
    EXIT_TO_USDC = "EXIT_TO_USDC"
    PRICE_TRIGGER_EXIT = "PRICE_TRIGGER_EXIT"
    PRICE_TRIGGER_ENTRY = "PRICE_TRIGGER_ENTRY"
    DCA_SWAP = "DCA_SWAP"
    UNSUPPORTED = "UNSUPPORTED"


class Asset(str, Enum):
    SOL = "SOL"
    USDC = "USDC"


AUTOMATION_KINDS = frozenset({
    IntentKind.PRICE_TRIGGER_EXIT,
    IntentKind.PRICE_TRIGGER_ENTRY,
    IntentKind.DCA_SWAP,
})

DEFAULT_SLIPPAGE_BPS = 50

SlippageBps = Annotated[int, Field(ge=1, le=200, alias="slippageBps")]


class Amount(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Decimal = Field(gt=0)
    unit: Asset

    @field_validator("value", mode="before")
    @classmethod
    def float_via_str(cls, v):
        # Floats are routed through str() so 0.1 stays 0.1 instead of 0.1000000000000000055
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class _IntentBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class ChatIntent(_IntentBase):
    kind: Literal["CHAT"] = "CHAT"
    message: str = Field(min_length=1)


class PortfolioQaIntent(_IntentBase):
    kind: Literal["PORTFOLIO_QA"] = "PORTFOLIO_QA"
    question: str = Field(min_length=1)


class SwapIntent(_IntentBase):
    kind: Literal["SWAP"] = "SWAP"
    from_asset: Asset = Field(alias="from")
    to_asset: Asset = Field(alias="to")
    amount: Amount
    slippage_bps: SlippageBps = DEFAULT_SLIPPAGE_BPS


class ExitToUsdcIntent(_IntentBase):
    kind: Literal["EXIT_TO_USDC"] = "EXIT_TO_USDC"
    amount: Amount
    slippage_bps: SlippageBps = DEFAULT_SLIPPAGE_BPS


class PriceTriggerExitIntent(_IntentBase):
    kind: Literal["PRICE_TRIGGER_EXIT"] = "PRICE_TRIGGER_EXIT"
    amount: Amount
    slippage_bps: SlippageBps = DEFAULT_SLIPPAGE_BPS
    threshold_usd: Decimal = Field(gt=0, alias="thresholdUsd")


class PriceTriggerEntryIntent(_IntentBase):
    kind: Literal["PRICE_TRIGGER_ENTRY"] = "PRICE_TRIGGER_ENTRY"
    amount: Amount
    slippage_bps: SlippageBps = DEFAULT_SLIPPAGE_BPS
    threshold_usd: Decimal = Field(gt=0, alias="thresholdUsd")


class DcaSwapIntent(_IntentBase):
    kind: Literal["DCA_SWAP"] = "DCA_SWAP"
    from_asset: Asset = Field(alias="from")
    to_asset: Asset = Field(alias="to")
    amount: Amount
    slippage_bps: SlippageBps = DEFAULT_SLIPPAGE_BPS
    interval_minutes: int = Field(ge=5, le=1440, alias="intervalMinutes")


class UnsupportedIntent(_IntentBase):
    kind: Literal["UNSUPPORTED"] = "UNSUPPORTED"
    reason: str = Field(min_length=1)


Intent = Annotated[
    Union[
        ChatIntent,
        PortfolioQaIntent,
        SwapIntent,
        ExitToUsdcIntent,
        PriceTriggerExitIntent,
        PriceTriggerEntryIntent,
        DcaSwapIntent,
        UnsupportedIntent,
    ],
    Field(discriminator="kind"),
]

_intent_adapter: TypeAdapter = TypeAdapter(Intent)


def parse_intent(data) -> "Intent":
    """Validate a dict (or JSON string) into a typed intent.

    Raises pydantic.ValidationError on any schema violation.
    """
    if isinstance(data, (str, bytes)):
        return _intent_adapter.validate_json(data)
    return _intent_adapter.validate_python(data)


def intent_to_dict(intent) -> dict:
    """JSON-safe dict using wire field names. Decimals become strings."""
    return intent.model_dump(mode="json", by_alias=True)


class IntentRequest(BaseModel):
    """POST /intent body. Owner may be absent for chat-only use."""
    owner: Optional[str] = Field(default=None, max_length=64)
    prompt: str = Field(min_length=1, max_length=2000)
    execute: bool = False

    @field_validator("owner")
    @classmethod
    def blank_owner_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None
