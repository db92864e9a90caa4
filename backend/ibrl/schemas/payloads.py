"""Typed views over the JSON-blob columns of proposals and automations.

Blobs are written with ``PAYLOAD_VERSION``. Readers go through the ``load_*``
helpers, which refuse versions newer than this code understands so an old
deployment never misreads a newer shape.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ibrl.schemas.intent import parse_intent

PAYLOAD_VERSION = 1
REPORT_VERSION = "1"


class RouteSummary(BaseModel):
    hop_count: int = 0
    venues: List[str] = Field(default_factory=list)


class QuoteSnapshot(BaseModel):
    """Point-in-time swap quote. Amounts are base-unit integers."""
    model_config = ConfigDict(frozen=True)

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    min_out_amount: Optional[int] = None
    price_impact_pct: Optional[str] = None
    slippage_bps: int
    route: Optional[RouteSummary] = None


class SimulationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    err: Optional[Any] = None
    logs: List[str] = Field(default_factory=list)
    units_consumed: Optional[int] = None


class CheckResult(BaseModel):
    ok: bool
    reason: Optional[str] = None
    err: Optional[Any] = None


class ReportChecks(BaseModel):
    policy: CheckResult
    simulation: CheckResult


class ReportQuote(BaseModel):
    from_asset: str
    to_asset: str
    in_human: str
    out_human: str
    min_out_human: Optional[str] = None
    price_impact_pct: Optional[str] = None
    slippage_bps: int
    route: Optional[RouteSummary] = None


class ReportSignal(BaseModel):
    name: str
    rationale: str
    metrics: dict = Field(default_factory=dict)


class Scenario(BaseModel):
    if_price_moves_pct: int
    note: str


class ProposalHeader(BaseModel):
    kind: str
    summary: str


class DecisionReport(BaseModel):
    version: str = REPORT_VERSION
    generated_at: int
    owner: str
    prompt: str
    proposal: ProposalHeader
    checks: ReportChecks
    quote: Optional[ReportQuote] = None
    signal: Optional[ReportSignal] = None
    risks: List[str] = Field(default_factory=list)
    scenarios: List[Scenario] = Field(default_factory=list)
    sendable: bool
    markdown: str


def _check_version(version: Optional[int]) -> None:
    if version is not None and version > PAYLOAD_VERSION:
        raise ValueError(f"payload version {version} is newer than supported ({PAYLOAD_VERSION})")


def load_intent(raw, version: Optional[int] = PAYLOAD_VERSION):
    _check_version(version)
    return parse_intent(raw)


def load_quote(raw, version: Optional[int] = PAYLOAD_VERSION) -> QuoteSnapshot:
    _check_version(version)
    return QuoteSnapshot.model_validate(raw)


def load_simulation(raw, version: Optional[int] = PAYLOAD_VERSION) -> SimulationResult:
    _check_version(version)
    return SimulationResult.model_validate(raw)


def load_decision_report(raw, version: Optional[int] = PAYLOAD_VERSION) -> DecisionReport:
    _check_version(version)
    return DecisionReport.model_validate(raw)
