"""
Proposal: a concrete, simulated, signable transaction awaiting human approval.
Status flow: PENDING_APPROVAL -> SENT | DENIED (both terminal).
Trust: nothing is broadcast by the backend; the owner signs in-wallet.
"""
from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.types import JSON

from ibrl.db.base import Base
from ibrl.schemas.payloads import (
    PAYLOAD_VERSION,
    load_decision_report,
    load_intent,
    load_quote,
    load_simulation,
)

PENDING_APPROVAL = "PENDING_APPROVAL"
SENT = "SENT"
DENIED = "DENIED"


class Proposal(Base):
    __tablename__ = "proposals"

    id = Column(String(36), primary_key=True)
    owner = Column(String(64), nullable=False)
    automation_id = Column(String(36), ForeignKey("automations.id", ondelete="SET NULL"), nullable=True)
    kind = Column(String(32), nullable=False)
    summary = Column(Text, nullable=False)
    signal = Column(String(32), nullable=True)  # detector that fired it, if autonomous
    intent_json = Column(JSON, nullable=False)
    quote_json = Column(JSON, nullable=False)
    tx_base64 = Column(Text, nullable=False)
    simulation_json = Column(JSON, nullable=False)
    decision_report_json = Column(JSON, nullable=False)
    payload_version = Column(Integer, nullable=False, default=PAYLOAD_VERSION)
    created_by = Column(String(8), nullable=False, default="agent")  # agent | user
    status = Column(String(24), nullable=False, default=PENDING_APPROVAL)
    signature = Column(String(128), nullable=True)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("proposals_owner_status_idx", "owner", "status"),
        Index("proposals_owner_created_idx", "owner", "created_at"),
        # At most one pending proposal per automation
        Index(
            "proposals_one_pending_per_automation",
            "automation_id",
            unique=True,
            sqlite_where=text("status = 'PENDING_APPROVAL'"),
            postgresql_where=text("status = 'PENDING_APPROVAL'"),
        ),
    )

    @property
    def intent(self):
        return load_intent(self.intent_json, self.payload_version)

    @property
    def quote(self):
        return load_quote(self.quote_json, self.payload_version)

    @property
    def simulation(self):
        return load_simulation(self.simulation_json, self.payload_version)

    @property
    def decision_report(self):
        return load_decision_report(self.decision_report_json, self.payload_version)

    def __repr__(self):
        return f"<Proposal id={self.id} owner={self.owner} kind={self.kind} status={self.status}>"
