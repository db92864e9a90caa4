"""
Automation: a standing, user-armed rule (price trigger or DCA schedule).
Evaluated every tick while ACTIVE. Status flow: ACTIVE <-> PAUSED, deletable.
Deleting an automation detaches its proposals; they stay for audit.
"""
from sqlalchemy import BigInteger, Column, Index, Integer, String
from sqlalchemy.types import JSON

from ibrl.db.base import Base
from ibrl.schemas.payloads import PAYLOAD_VERSION, load_intent


class Automation(Base):
    __tablename__ = "automations"

    id = Column(String(36), primary_key=True)
    owner = Column(String(64), nullable=False, index=True)
    kind = Column(String(32), nullable=False)  # PRICE_TRIGGER_EXIT | PRICE_TRIGGER_ENTRY | DCA_SWAP
    config = Column(JSON, nullable=False)  # serialized Intent
    payload_version = Column(Integer, nullable=False, default=PAYLOAD_VERSION)
    status = Column(String(16), nullable=False, default="ACTIVE")  # ACTIVE | PAUSED
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    last_fired_at = Column(BigInteger, nullable=True)

    __table_args__ = (
        Index("automations_status_idx", "status"),
    )

    @property
    def intent(self):
        return load_intent(self.config, self.payload_version)

    def __repr__(self):
        return f"<Automation id={self.id} owner={self.owner} kind={self.kind} status={self.status}>"
