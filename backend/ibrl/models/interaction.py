from sqlalchemy import BigInteger, Boolean, Column, Index, String, Text
from sqlalchemy.types import JSON

from ibrl.db.base import Base


class Interaction(Base):
    """
    One natural-language request from a wallet.

    Owners with a recent interaction are tracked by the tick loop, and the
    USDC-buffer detector only serves owners active in the last 7 days.
    """
    __tablename__ = "interactions"

    id = Column(String(36), primary_key=True)
    owner = Column(String(64), nullable=True)
    prompt = Column(Text, nullable=False)
    execute = Column(Boolean, nullable=False, default=False)
    ok = Column(Boolean, nullable=False, default=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("interactions_owner_created_idx", "owner", "created_at"),
    )
