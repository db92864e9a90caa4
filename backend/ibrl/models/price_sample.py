from sqlalchemy import BigInteger, Column, Float, Index, Integer, String

from ibrl.db.base import Base


class PriceSample(Base):
    """Append-only SOL/USD observation. Never updated; pruned past retention."""
    __tablename__ = "price_samples"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(32), nullable=False)
    price = Column(Float, nullable=False)
    ts = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("price_samples_ts_idx", "ts"),
    )
