"""Price samples. Append-only; read as a sliding window by the detectors."""
from dataclasses import dataclass
from typing import List

from sqlalchemy.orm import Session

from ibrl.models.price_sample import PriceSample


@dataclass(frozen=True)
class PricePoint:
    ts: int
    price: float


def record_sample(db: Session, price: float, ts: int, source: str = "pyth") -> PriceSample:
    sample = PriceSample(source=source, price=float(price), ts=ts)
    db.add(sample)
    db.commit()
    return sample


def samples_since(db: Session, since_ts: int, limit: int = 500) -> List[PricePoint]:
    """Most recent `limit` samples with ts >= since_ts, oldest first."""
    rows = (
        db.query(PriceSample.ts, PriceSample.price)
        .filter(PriceSample.ts >= since_ts)
        .order_by(PriceSample.ts.desc(), PriceSample.id.desc())
        .limit(limit)
        .all()
    )
    return [PricePoint(ts=ts, price=price) for ts, price in reversed(rows)]


def prune_samples(db: Session, before_ts: int) -> int:
    deleted = db.query(PriceSample).filter(PriceSample.ts < before_ts).delete(synchronize_session=False)
    db.commit()
    return deleted


def recent_samples(db: Session, since_ts: int, limit: int = 200) -> List[PriceSample]:
    """Raw sample rows with ts >= since_ts, newest first."""
    return (
        db.query(PriceSample)
        .filter(PriceSample.ts >= since_ts)
        .order_by(PriceSample.ts.desc(), PriceSample.id.desc())
        .limit(limit)
        .all()
    )
