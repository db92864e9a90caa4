from sqlalchemy import Column, String

from ibrl.db.base import Base


class Meta(Base):
    __tablename__ = "meta"

    key = Column(String(64), primary_key=True)
    value = Column(String(255), nullable=False)
