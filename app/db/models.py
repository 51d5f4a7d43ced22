from sqlalchemy import Column, DateTime, Float, String

from app.db.session import Base
from app.utils.time import utcnow


class PortfolioEntryRow(Base):
    __tablename__ = "portfolio_entries"

    # one row per coin; the primary key is what keeps entries unique
    coin_id = Column(String, primary_key=True)
    amount = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
