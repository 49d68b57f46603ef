"""
Event database model.
"""

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from clubfunds.app.db.session import Base


class Event(Base):
    """Fundraising event, optionally part of a campaign."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    club_id = Column(Integer, ForeignKey('clubs.id', ondelete="CASCADE"), nullable=False, index=True)
    campaign_id = Column(Integer, ForeignKey('campaigns.id', ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    goal_amount = Column(Numeric(12, 2), default=0, nullable=False)
    event_date = Column(Date, nullable=True)

    # Derived summary
    actual_amount = Column(Numeric(12, 2), default=0, nullable=False)
    total_expenses = Column(Numeric(12, 2), default=0, nullable=False)
    net_profit = Column(Numeric(12, 2), default=0, nullable=False)
    summary_stale = Column(Boolean, default=False, nullable=False)
    summary_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}', campaign_id={self.campaign_id})>"
