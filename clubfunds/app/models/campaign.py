"""
Campaign database model.

A campaign groups events under a fundraising target.
"""

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from clubfunds.app.db.session import Base


class Campaign(Base):
    """
    Campaign model.

    total_raised/total_expenses include the campaign's own entries plus
    those of every event that belongs to it.
    """
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    club_id = Column(Integer, ForeignKey('clubs.id', ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    target_amount = Column(Numeric(12, 2), default=0, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    # Derived summary
    total_raised = Column(Numeric(12, 2), default=0, nullable=False)
    total_expenses = Column(Numeric(12, 2), default=0, nullable=False)
    total_profit = Column(Numeric(12, 2), default=0, nullable=False)
    progress_percentage = Column(Numeric(5, 2), default=0, nullable=False)
    summary_stale = Column(Boolean, default=False, nullable=False)
    summary_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Campaign(id={self.id}, name='{self.name}', club_id={self.club_id})>"
