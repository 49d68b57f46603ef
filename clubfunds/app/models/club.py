"""
Club database model.

A club is the root of the financial hierarchy. Its totals are derived
from every income and expense entry it owns and are only ever written by
the recalculation coordinator.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from clubfunds.app.db.session import Base


class Club(Base):
    """Club model with derived financial summary columns."""
    __tablename__ = "clubs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)

    # Derived summary (recomputed, never hand-edited)
    total_income = Column(Numeric(12, 2), default=0, nullable=False)
    total_expenses = Column(Numeric(12, 2), default=0, nullable=False)
    net_profit = Column(Numeric(12, 2), default=0, nullable=False)
    pending_expenses = Column(Numeric(12, 2), default=0, nullable=False)
    approved_expenses = Column(Numeric(12, 2), default=0, nullable=False)
    allocated_funds = Column(Numeric(12, 2), default=0, nullable=False)
    available_for_allocation = Column(Numeric(12, 2), default=0, nullable=False)
    summary_stale = Column(Boolean, default=False, nullable=False)
    summary_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Club(id={self.id}, name='{self.name}', net_profit={self.net_profit})>"
