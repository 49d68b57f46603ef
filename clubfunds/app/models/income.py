"""
Income database model.

At most one of campaign_id / event_id is set; neither means club-level income.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from clubfunds.app.db.session import Base
from clubfunds.app.models.ledger_enums import IncomePaymentMethod


class Income(Base):
    """
    Income model.

    Always realized (no approval status). Entries with payment method
    ALLOCATED_FUNDS are transfers of club money to a campaign or event.
    """
    __tablename__ = "income"
    __table_args__ = (
        CheckConstraint(
            "campaign_id IS NULL OR event_id IS NULL",
            name="ck_income_single_level",
        ),
        CheckConstraint("amount > 0", name="ck_income_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    club_id = Column(Integer, ForeignKey('clubs.id', ondelete="CASCADE"), nullable=False, index=True)
    campaign_id = Column(Integer, ForeignKey('campaigns.id', ondelete="CASCADE"), nullable=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete="CASCADE"), nullable=True, index=True)

    # Entry details
    source = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, index=True)
    payment_method = Column(Enum(IncomePaymentMethod), default=IncomePaymentMethod.CASH, nullable=False)
    reference = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Income(id={self.id}, source='{self.source}', amount={self.amount})>"
