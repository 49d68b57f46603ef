"""
Expense database model.

At most one of campaign_id / event_id is set; neither means club-level expense.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from clubfunds.app.db.session import Base
from clubfunds.app.models.ledger_enums import ExpensePaymentMethod, ExpenseStatus


class Expense(Base):
    """
    Expense model.

    Follows an approval workflow: PENDING -> APPROVED -> PAID.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint(
            "campaign_id IS NULL OR event_id IS NULL",
            name="ck_expense_single_level",
        ),
        CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    club_id = Column(Integer, ForeignKey('clubs.id', ondelete="CASCADE"), nullable=False, index=True)
    campaign_id = Column(Integer, ForeignKey('campaigns.id', ondelete="CASCADE"), nullable=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete="CASCADE"), nullable=True, index=True)

    # Entry details
    category = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, index=True)
    vendor = Column(String(200), nullable=True)
    payment_method = Column(Enum(ExpensePaymentMethod), default=ExpensePaymentMethod.CARD, nullable=False)
    status = Column(Enum(ExpenseStatus), default=ExpenseStatus.PENDING, nullable=False, index=True)
    receipt_url = Column(String(500), nullable=True)
    created_by = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Expense(id={self.id}, category='{self.category}', status='{self.status.value}', amount={self.amount})>"
