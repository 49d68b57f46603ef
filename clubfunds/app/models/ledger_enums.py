"""
Ledger enumerations: entry kinds, payment methods, expense status, ownership level.
"""

import enum


class LedgerKind(str, enum.Enum):
    """Which ledger table an entry lives in."""
    INCOME = "income"
    EXPENSE = "expense"


class IncomePaymentMethod(str, enum.Enum):
    """Payment methods accepted on income."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CHEQUE = "cheque"
    INSTANT = "instant"
    SPONSORSHIP = "sponsorship"
    DONATION = "donation"
    TICKET_SALES = "ticket_sales"
    ALLOCATED_FUNDS = "allocated_funds"  # Club money moved down to a campaign/event
    OTHER = "other"


class ExpensePaymentMethod(str, enum.Enum):
    """Payment methods accepted on expenses."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CHEQUE = "cheque"
    INSTANT = "instant"
    OTHER = "other"


class ExpenseStatus(str, enum.Enum):
    """Expense approval workflow: PENDING -> APPROVED -> PAID."""
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class OwnershipLevel(str, enum.Enum):
    """
    Hierarchy node an entry is attributed to.

    Derived from the entry's foreign keys, never stored.
    """
    CLUB = "club"
    CAMPAIGN = "campaign"
    EVENT = "event"


ALLOCATED_FUNDS_SOURCE = "Allocated Funds"
