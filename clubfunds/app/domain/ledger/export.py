"""
CSV export and currency formatting for ledger entries.
"""

import csv
import io
from decimal import Decimal
from typing import Iterable, List, Sequence

from clubfunds.app.domain.ledger.coercion import coerce_amount
from clubfunds.app.domain.ledger.records import IncomeEntry, ExpenseEntry

INCOME_COLUMNS = ["Date", "Source", "Description", "Amount", "Payment Method", "Reference"]
EXPENSE_COLUMNS = ["Date", "Category", "Description", "Amount", "Vendor", "Payment Method", "Status"]

CURRENCY_SYMBOLS = {
    "EUR": "€",
    "GBP": "£",
    "USD": "$",
    "CHF": "CHF ",
    "JPY": "¥",
}


def _to_csv(header: Sequence[str], rows: Iterable[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def income_to_csv(entries: Iterable[IncomeEntry]) -> str:
    return _to_csv(INCOME_COLUMNS, (
        [
            e.date.isoformat(),
            e.source,
            e.description,
            str(e.amount),
            e.payment_method.value,
            e.reference or "",
        ]
        for e in entries
    ))


def expenses_to_csv(entries: Iterable[ExpenseEntry]) -> str:
    return _to_csv(EXPENSE_COLUMNS, (
        [
            e.date.isoformat(),
            e.category,
            e.description,
            str(e.amount),
            e.vendor or "",
            e.payment_method.value,
            e.status.value,
        ]
        for e in entries
    ))


def format_currency(amount, currency_code: str) -> str:
    """
    Format an amount for display, e.g. ``format_currency(1234.5, "EUR")`` -> ``"€1,234.50"``.

    Unknown codes are written as a prefix: ``"SEK 10.00"``.
    """
    value: Decimal = coerce_amount(amount)
    code = currency_code.upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
