"""
Allocation guard.

Reports whether a club can move more of its money down to a campaign or
event, and builds the "Allocated Funds" income entries that record such
moves. The check is advisory: it reports, it never raises for an overrun.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from pydantic import BaseModel

from clubfunds.app.core.exceptions import ValidationError
from clubfunds.app.domain.ledger.coercion import coerce_amount, quantize, ZERO
from clubfunds.app.domain.ledger.hierarchy import HierarchyResolver
from clubfunds.app.domain.ledger.records import IncomeEntry
from clubfunds.app.domain.ledger.rollup import allocation_totals
from clubfunds.app.models.ledger_enums import (
    ALLOCATED_FUNDS_SOURCE,
    IncomePaymentMethod,
    LedgerKind,
    OwnershipLevel,
)

logger = logging.getLogger(__name__)


def available_for_allocation(income: Iterable[IncomeEntry]) -> Decimal:
    """Received income minus what has already been allocated, floored at zero."""
    received, allocated = allocation_totals(income)
    return max(ZERO, quantize(received - allocated))


class AllocationCheck(BaseModel):
    club_id: int
    can_allocate: bool
    total_income: Decimal
    total_allocated: Decimal
    available: Decimal
    requested: Decimal
    partial: bool = False
    failed_scopes: List[str] = []
    warning: Optional[str] = None


class AllocationGuard:
    """
    Soft guard over club allocations.

    Args:
        resolver: used to gather the club's income across every level
    """

    def __init__(self, resolver: HierarchyResolver):
        self._resolver = resolver

    async def check_allocation(self, club_id: int, requested) -> AllocationCheck:
        """
        Compare a requested allocation with what the club still holds.

        ``can_allocate`` is ``requested <= available``; the caller decides
        whether to block or warn.

        Raises:
            ValidationError: when the requested amount is not positive
        """
        requested = coerce_amount(requested)
        if requested <= ZERO:
            raise ValidationError(["Amount must be greater than 0"])
        collection = await self._resolver.collect_for_club(LedgerKind.INCOME, club_id)
        own_income = [e for e in collection.entries if e.club_id == club_id]
        received, allocated = allocation_totals(own_income)
        available = quantize(received - allocated)

        can_allocate = requested <= available
        warning = None
        if not can_allocate:
            warning = (
                f"Requested allocation of {requested} exceeds the {max(available, ZERO)} "
                f"available for allocation"
            )
            logger.warning("Allocation overrun for club %s: requested=%s available=%s",
                           club_id, requested, available)
        if collection.partial:
            partial_note = "Some ledger scopes could not be read; available funds may be inaccurate"
            warning = f"{warning}. {partial_note}" if warning else partial_note

        return AllocationCheck(
            club_id=club_id,
            can_allocate=can_allocate,
            total_income=received,
            total_allocated=allocated,
            available=max(available, ZERO),
            requested=requested,
            partial=collection.partial,
            failed_scopes=collection.failed_scopes,
            warning=warning,
        )

    async def allocate(
        self,
        club_id: int,
        level: OwnershipLevel,
        target_id: int,
        amount,
        description: str,
        on_date=None,
    ) -> IncomeEntry:
        """
        Record an allocation as income at a campaign or event.

        Goes through the normal creation path and does not re-check
        availability; call ``check_allocation`` first.
        """
        if level == OwnershipLevel.CLUB:
            raise ValidationError(["Allocations must target a campaign or an event"])

        payload = {
            "source": ALLOCATED_FUNDS_SOURCE,
            "description": description,
            "amount": amount,
            "date": on_date or date.today(),
            "payment_method": IncomePaymentMethod.ALLOCATED_FUNDS.value,
            "campaign_id": target_id if level == OwnershipLevel.CAMPAIGN else None,
            "event_id": target_id if level == OwnershipLevel.EVENT else None,
        }
        return await self._resolver.create_entry(LedgerKind.INCOME, club_id, payload)
