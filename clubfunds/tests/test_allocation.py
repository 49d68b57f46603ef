"""
Tests for the allocation guard and the allocation hard-block setting.
"""

from decimal import Decimal

import pytest

from clubfunds.app.core.exceptions import AllocationOverrunError, PartialFetchFailure, ValidationError
from clubfunds.app.domain.ledger.allocation import AllocationGuard, available_for_allocation
from clubfunds.app.domain.ledger.hierarchy import HierarchyResolver
from clubfunds.app.models.ledger_enums import (
    ALLOCATED_FUNDS_SOURCE,
    IncomePaymentMethod,
    LedgerKind,
    OwnershipLevel,
)
from clubfunds.app.services.financials import FinancialService
from clubfunds.app.services.recompute_locks import RecomputeLockRegistry


@pytest.fixture
def resolver(memory_store):
    return HierarchyResolver(memory_store, concurrency=5, fetch_timeout=1.0)


@pytest.fixture
def guard(resolver):
    return AllocationGuard(resolver)


async def fund_club(resolver, amount="2000"):
    return await resolver.create_entry(LedgerKind.INCOME, 1, {
        "source": "Sponsorship", "description": "Main sponsor", "amount": amount, "date": "2024-01-10",
        "payment_method": "sponsorship",
    })


async def test_overrun_is_reported_not_raised(guard, resolver):
    await fund_club(resolver)
    await guard.allocate(1, OwnershipLevel.CAMPAIGN, 10, "1500", "Boathouse seed money")

    check = await guard.check_allocation(1, 600)

    assert check.can_allocate is False
    assert check.total_income == Decimal("2000.00")
    assert check.total_allocated == Decimal("1500.00")
    assert check.available == Decimal("500.00")
    assert check.requested == Decimal("600.00")
    assert check.warning is not None


async def test_allocation_within_available(guard, resolver):
    await fund_club(resolver)

    check = await guard.check_allocation(1, "2000")

    assert check.can_allocate is True
    assert check.warning is None


async def test_allocate_records_allocated_funds_income(guard, resolver, memory_store):
    await fund_club(resolver)

    entry = await guard.allocate(1, OwnershipLevel.EVENT, 100, 250, "Gala float")

    assert entry.source == ALLOCATED_FUNDS_SOURCE
    assert entry.payment_method == IncomePaymentMethod.ALLOCATED_FUNDS
    assert entry.event_id == 100 and entry.campaign_id is None
    assert memory_store.entries[LedgerKind.INCOME][entry.id] == entry


async def test_allocate_rejects_club_level(guard):
    with pytest.raises(ValidationError):
        await guard.allocate(1, OwnershipLevel.CLUB, 1, 10, "Nowhere")


async def test_allocations_never_exceed_received_income(guard, resolver):
    await fund_club(resolver, "300")
    await guard.allocate(1, OwnershipLevel.CAMPAIGN, 10, "120", "Part one")
    await guard.allocate(1, OwnershipLevel.EVENT, 200, "180", "Part two")

    check = await guard.check_allocation(1, "0.01")

    assert check.available == Decimal("0.00")
    assert check.can_allocate is False


async def test_allocated_income_does_not_count_as_received(resolver):
    await fund_club(resolver, "100")
    collection = await resolver.collect_for_club(LedgerKind.INCOME, 1)
    assert available_for_allocation(collection.entries) == Decimal("100.00")

    await resolver.create_entry(LedgerKind.INCOME, 1, {
        "source": ALLOCATED_FUNDS_SOURCE, "description": "Down", "amount": 40, "date": "2024-02-01",
        "payment_method": "allocated_funds", "campaign_id": 10,
    })
    collection = await resolver.collect_for_club(LedgerKind.INCOME, 1)
    assert available_for_allocation(collection.entries) == Decimal("60.00")


async def test_partial_read_is_flagged(guard, resolver, memory_store):
    await fund_club(resolver)
    memory_store.fail("campaign:10")

    check = await guard.check_allocation(1, 10)

    assert check.partial is True
    assert "could not be read" in check.warning


async def test_hard_block_rejects_overrun(memory_store, mock_redis):
    service = FinancialService(memory_store, RecomputeLockRegistry(mock_redis), hard_block=True)
    await service.create_entry(LedgerKind.INCOME, 1, {
        "source": "Raffle", "description": "Spring raffle", "amount": 100, "date": "2024-03-01",
    })

    with pytest.raises(AllocationOverrunError) as exc_info:
        await service.allocate(1, OwnershipLevel.CAMPAIGN, 10, 150, "Too much")

    assert exc_info.value.status_code == 409
    # nothing was written for the rejected allocation
    assert len(memory_store.entries[LedgerKind.INCOME]) == 1


async def test_advisory_mode_records_overrun_with_warning(memory_store, mock_redis):
    service = FinancialService(memory_store, RecomputeLockRegistry(mock_redis), hard_block=False)

    entry, check, outcome = await service.allocate(1, OwnershipLevel.CAMPAIGN, 10, 150, "No funds yet")

    assert check.can_allocate is False
    assert entry.amount == Decimal("150.00")
    assert outcome.stale is False


async def test_allocated_funds_income_is_guarded_on_create(memory_store, mock_redis):
    service = FinancialService(memory_store, RecomputeLockRegistry(mock_redis), hard_block=True)

    with pytest.raises(AllocationOverrunError):
        await service.create_entry(LedgerKind.INCOME, 1, {
            "source": ALLOCATED_FUNDS_SOURCE, "description": "Down", "amount": 40, "date": "2024-02-01",
            "payment_method": "allocated-funds", "event_id": 100,
        })


@pytest.mark.parametrize("requested", ["0", "-50", 0])
async def test_check_rejects_non_positive_amounts(guard, resolver, requested):
    await fund_club(resolver)

    with pytest.raises(ValidationError) as exc_info:
        await guard.check_allocation(1, requested)

    assert exc_info.value.errors == ["Amount must be greater than 0"]


async def test_hard_block_refuses_when_allocations_cannot_be_read(memory_store, mock_redis):
    service = FinancialService(memory_store, RecomputeLockRegistry(mock_redis), hard_block=True)
    await service.create_entry(LedgerKind.INCOME, 1, {
        "source": "Sponsorship", "description": "Main sponsor", "amount": 2000, "date": "2024-01-10",
    })
    await service.allocate(1, OwnershipLevel.CAMPAIGN, 10, 1500, "Boathouse seed money")
    memory_store.fail("campaign:10")

    with pytest.raises(PartialFetchFailure) as exc_info:
        await service.allocate(1, OwnershipLevel.EVENT, 200, 1500, "Quiz float")

    assert exc_info.value.status_code == 503
    assert exc_info.value.failed_scopes == ["campaign:10"]
    assert len(memory_store.entries[LedgerKind.INCOME]) == 2


async def test_advisory_mode_allows_partial_read_with_warning(memory_store, mock_redis):
    service = FinancialService(memory_store, RecomputeLockRegistry(mock_redis), hard_block=False)
    await service.create_entry(LedgerKind.INCOME, 1, {
        "source": "Sponsorship", "description": "Main sponsor", "amount": 2000, "date": "2024-01-10",
    })
    memory_store.fail("campaign:10")

    entry, check, _ = await service.allocate(1, OwnershipLevel.EVENT, 200, 100, "Quiz float")

    assert check.partial is True
    assert check.failed_scopes == ["campaign:10"]
    assert entry.amount == Decimal("100.00")
