"""Tests for the leave-credit ledger."""

from decimal import Decimal

import pytest

from hrflow.core.exceptions import InsufficientBalance, NotFound, ValidationError
from hrflow.db.session import atomic
from hrflow.models.enums import LedgerEntryKind
from hrflow.services.ledger import LeaveCreditLedger


@pytest.fixture
def ledger(db, clock) -> LeaveCreditLedger:
    return LeaveCreditLedger(db, clock)


@pytest.mark.asyncio
async def test_reserve_then_release_leaves_balance_untouched(ledger, make_employee):
    emp = await make_employee(credits="10")

    async with atomic(ledger.db):
        await ledger.reserve(emp.employee_id, Decimal("3"))
    assert await ledger.available(emp.employee_id) == Decimal("7")
    assert await ledger.balance(emp.employee_id) == Decimal("10")

    async with atomic(ledger.db):
        await ledger.release(emp.employee_id, Decimal("3"))
    assert await ledger.available(emp.employee_id) == Decimal("10")


@pytest.mark.asyncio
async def test_reserve_beyond_available_is_rejected(ledger, make_employee):
    emp = await make_employee(credits="5")
    async with atomic(ledger.db):
        await ledger.reserve(emp.employee_id, Decimal("4"))

    with pytest.raises(InsufficientBalance):
        async with atomic(ledger.db):
            await ledger.reserve(emp.employee_id, Decimal("2"))

    assert await ledger.available(emp.employee_id) == Decimal("1")


@pytest.mark.asyncio
async def test_debit_never_drives_balance_negative(ledger, make_employee):
    emp = await make_employee(credits="2")

    with pytest.raises(InsufficientBalance):
        async with atomic(ledger.db):
            await ledger.debit(emp.employee_id, Decimal("3"))

    assert await ledger.balance(emp.employee_id) == Decimal("2")


@pytest.mark.asyncio
async def test_debit_then_credit_round_trips(ledger, make_employee):
    emp = await make_employee(credits="8")

    async with atomic(ledger.db):
        await ledger.debit(emp.employee_id, Decimal("5"))
    assert await ledger.balance(emp.employee_id) == Decimal("3")

    async with atomic(ledger.db):
        await ledger.credit(emp.employee_id, Decimal("5"))
    assert await ledger.balance(emp.employee_id) == Decimal("8")


@pytest.mark.asyncio
async def test_non_positive_amounts_are_invalid(ledger, make_employee):
    emp = await make_employee(credits="8")
    for amount in (Decimal("0"), Decimal("-1")):
        with pytest.raises(ValidationError):
            async with atomic(ledger.db):
                await ledger.debit(emp.employee_id, amount)


@pytest.mark.asyncio
async def test_set_balance_cannot_undercut_reserved_credits(ledger, make_employee):
    emp = await make_employee(credits="10")
    async with atomic(ledger.db):
        await ledger.reserve(emp.employee_id, Decimal("4"))

    with pytest.raises(ValidationError):
        async with atomic(ledger.db):
            await ledger.set_balance(emp.employee_id, Decimal("3"), actor_id=emp.employee_id)
    with pytest.raises(ValidationError):
        async with atomic(ledger.db):
            await ledger.set_balance(emp.employee_id, Decimal("-1"), actor_id=emp.employee_id)

    async with atomic(ledger.db):
        await ledger.set_balance(emp.employee_id, Decimal("4"), actor_id=emp.employee_id)
    assert await ledger.available(emp.employee_id) == Decimal("0")


@pytest.mark.asyncio
async def test_every_mutation_is_journaled(ledger, make_employee):
    emp = await make_employee(credits="10")
    async with atomic(ledger.db):
        await ledger.reserve(emp.employee_id, Decimal("2"), request_id=None)
        await ledger.release(emp.employee_id, Decimal("2"))
        await ledger.debit(emp.employee_id, Decimal("2"))
        await ledger.credit(emp.employee_id, Decimal("1"))
        await ledger.set_balance(emp.employee_id, Decimal("12"), actor_id=emp.employee_id)

    history = await ledger.history(emp.employee_id)
    assert [e.kind for e in history] == [
        LedgerEntryKind.RESERVE.value,
        LedgerEntryKind.RELEASE.value,
        LedgerEntryKind.DEBIT.value,
        LedgerEntryKind.CREDIT.value,
        LedgerEntryKind.SET.value,
    ]
    assert [e.delta for e in history] == [
        Decimal("2"), Decimal("-2"), Decimal("-2"), Decimal("1"), Decimal("3"),
    ]
    assert history[-1].balance_after == Decimal("12")


@pytest.mark.asyncio
async def test_unknown_employee(ledger):
    with pytest.raises(NotFound):
        await ledger.balance(999)
