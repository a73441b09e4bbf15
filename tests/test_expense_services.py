from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from household.core.errors import Forbidden, NotFound, ValidationError
from household.models.contribution import Contribution
from household.models.enums import Currency, RecurrenceInterval
from household.schemas.expense import ExpenseCreate, ExpenseUpdate
from household.services.contribution_services import record_contribution
from household.services.expense_services import (
    create_expense,
    delete_expense,
    edit_expense,
    get_expense_by_id,
    get_group_ledger,
    list_group_expenses,
    load_expense,
)


async def _rent(db, flat, **overrides):
    data = {"title": "Rent", "value": Decimal("1200"), "group_id": flat["group"].id}
    data.update(overrides)
    return await create_expense(db, ExpenseCreate(**data), flat["alice"].id)


@pytest.mark.asyncio
async def test_rent_balance_after_one_contribution(db, flat):
    expense = await _rent(db, flat)
    await record_contribution(db, expense.id, flat["bob"].id, 400)

    expense = await load_expense(db, expense.id)
    assert expense.balance == Decimal("800")
    assert expense.contributed == Decimal("400")


@pytest.mark.asyncio
async def test_create_defaults_currency_and_recurrence(db, flat):
    expense = await _rent(db, flat)

    assert expense.currency == Currency.USD
    assert expense.recurrence_interval == RecurrenceInterval.NONE
    assert expense.is_recurring is False
    assert expense.contributions == []
    assert expense.balance == Decimal("1200")


@pytest.mark.asyncio
async def test_create_with_explicit_fields(db, flat):
    expense = await _rent(
        db, flat,
        currency=Currency.RON,
        is_recurring=True,
        recurrence_interval=RecurrenceInterval.MONTHLY,
        due=date(2026, 11, 1),
        description="November",
    )

    assert expense.currency == Currency.RON
    assert expense.recurrence_interval == RecurrenceInterval.MONTHLY
    assert expense.is_recurring is True
    assert expense.due == date(2026, 11, 1)


@pytest.mark.asyncio
async def test_create_rejects_unknown_currency(db, flat):
    data = ExpenseCreate.model_construct(
        title="Rent", value=Decimal("10"), group_id=flat["group"].id,
        currency="DOGE", recurrence_interval=None, is_recurring=False, description=None, due=None,
    )
    with pytest.raises(ValidationError):
        await create_expense(db, data, flat["alice"].id)


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"title": None},
    {"title": "   "},
    {"value": None},
    {"group_id": None},
    {"value": Decimal("0")},
    {"value": Decimal("-10")},
])
async def test_create_validation(db, flat, overrides):
    with pytest.raises(ValidationError):
        await _rent(db, flat, **overrides)


@pytest.mark.asyncio
async def test_create_requires_membership(db, flat):
    data = ExpenseCreate(title="Rent", value=Decimal("10"), group_id=flat["group"].id)
    with pytest.raises(Forbidden):
        await create_expense(db, data, flat["carol"].id)

    data = ExpenseCreate(title="Rent", value=Decimal("10"), group_id=9999)
    with pytest.raises(NotFound):
        await create_expense(db, data, flat["alice"].id)


@pytest.mark.asyncio
async def test_update_writes_only_given_fields(db, flat):
    expense = await _rent(db, flat, description="flat rent")

    updated = await edit_expense(db, ExpenseUpdate(title="Rent (Nov)"), expense.id, flat["bob"].id)

    assert updated.title == "Rent (Nov)"
    assert updated.value == Decimal("1200")
    assert updated.description == "flat rent"
    assert updated.currency == Currency.USD


@pytest.mark.asyncio
async def test_update_value_and_enum(db, flat):
    expense = await _rent(db, flat)

    updated = await edit_expense(
        db, ExpenseUpdate(value=Decimal("1300.5"), currency=Currency.EUR), expense.id, flat["alice"].id
    )

    assert updated.value == Decimal("1300.50")
    assert updated.currency == Currency.EUR


@pytest.mark.asyncio
async def test_update_errors(db, flat):
    expense = await _rent(db, flat)

    with pytest.raises(ValidationError):
        await edit_expense(db, ExpenseUpdate(), expense.id, flat["alice"].id)

    with pytest.raises(ValidationError):
        await edit_expense(db, ExpenseUpdate(value=Decimal("-1")), expense.id, flat["alice"].id)

    with pytest.raises(NotFound):
        await edit_expense(db, ExpenseUpdate(title="x"), 9999, flat["alice"].id)

    with pytest.raises(Forbidden):
        await edit_expense(db, ExpenseUpdate(title="x"), expense.id, flat["carol"].id)


@pytest.mark.asyncio
async def test_delete_cascades_contributions(db, flat):
    expense = await _rent(db, flat)
    expense_id = expense.id
    await record_contribution(db, expense_id, flat["bob"].id, 100)

    assert await delete_expense(db, expense_id, flat["alice"].id) == {"status": "deleted"}

    with pytest.raises(NotFound):
        await get_expense_by_id(db, expense_id, flat["alice"].id)

    remaining = await db.execute(select(func.count(Contribution.id)))
    assert remaining.scalar_one() == 0

    with pytest.raises(NotFound):
        await delete_expense(db, expense_id, flat["alice"].id)


@pytest.mark.asyncio
async def test_list_group_expenses_newest_first(db, flat):
    first = await _rent(db, flat)
    second = await _rent(db, flat, title="Internet", value=Decimal("30"))

    expenses = await list_group_expenses(db, flat["group"].id, flat["bob"].id)

    assert [e.id for e in expenses] == [second.id, first.id]

    with pytest.raises(Forbidden):
        await list_group_expenses(db, flat["group"].id, flat["carol"].id)


@pytest.mark.asyncio
async def test_group_ledger_per_currency_and_member(db, flat):
    rent = await _rent(db, flat)
    trip = await _rent(db, flat, title="Trip", value=Decimal("300"), currency=Currency.EUR)

    await record_contribution(db, rent.id, flat["alice"].id, 500)
    await record_contribution(db, rent.id, flat["bob"].id, 200)
    await record_contribution(db, trip.id, flat["bob"].id, "50.25")

    ledger = await get_group_ledger(db, flat["group"].id, flat["alice"].id)

    assert ledger["totals"][Currency.USD] == {
        "value": Decimal("1200.00"),
        "contributed": Decimal("700.00"),
        "balance": Decimal("500.00"),
    }
    assert ledger["totals"][Currency.EUR]["balance"] == Decimal("249.75")

    by_member = {m["username"]: m["contributed"] for m in ledger["members"]}
    assert by_member["alice"] == {Currency.USD: Decimal("500.00")}
    assert by_member["bob"] == {Currency.USD: Decimal("200.00"), Currency.EUR: Decimal("50.25")}
