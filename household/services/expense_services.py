from collections import defaultdict
from decimal import Decimal
from typing import Dict

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import select, func
from household.models.expense import Expense
from household.models.contribution import Contribution
from household.models.group_member import GroupMember
from household.models.user import User
from household.models.enums import Currency, RecurrenceInterval
from household.schemas.expense import ExpenseCreate, ExpenseUpdate
from household.core.errors import NotFound, ValidationError
from household.core.utils import ZERO, parse_enum, positive_amount, qround, to_decimal
from household.services.member_services import require_membership

logger = structlog.get_logger(__name__)

def _with_contributions(q):
    return q.options(
        selectinload(Expense.contributions)
        .selectinload(Contribution.member)
        .selectinload(GroupMember.user)
    ).execution_options(populate_existing=True)

async def load_expense(db: AsyncSession, expense_id: int) -> Expense:
    res = await db.execute(_with_contributions(select(Expense).where(Expense.id == expense_id)))
    expense = res.scalar_one_or_none()

    if not expense:
        raise NotFound("Expense not found.")
    return expense

async def create_expense(db: AsyncSession, data: ExpenseCreate, user_id: int):
    title = (data.title or "").strip()
    if not title or data.value is None or data.group_id is None:
        raise ValidationError("Title, value, and group ID are required.")

    value = positive_amount(data.value)

    # absent enums fall back to defaults, unknown ones are rejected
    currency = Currency.USD if data.currency is None else parse_enum(Currency, data.currency, "currency")
    recurrence = (
        RecurrenceInterval.NONE
        if data.recurrence_interval is None
        else parse_enum(RecurrenceInterval, data.recurrence_interval, "recurrence interval")
    )

    await require_membership(db, data.group_id, user_id)

    expense = Expense(
        group_id=data.group_id,
        title=title,
        description=data.description,
        value=value,
        currency=currency,
        is_recurring=bool(data.is_recurring),
        recurrence_interval=recurrence,
        due=data.due,
    )
    db.add(expense)
    await db.commit()

    logger.info("expense_created", expense_id=expense.id, group_id=expense.group_id, user_id=user_id, value=str(value))
    return await load_expense(db, expense.id)

async def edit_expense(db: AsyncSession, data: ExpenseUpdate, expense_id: int, user_id: int):
    expense = await load_expense(db, expense_id)
    await require_membership(db, expense.group_id, user_id)

    changes = data.model_dump(exclude_unset=True)
    updates = {}

    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty.")
        updates["title"] = title

    if "description" in changes:
        updates["description"] = changes["description"]

    if "value" in changes:
        updates["value"] = positive_amount(changes["value"])

    if changes.get("currency") is not None:
        updates["currency"] = parse_enum(Currency, changes["currency"], "currency")

    if changes.get("is_recurring") is not None:
        updates["is_recurring"] = bool(changes["is_recurring"])

    if changes.get("recurrence_interval") is not None:
        updates["recurrence_interval"] = parse_enum(
            RecurrenceInterval, changes["recurrence_interval"], "recurrence interval"
        )

    if "due" in changes:
        updates["due"] = changes["due"]

    if not updates:
        raise ValidationError("No valid fields provided for update.")

    for field, value in updates.items():
        setattr(expense, field, value)

    await db.commit()

    logger.info("expense_updated", expense_id=expense.id, user_id=user_id, fields=sorted(updates))
    return await load_expense(db, expense.id)

async def delete_expense(db: AsyncSession, expense_id: int, user_id: int):
    expense = await load_expense(db, expense_id)
    await require_membership(db, expense.group_id, user_id)

    # contributions are removed through the relationship cascade
    await db.delete(expense)
    await db.commit()

    logger.info("expense_deleted", expense_id=expense_id, group_id=expense.group_id, user_id=user_id)
    return {"status": "deleted"}

async def get_expense_by_id(db: AsyncSession, expense_id: int, user_id: int):
    expense = await load_expense(db, expense_id)
    await require_membership(db, expense.group_id, user_id)
    return expense

async def list_group_expenses(db: AsyncSession, group_id: int, user_id: int):
    await require_membership(db, group_id, user_id)

    q = _with_contributions(
        select(Expense)
        .where(Expense.group_id == group_id)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
    )
    res = await db.execute(q)
    return res.scalars().all()

async def get_group_ledger(db: AsyncSession, group_id: int, user_id: int):
    await require_membership(db, group_id, user_id)

    value_q = (
        select(Expense.currency, func.coalesce(func.sum(Expense.value), 0))
        .where(Expense.group_id == group_id)
        .group_by(Expense.currency)
    )
    value_rows = (await db.execute(value_q)).all()

    contributed_q = (
        select(
            Contribution.group_member_id,
            GroupMember.user_id,
            User.username,
            Expense.currency,
            func.coalesce(func.sum(Contribution.value), 0),
        )
        .join(Expense, Expense.id == Contribution.expense_id)
        .outerjoin(GroupMember, GroupMember.id == Contribution.group_member_id)
        .outerjoin(User, User.id == GroupMember.user_id)
        .where(Expense.group_id == group_id)
        .group_by(Contribution.group_member_id, GroupMember.user_id, User.username, Expense.currency)
    )
    contributed_rows = (await db.execute(contributed_q)).all()

    value_map: Dict[Currency, Decimal] = {
        currency: qround(to_decimal(total)) for currency, total in value_rows
    }
    contributed_map: Dict[Currency, Decimal] = defaultdict(lambda: ZERO)
    members: Dict[int | None, dict] = {}

    for member_id, member_user_id, username, currency, total in contributed_rows:
        amount = qround(to_decimal(total))
        contributed_map[currency] += amount

        entry = members.setdefault(member_id, {
            "group_member_id": member_id,
            "user_id": member_user_id,
            "username": username,
            "contributed": {},
        })
        entry["contributed"][currency] = amount

    totals = {
        currency: {
            "value": value,
            "contributed": qround(contributed_map[currency]),
            "balance": qround(value - contributed_map[currency]),
        }
        for currency, value in value_map.items()
    }

    return {
        "group_id": group_id,
        "totals": totals,
        "members": sorted(members.values(), key=lambda m: (m["group_member_id"] is None, m["group_member_id"] or 0)),
    }
