import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select, func
from household.core.config import settings
from household.core.errors import Conflict, Forbidden, NotFound, ValidationError
from household.core.utils import ZERO, positive_amount, qround, to_decimal
from household.models.contribution import Contribution
from household.models.expense import Expense
from household.models.group_member import GroupMember
from household.services.member_services import get_membership, require_membership

logger = structlog.get_logger(__name__)

async def _get_expense_or_404(db: AsyncSession, expense_id: int) -> Expense:
    res = await db.execute(select(Expense).where(Expense.id == expense_id))
    expense = res.scalar_one_or_none()

    if not expense:
        raise NotFound("Expense not found.")
    return expense

async def load_contribution(db: AsyncSession, contribution_id: int) -> Contribution:
    q = (
        select(Contribution)
        .options(selectinload(Contribution.member).selectinload(GroupMember.user))
        .where(Contribution.id == contribution_id)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    contribution = res.scalar_one_or_none()

    if not contribution:
        raise NotFound("Contribution not found.")
    return contribution

async def find_member_contribution(db: AsyncSession, expense_id: int, member_id: int) -> Contribution | None:
    res = await db.execute(
        select(Contribution).where(
            Contribution.expense_id == expense_id,
            Contribution.group_member_id == member_id
        )
    )
    return res.scalar_one_or_none()

async def _contributed_by_others(db: AsyncSession, expense_id: int, member_id: int):
    q = select(func.coalesce(func.sum(Contribution.value), 0)).where(
        Contribution.expense_id == expense_id,
        (Contribution.group_member_id != member_id) | (Contribution.group_member_id.is_(None)),
    )
    res = await db.execute(q)
    return qround(to_decimal(res.scalar() or 0))

async def _check_over_contribution(db: AsyncSession, expense: Expense, member_id: int, value):
    if not settings.REJECT_OVER_CONTRIBUTION:
        return

    others = await _contributed_by_others(db, expense.id, member_id)
    remaining = qround(to_decimal(expense.value) - others)

    if value > remaining:
        raise ValidationError(
            f"Contribution cannot exceed the remaining balance of {max(remaining, ZERO)}."
        )

async def record_contribution(db: AsyncSession, expense_id: int, user_id: int, value):
    """Record the caller's contribution toward an expense.

    One contribution per member per expense: a repeat call replaces the value
    of the existing row instead of adding another one. The lookup and the write
    share one transaction, and the (expense, member) unique constraint turns a
    concurrent duplicate insert into a Conflict.
    """
    amount = positive_amount(value)

    expense = await _get_expense_or_404(db, expense_id)
    member = await require_membership(db, expense.group_id, user_id)

    await _check_over_contribution(db, expense, member.id, amount)

    contribution = await find_member_contribution(db, expense.id, member.id)
    created = contribution is None

    if created:
        contribution = Contribution(expense_id=expense.id, group_member_id=member.id, value=amount)
        db.add(contribution)
    else:
        contribution.value = amount

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("A contribution for this expense was recorded concurrently, reload and try again.")

    logger.info(
        "contribution_recorded" if created else "contribution_replaced",
        contribution_id=contribution.id,
        expense_id=expense.id,
        member_id=member.id,
        value=str(amount),
    )
    return await load_contribution(db, contribution.id)

async def list_contributions(db: AsyncSession, expense_id: int, user_id: int):
    expense = await _get_expense_or_404(db, expense_id)
    await require_membership(db, expense.group_id, user_id)

    q = (
        select(Contribution)
        .options(selectinload(Contribution.member).selectinload(GroupMember.user))
        .where(Contribution.expense_id == expense_id)
        .order_by(Contribution.created_at.asc(), Contribution.id.asc())
    )
    res = await db.execute(q)
    return res.scalars().all()

async def update_contribution(db: AsyncSession, contribution_id: int, user_id: int, value):
    amount = positive_amount(value)

    contribution = await load_contribution(db, contribution_id)
    expense = await _get_expense_or_404(db, contribution.expense_id)
    member = await require_membership(db, expense.group_id, user_id)

    if contribution.group_member_id != member.id:
        raise Forbidden("You can only change your own contribution.")

    await _check_over_contribution(db, expense, member.id, amount)

    contribution.value = amount
    await db.commit()

    logger.info("contribution_updated", contribution_id=contribution.id, member_id=member.id, value=str(amount))
    return await load_contribution(db, contribution.id)

async def delete_contribution(db: AsyncSession, contribution_id: int, user_id: int):
    contribution = await load_contribution(db, contribution_id)
    expense = await _get_expense_or_404(db, contribution.expense_id)

    member = await get_membership(db, expense.group_id, user_id)
    if not member:
        raise Forbidden("You are not a member of this group.")

    if contribution.group_member_id != member.id and not member.is_admin:
        raise Forbidden("Only the contributor or a group admin can delete this contribution.")

    await db.delete(contribution)
    await db.commit()

    logger.info("contribution_deleted", contribution_id=contribution_id, expense_id=expense.id, by=user_id)
    return {"status": "deleted"}
