from decimal import Decimal

import pytest
from sqlalchemy import func, select

from household.core.config import settings
from household.core.errors import Conflict, NotFound
from household.models.group import Group
from household.models.group_member import GroupMember
from household.models.user import User
from household.schemas.expense import ExpenseCreate
from household.schemas.task import TaskCreate
from household.services.account_services import delete_user
from household.services.contribution_services import record_contribution
from household.services.expense_services import create_expense, load_expense
from household.services.task_services import claim_task, create_task, load_task
from household.services.user_service import get_user_by_id


async def _bob_claims_and_pays(db, flat):
    task = await create_task(db, TaskCreate(name="Dishes", group_id=flat["group"].id), flat["alice"].id)
    await claim_task(db, task.id, flat["bob"].id)

    expense = await create_expense(
        db, ExpenseCreate(title="Rent", value=Decimal("1200"), group_id=flat["group"].id), flat["alice"].id
    )
    await record_contribution(db, expense.id, flat["bob"].id, 400)
    return task.id, expense.id


async def _count_memberships(db, user_id):
    res = await db.execute(select(func.count(GroupMember.id)).where(GroupMember.user_id == user_id))
    return res.scalar_one()


@pytest.mark.asyncio
async def test_deleting_account_leaves_groups_and_keeps_payments(db, flat):
    task_id, expense_id = await _bob_claims_and_pays(db, flat)
    bob_id = flat["bob"].id

    assert await delete_user(db, bob_id) == {"status": "deleted"}

    assert await get_user_by_id(db, bob_id) is None
    assert await _count_memberships(db, bob_id) == 0
    assert (await load_task(db, task_id)).group_member_id is None

    expense = await load_expense(db, expense_id)
    assert [c.group_member_id for c in expense.contributions] == [None]
    assert expense.balance == Decimal("800")


@pytest.mark.asyncio
async def test_deleting_account_blocked_by_removal_policy(db, flat, monkeypatch):
    monkeypatch.setattr(settings, "MEMBER_REMOVAL_POLICY", "block")
    task_id, _ = await _bob_claims_and_pays(db, flat)
    bob_id, bob_member_id = flat["bob"].id, flat["bob_m"].id

    with pytest.raises(Conflict):
        await delete_user(db, bob_id)

    assert await get_user_by_id(db, bob_id) is not None
    assert await _count_memberships(db, bob_id) == 1
    assert (await load_task(db, task_id)).group_member_id == bob_member_id


@pytest.mark.asyncio
async def test_only_admin_cannot_delete_account_when_configured(db, flat, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_LAST_ADMIN_DEMOTION", False)

    with pytest.raises(Conflict):
        await delete_user(db, flat["alice"].id)

    assert await _count_memberships(db, flat["alice"].id) == 1


@pytest.mark.asyncio
async def test_deleting_group_creator_keeps_the_group(db, flat):
    group_id, alice_id = flat["group"].id, flat["alice"].id

    await delete_user(db, alice_id)

    res = await db.execute(select(Group.created_by).where(Group.id == group_id))
    assert res.scalar_one() is None

    res = await db.execute(select(func.count(User.id)))
    assert res.scalar_one() == 2


@pytest.mark.asyncio
async def test_deleting_unknown_account(db):
    with pytest.raises(NotFound):
        await delete_user(db, 9999)
