from decimal import Decimal

import pytest
from sqlalchemy import func, select

from household.core.config import settings
from household.core.errors import Conflict, Forbidden, NotFound, ValidationError
from household.models.contribution import Contribution
from household.models.group_member import GroupMember
from household.models.task import Task
from household.schemas.expense import ExpenseCreate
from household.schemas.task import TaskCreate
from household.services.contribution_services import record_contribution
from household.services.expense_services import create_expense, load_expense
from household.services import member_services
from household.services.member_services import (
    add_member,
    add_member_by_username,
    count_admins,
    demote_admin,
    list_group_members,
    promote_admin,
    remove_member,
)
from household.services.task_services import claim_task, create_task, load_task


async def _memberships(db, group_id, user_id):
    res = await db.execute(
        select(func.count(GroupMember.id)).where(
            GroupMember.group_id == group_id, GroupMember.user_id == user_id
        )
    )
    return res.scalar_one()


@pytest.mark.asyncio
async def test_promote_and_demote(db, flat):
    member = await promote_admin(db, flat["bob_m"].id, flat["alice"].id)
    assert member.is_admin is True

    member = await demote_admin(db, flat["bob_m"].id, flat["alice"].id)
    assert member.is_admin is False


@pytest.mark.asyncio
async def test_only_admin_can_demote_themselves_by_default(db, flat):
    member = await demote_admin(db, flat["alice_m"].id, flat["alice"].id)

    assert member.is_admin is False
    assert await count_admins(db, flat["group"].id) == 0


@pytest.mark.asyncio
async def test_last_admin_is_kept_when_configured(db, flat, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_LAST_ADMIN_DEMOTION", False)

    with pytest.raises(Conflict):
        await demote_admin(db, flat["alice_m"].id, flat["alice"].id)

    with pytest.raises(Conflict):
        await remove_member(db, flat["alice_m"].id, flat["alice"].id)

    # with a second admin around, demotion goes through
    await promote_admin(db, flat["bob_m"].id, flat["alice"].id)
    member = await demote_admin(db, flat["alice_m"].id, flat["bob"].id)
    assert member.is_admin is False


@pytest.mark.asyncio
async def test_member_management_requires_admin(db, flat):
    with pytest.raises(Forbidden):
        await promote_admin(db, flat["bob_m"].id, flat["bob"].id)

    with pytest.raises(Forbidden):
        await demote_admin(db, flat["alice_m"].id, flat["bob"].id)

    with pytest.raises(Forbidden):
        await remove_member(db, flat["alice_m"].id, flat["bob"].id)

    with pytest.raises(Forbidden):
        await promote_admin(db, flat["bob_m"].id, flat["carol"].id)

    with pytest.raises(NotFound):
        await promote_admin(db, 9999, flat["alice"].id)


@pytest.mark.asyncio
async def test_add_member(db, flat):
    member = await add_member(db, flat["group"].id, flat["carol"].id, flat["bob"].id)

    assert member.group_id == flat["group"].id
    assert member.is_admin is False
    assert member.user.username == "carol"

    members = await list_group_members(db, flat["group"].id, flat["carol"].id)
    assert [m.user.username for m in members] == ["alice", "bob", "carol"]


@pytest.mark.asyncio
async def test_duplicate_add_is_a_conflict(db, flat):
    group_id, bob_id = flat["group"].id, flat["bob"].id

    with pytest.raises(Conflict):
        await add_member(db, group_id, bob_id, flat["alice"].id)

    assert await _memberships(db, group_id, bob_id) == 1


@pytest.mark.asyncio
async def test_add_member_errors(db, flat):
    with pytest.raises(Forbidden):
        await add_member(db, flat["group"].id, flat["carol"].id, flat["carol"].id)

    with pytest.raises(NotFound):
        await add_member(db, flat["group"].id, 9999, flat["alice"].id)

    with pytest.raises(NotFound):
        await add_member(db, 9999, flat["carol"].id, flat["alice"].id)


@pytest.mark.asyncio
async def test_add_member_by_username(db, flat):
    member = await add_member_by_username(db, flat["group"].id, " carol ", flat["alice"].id)
    assert member.user_id == flat["carol"].id

    with pytest.raises(NotFound):
        await add_member_by_username(db, flat["group"].id, "mallory", flat["alice"].id)

    with pytest.raises(ValidationError):
        await add_member_by_username(db, flat["group"].id, "  ", flat["alice"].id)


async def _bob_has_history(db, flat):
    task = await create_task(db, TaskCreate(name="Dishes", group_id=flat["group"].id), flat["alice"].id)
    await claim_task(db, task.id, flat["bob"].id)

    expense = await create_expense(
        db, ExpenseCreate(title="Rent", value=Decimal("1200"), group_id=flat["group"].id), flat["alice"].id
    )
    await record_contribution(db, expense.id, flat["bob"].id, 400)
    return task.id, expense.id


@pytest.mark.asyncio
async def test_remove_member_releases_claims_and_keeps_contributions(db, flat):
    task_id, expense_id = await _bob_has_history(db, flat)
    bob_member_id = flat["bob_m"].id

    result = await remove_member(db, bob_member_id, flat["alice"].id)
    assert result == {"status": "member_removed"}

    assert await _memberships(db, flat["group"].id, flat["bob"].id) == 0
    assert (await load_task(db, task_id)).group_member_id is None

    expense = await load_expense(db, expense_id)
    assert [c.group_member_id for c in expense.contributions] == [None]
    assert expense.balance == Decimal("800")


@pytest.mark.asyncio
async def test_remove_member_blocked_when_configured(db, flat, monkeypatch):
    monkeypatch.setattr(settings, "MEMBER_REMOVAL_POLICY", "block")
    task_id, _ = await _bob_has_history(db, flat)
    bob_member_id = flat["bob_m"].id

    with pytest.raises(Conflict):
        await remove_member(db, bob_member_id, flat["alice"].id)

    assert await _memberships(db, flat["group"].id, flat["bob"].id) == 1
    assert (await load_task(db, task_id)).group_member_id == bob_member_id


@pytest.mark.asyncio
async def test_member_can_leave(db, flat):
    assert await remove_member(db, flat["bob_m"].id, flat["bob"].id) == {"status": "member_removed"}

    res = await db.execute(select(func.count(Task.id)).where(Task.group_member_id.is_not(None)))
    assert res.scalar_one() == 0
    assert await _memberships(db, flat["group"].id, flat["bob"].id) == 0


@pytest.mark.asyncio
async def test_block_policy_allows_removal_without_history(db, flat, monkeypatch):
    monkeypatch.setattr(settings, "MEMBER_REMOVAL_POLICY", "block")

    await remove_member(db, flat["bob_m"].id, flat["alice"].id)

    res = await db.execute(select(func.count(Contribution.id)))
    assert res.scalar_one() == 0
    assert await _memberships(db, flat["group"].id, flat["bob"].id) == 0


@pytest.mark.asyncio
async def test_concurrent_add_is_a_conflict_not_a_second_row(db, flat, monkeypatch):
    group_id, bob_id, alice_id = flat["group"].id, flat["bob"].id, flat["alice"].id
    lookup = member_services.get_membership

    # the other request inserted bob after our existence check ran
    async def stale_lookup(db, group_id, user_id):
        if user_id == bob_id:
            return None
        return await lookup(db, group_id, user_id)

    monkeypatch.setattr(member_services, "get_membership", stale_lookup)

    with pytest.raises(Conflict):
        await add_member(db, group_id, bob_id, alice_id)

    assert await _memberships(db, group_id, bob_id) == 1
