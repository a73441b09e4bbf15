import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy import select, func, update
from household.core.config import settings
from household.core.errors import Conflict, Forbidden, NotFound, ValidationError
from household.models.group import Group
from household.models.group_member import GroupMember
from household.models.contribution import Contribution
from household.models.task import Task
from household.services.user_service import get_user_by_username, get_user_or_404

logger = structlog.get_logger(__name__)

async def get_group_or_404(db: AsyncSession, group_id: int) -> Group:
    res = await db.execute(select(Group).where(Group.id == group_id))
    group = res.scalar_one_or_none()

    if not group:
        raise NotFound("Group not found.")
    return group

async def get_membership(db: AsyncSession, group_id: int, user_id: int) -> GroupMember | None:
    q = select(GroupMember).where(
        GroupMember.group_id == group_id,
        GroupMember.user_id == user_id
    )
    res = await db.execute(q)
    return res.scalar_one_or_none()

async def require_membership(db: AsyncSession, group_id: int, user_id: int) -> GroupMember:
    """Resolve ``user_id`` to its membership row in ``group_id``.

    Raises NotFound when the group does not exist and Forbidden when the user
    is not part of it.
    """
    await get_group_or_404(db, group_id)

    member = await get_membership(db, group_id, user_id)
    if not member:
        raise Forbidden("You are not a member of this group.")
    return member

async def require_admin(db: AsyncSession, group_id: int, user_id: int) -> GroupMember:
    member = await require_membership(db, group_id, user_id)
    if not member.is_admin:
        raise Forbidden("Only group admins can perform this action.")
    return member

async def get_member_or_404(db: AsyncSession, member_id: int) -> GroupMember:
    q = (
        select(GroupMember)
        .options(selectinload(GroupMember.user))
        .where(GroupMember.id == member_id)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    member = res.scalar_one_or_none()

    if not member:
        raise NotFound("Member not found.")
    return member

async def count_admins(db: AsyncSession, group_id: int) -> int:
    q = select(func.count(GroupMember.id)).where(
        GroupMember.group_id == group_id,
        GroupMember.is_admin.is_(True)
    )
    res = await db.execute(q)
    return res.scalar_one()

async def list_group_members(db: AsyncSession, group_id: int, user_id: int):
    await require_membership(db, group_id, user_id)

    q = (
        select(GroupMember)
        .options(selectinload(GroupMember.user))
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.id)
    )
    res = await db.execute(q)
    return res.scalars().all()

async def add_member(db: AsyncSession, group_id: int, user_id: int, current_user_id: int):
    await require_membership(db, group_id, current_user_id)
    await get_user_or_404(db, user_id)

    # the unique constraint backs this check when two requests race
    if await get_membership(db, group_id, user_id):
        raise Conflict("User is already a member of this group.")

    new_member = GroupMember(group_id=group_id, user_id=user_id, is_admin=False)
    db.add(new_member)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("User is already a member of this group.")

    logger.info("member_added", group_id=group_id, user_id=user_id, member_id=new_member.id, added_by=current_user_id)
    return await get_member_or_404(db, new_member.id)

async def add_member_by_username(db: AsyncSession, group_id: int, username: str, current_user_id: int):
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required.")

    user = await get_user_by_username(db, username)
    if not user:
        raise NotFound(f'User with username "{username}" not found.')

    return await add_member(db, group_id, user.id, current_user_id)

async def check_last_admin(db: AsyncSession, member: GroupMember):
    if settings.ALLOW_LAST_ADMIN_DEMOTION or not member.is_admin:
        return

    if await count_admins(db, member.group_id) <= 1:
        raise Conflict("A group must keep at least one admin.")

async def promote_admin(db: AsyncSession, member_id: int, current_user_id: int):
    member = await get_member_or_404(db, member_id)
    await require_admin(db, member.group_id, current_user_id)

    member.is_admin = True
    await db.commit()

    logger.info("member_promoted", member_id=member.id, group_id=member.group_id, by=current_user_id)
    return await get_member_or_404(db, member.id)

async def demote_admin(db: AsyncSession, member_id: int, current_user_id: int):
    member = await get_member_or_404(db, member_id)
    await require_admin(db, member.group_id, current_user_id)
    await check_last_admin(db, member)

    member.is_admin = False
    await db.commit()

    logger.info("member_demoted", member_id=member.id, group_id=member.group_id, by=current_user_id)
    return await get_member_or_404(db, member.id)

async def remove_member(db: AsyncSession, member_id: int, current_user_id: int):
    member = await get_member_or_404(db, member_id)

    # admins remove anyone, members may only remove themselves
    if member.user_id != current_user_id:
        await require_admin(db, member.group_id, current_user_id)

    await check_removable(db, member)
    await release_member(db, member)

    await db.delete(member)
    await db.commit()

    logger.info(
        "member_removed",
        member_id=member_id,
        group_id=member.group_id,
        by=current_user_id,
        policy=settings.MEMBER_REMOVAL_POLICY,
    )
    return {"status": "member_removed"}

async def check_removable(db: AsyncSession, member: GroupMember):
    """Raise Conflict when the configured policies forbid removing ``member``."""
    await check_last_admin(db, member)

    if settings.MEMBER_REMOVAL_POLICY != "block":
        return

    claimed = await db.execute(
        select(func.count(Task.id)).where(Task.group_member_id == member.id)
    )
    contributed = await db.execute(
        select(func.count(Contribution.id)).where(Contribution.group_member_id == member.id)
    )
    if claimed.scalar_one() or contributed.scalar_one():
        raise Conflict("Member still has claimed tasks or recorded contributions.")

async def release_member(db: AsyncSession, member: GroupMember):
    # claimed tasks go back to the pool, contributions stay on the books without a member
    await db.execute(
        update(Task)
        .where(Task.group_member_id == member.id)
        .values(group_member_id=None)
    )
    await db.execute(
        update(Contribution)
        .where(Contribution.group_member_id == member.id)
        .values(group_member_id=None)
    )
