import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from household.core.config import settings
from household.models.group import Group
from household.models.group_member import GroupMember
from household.services.member_services import check_removable, release_member
from household.services.user_service import get_user_or_404

logger = structlog.get_logger(__name__)

async def delete_user(db: AsyncSession, user_id: int):
    """Delete an account and leave every group it belongs to.

    Each membership goes through the same policies as ``remove_member``. All
    of them are checked before anything is written, so a blocked membership
    leaves the account untouched.
    """
    user = await get_user_or_404(db, user_id)

    res = await db.execute(
        select(GroupMember).where(GroupMember.user_id == user.id).order_by(GroupMember.id)
    )
    memberships = res.scalars().all()

    for member in memberships:
        await check_removable(db, member)

    for member in memberships:
        await release_member(db, member)
        await db.delete(member)

    await db.execute(
        update(Group).where(Group.created_by == user.id).values(created_by=None)
    )

    await db.delete(user)
    await db.commit()

    logger.info(
        "user_deleted",
        user_id=user_id,
        groups_left=len(memberships),
        policy=settings.MEMBER_REMOVAL_POLICY,
    )
    return {"status": "deleted"}
