import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy import func
from sqlalchemy.orm import selectinload
from household.models.expense import Expense
from household.models.group import Group
from household.models.group_member import GroupMember
from household.models.task import Task
from household.schemas.group import GroupCreate, GroupUpdate
from household.core.errors import Conflict, ValidationError
from household.services.member_services import get_group_or_404, require_admin, require_membership

logger = structlog.get_logger(__name__)

async def _name_taken(db: AsyncSession, name: str, exclude_id: int | None = None) -> bool:
    q = select(Group.id).where(Group.name == name)
    if exclude_id is not None:
        q = q.where(Group.id != exclude_id)
    res = await db.execute(q)
    return res.first() is not None

async def create_group(db: AsyncSession, data: GroupCreate, creator_id: int):
    name = (data.name or "").strip()
    if not name:
        raise ValidationError("Group name is required.")

    if await _name_taken(db, name):
        raise Conflict("Group with this name already exists.")

    group = Group(
        name=name,
        description=data.description,
        whatsapp_url=data.whatsapp_url,
        created_by=creator_id,
    )
    db.add(group)

    try:
        await db.flush()

        # creator joins as admin in the same transaction
        member = GroupMember(group_id=group.id, user_id=creator_id, is_admin=True)
        db.add(member)

        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Group with this name already exists.")

    await db.refresh(group)

    logger.info("group_created", group_id=group.id, creator_id=creator_id)
    return group

async def get_group(db: AsyncSession, group_id: int, user_id: int):
    await require_membership(db, group_id, user_id)
    return await get_group_or_404(db, group_id)

async def list_group_for_user(db: AsyncSession, user_id: int):
    member_count = (
        select(func.count(GroupMember.id))
        .where(GroupMember.group_id == Group.id)
        .correlate(Group)
        .scalar_subquery()
    )
    task_count = (
        select(func.count(Task.id))
        .where(Task.group_id == Group.id)
        .correlate(Group)
        .scalar_subquery()
    )

    q = (
        select(
            Group,
            GroupMember.is_admin,
            member_count.label("member_count"),
            task_count.label("task_count"),
        )
        .join(GroupMember, GroupMember.group_id == Group.id)
        .where(GroupMember.user_id == user_id)
        .order_by(Group.name)
    )
    result = await db.execute(q)

    return [
        {
            "id": row.Group.id,
            "name": row.Group.name,
            "description": row.Group.description,
            "whatsapp_url": row.Group.whatsapp_url,
            "created_at": row.Group.created_at,
            "member_count": row.member_count,
            "task_count": row.task_count,
            "is_admin": row.is_admin,
        }
        for row in result.all()
    ]

async def edit_group(db: AsyncSession, group_id: int, user_id: int, data: GroupUpdate):
    await require_membership(db, group_id, user_id)
    group = await get_group_or_404(db, group_id)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No valid fields provided for update.")

    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise ValidationError("Group name cannot be empty.")
        if await _name_taken(db, name, exclude_id=group.id):
            raise Conflict("Group with this name already exists.")
        group.name = name

    if "description" in changes:
        group.description = changes["description"]

    if "whatsapp_url" in changes:
        group.whatsapp_url = changes["whatsapp_url"]

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Group with this name already exists.")

    await db.refresh(group)

    logger.info("group_updated", group_id=group.id, user_id=user_id, fields=sorted(changes))
    return group

async def delete_group(db: AsyncSession, group_id: int, user_id: int):
    await require_admin(db, group_id, user_id)

    # members, expenses (with contributions) and tasks go with it
    q = (
        select(Group)
        .options(
            selectinload(Group.members),
            selectinload(Group.tasks),
            selectinload(Group.expenses).selectinload(Expense.contributions),
        )
        .where(Group.id == group_id)
        .execution_options(populate_existing=True)
    )
    group = (await db.execute(q)).scalar_one()

    await db.delete(group)
    await db.commit()

    logger.info("group_deleted", group_id=group_id, user_id=user_id)
    return {"status": "deleted"}
