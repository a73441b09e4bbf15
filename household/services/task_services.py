import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import select, update, or_
from household.core.config import settings
from household.core.errors import Conflict, NotFound, ValidationError
from household.core.utils import parse_enum
from household.models.task import Task
from household.models.group_member import GroupMember
from household.models.enums import Stage
from household.schemas.task import TaskCreate, TaskUpdate
from household.services.member_services import require_membership

logger = structlog.get_logger(__name__)

def _with_assignee(q):
    return q.options(
        selectinload(Task.assignee).selectinload(GroupMember.user)
    ).execution_options(populate_existing=True)

async def load_task(db: AsyncSession, task_id: int) -> Task:
    res = await db.execute(_with_assignee(select(Task).where(Task.id == task_id)))
    task = res.scalar_one_or_none()

    if not task:
        raise NotFound("Task not found.")
    return task

def parse_stage(value) -> Stage:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Valid stage is required (TO_DO, IN_PROGRESS, or DONE).")
    return parse_enum(Stage, value, "stage")

async def create_task(db: AsyncSession, data: TaskCreate, user_id: int):
    name = (data.name or "").strip()
    if not name or data.group_id is None:
        raise ValidationError("Task name and group ID are required.")

    await require_membership(db, data.group_id, user_id)

    task = Task(
        group_id=data.group_id,
        name=name,
        description=data.description,
        due=data.due,
        stage=Stage.TO_DO,
        group_member_id=None,
    )
    db.add(task)
    await db.commit()

    logger.info("task_created", task_id=task.id, group_id=task.group_id, user_id=user_id)
    return await load_task(db, task.id)

async def get_task(db: AsyncSession, task_id: int, user_id: int):
    task = await load_task(db, task_id)
    await require_membership(db, task.group_id, user_id)
    return task

async def list_group_tasks(db: AsyncSession, group_id: int, user_id: int):
    await require_membership(db, group_id, user_id)

    q = _with_assignee(
        select(Task)
        .where(Task.group_id == group_id)
        .order_by(Task.due.is_(None), Task.due, Task.id)
    )
    res = await db.execute(q)
    return res.scalars().all()

async def get_board(db: AsyncSession, group_id: int, user_id: int):
    tasks = await list_group_tasks(db, group_id, user_id)

    board = {"group_id": group_id}
    for stage in Stage:
        board[stage.value] = [t for t in tasks if t.stage == stage]
    return board

async def update_task(db: AsyncSession, task_id: int, data: TaskUpdate, user_id: int):
    task = await load_task(db, task_id)
    await require_membership(db, task.group_id, user_id)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No valid fields provided for update.")

    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise ValidationError("Task name cannot be empty.")
        task.name = name

    if "description" in changes:
        task.description = changes["description"]

    if "due" in changes:
        task.due = changes["due"]

    await db.commit()

    logger.info("task_updated", task_id=task.id, user_id=user_id, fields=sorted(changes))
    return await load_task(db, task.id)

async def delete_task(db: AsyncSession, task_id: int, user_id: int):
    task = await load_task(db, task_id)
    await require_membership(db, task.group_id, user_id)

    await db.delete(task)
    await db.commit()

    logger.info("task_deleted", task_id=task_id, group_id=task.group_id, user_id=user_id)
    return {"status": "deleted"}

async def claim_task(db: AsyncSession, task_id: int, user_id: int):
    """Assign the task to the caller's membership in the task's group.

    By default a claim on an already claimed task reassigns it (last write
    wins). With ALLOW_CLAIM_REASSIGN disabled the assignment is a conditional
    update that only succeeds while the task is free or already ours.
    """
    task = await load_task(db, task_id)
    member = await require_membership(db, task.group_id, user_id)

    q = update(Task).where(Task.id == task.id, Task.group_id == member.group_id)
    if not settings.ALLOW_CLAIM_REASSIGN:
        q = q.where(or_(Task.group_member_id.is_(None), Task.group_member_id == member.id))

    res = await db.execute(
        q.values(group_member_id=member.id).execution_options(synchronize_session=False)
    )

    if res.rowcount == 0:
        raise Conflict("Task is already claimed by another member.")

    await db.commit()

    logger.info("task_claimed", task_id=task.id, member_id=member.id, user_id=user_id)
    return await load_task(db, task.id)

async def unclaim_task(db: AsyncSession, task_id: int, user_id: int):
    task = await load_task(db, task_id)
    await require_membership(db, task.group_id, user_id)

    task.assignee = None
    await db.commit()

    logger.info("task_unclaimed", task_id=task.id, user_id=user_id)
    return await load_task(db, task.id)

async def change_stage(db: AsyncSession, task_id: int, stage, user_id: int):
    new_stage = parse_stage(stage)

    task = await load_task(db, task_id)
    await require_membership(db, task.group_id, user_id)

    # any stage may follow any other, assignment is left alone
    task.stage = new_stage
    await db.commit()

    logger.info("task_stage_changed", task_id=task.id, stage=new_stage.value, user_id=user_id)
    return await load_task(db, task.id)
