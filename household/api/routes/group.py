from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from household.db.session import get_db
from household.core.dependencies import get_current_user
from household.schemas.group import GroupCreate, GroupUpdate, GroupOut, GroupSummaryOut, GroupMemberOut
from household.schemas.expense import ExpenseOut, GroupLedgerOut
from household.schemas.task import BoardOut, TaskOut
from household.services.group_services import create_group, delete_group, edit_group, get_group, list_group_for_user
from household.services.member_services import list_group_members
from household.services.expense_services import get_group_ledger, list_group_expenses
from household.services.task_services import get_board, list_group_tasks

router = APIRouter()

@router.post("/", response_model=GroupOut, status_code=status.HTTP_201_CREATED, description="create new group")
async def create_new_group(
    data:GroupCreate,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await create_group(db, data, user.id)

@router.get("/my-groups", response_model=list[GroupSummaryOut], description="get user groups")
async def my_groups(db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await list_group_for_user(db, user.id)

@router.get("/{group_id}", response_model=GroupOut)
async def fetch(group_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await get_group(db, group_id, current_user.id)

@router.put("/{group_id}", response_model=GroupOut)
async def edit(group_id: int, data: GroupUpdate, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await edit_group(db, group_id, current_user.id, data)

@router.delete("/{group_id}")
async def del_group(group_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await delete_group(db, group_id=group_id, user_id=current_user.id)

@router.get("/{group_id}/members", response_model=list[GroupMemberOut])
async def group_members(group_id: int, db: AsyncSession = Depends(get_db), current_user=Depends(get_current_user)):
    return await list_group_members(db, group_id, current_user.id)

@router.get("/{group_id}/expenses", response_model=list[ExpenseOut], description="get all expenses of the group")
async def fetch_expenses(
    group_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await list_group_expenses(db, group_id, user.id)

@router.get("/{group_id}/ledger", response_model=GroupLedgerOut)
async def fetch_ledger(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await get_group_ledger(db, group_id, user.id)

@router.get("/{group_id}/tasks", response_model=list[TaskOut])
async def fetch_tasks(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await list_group_tasks(db, group_id, user.id)

@router.get("/{group_id}/board", response_model=BoardOut, description="tasks grouped by stage")
async def fetch_board(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await get_board(db, group_id, user.id)
