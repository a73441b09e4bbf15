from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from household.db.session import get_db
from household.schemas.task import StageChange, TaskCreate, TaskOut, TaskUpdate
from household.services.task_services import change_stage, claim_task, create_task, delete_task, get_task, unclaim_task, update_task
from household.core.dependencies import get_current_user

router = APIRouter()

@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def add_task(data: TaskCreate, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await create_task(db, data, current_user.id)

@router.get("/{task_id}", response_model=TaskOut)
async def fetch(task_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await get_task(db, task_id, current_user.id)

@router.put("/{task_id}", response_model=TaskOut)
async def edit(task_id: int, data: TaskUpdate, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await update_task(db, task_id, data, current_user.id)

@router.delete("/{task_id}")
async def del_task(task_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await delete_task(db, task_id, current_user.id)

@router.put("/{task_id}/claim", response_model=TaskOut)
async def claim(task_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await claim_task(db, task_id, current_user.id)

@router.put("/{task_id}/unclaim", response_model=TaskOut)
async def unclaim(task_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await unclaim_task(db, task_id, current_user.id)

@router.put("/{task_id}/change-stage", response_model=TaskOut)
async def move(task_id: int, data: StageChange, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await change_stage(db, task_id, data.stage, current_user.id)
