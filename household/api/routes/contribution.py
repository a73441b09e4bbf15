from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from household.db.session import get_db
from household.schemas.expense import ContributionCreate, ContributionOut, ContributionUpdate
from household.services.contribution_services import delete_contribution, list_contributions, record_contribution, update_contribution
from household.core.dependencies import get_current_user

router = APIRouter()

@router.post("/", response_model=ContributionOut, status_code=status.HTTP_201_CREATED)
async def add_contribution(data: ContributionCreate, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await record_contribution(db, data.expense_id, current_user.id, data.value)

@router.get("/expense/{expense_id}", response_model=list[ContributionOut])
async def expense_contributions(expense_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await list_contributions(db, expense_id, current_user.id)

@router.put("/{contribution_id}", response_model=ContributionOut)
async def edit(contribution_id: int, data: ContributionUpdate, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await update_contribution(db, contribution_id, current_user.id, data.value)

@router.delete("/{contribution_id}")
async def del_contribution(contribution_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await delete_contribution(db, contribution_id, current_user.id)
