from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from household.db.session import get_db
from household.core.dependencies import get_current_user
from household.schemas.group import GroupMemberOut, MemberAdd, MemberAddByUsername
from household.services.member_services import add_member, add_member_by_username, demote_admin, promote_admin, remove_member

router = APIRouter()

@router.post("/", response_model=GroupMemberOut, status_code=status.HTTP_201_CREATED)
async def add_user_to_group(
    data: MemberAdd,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await add_member(db, data.group_id, data.user_id, current_user.id)

@router.post("/group/{group_id}/add-by-username", response_model=GroupMemberOut, status_code=status.HTTP_201_CREATED)
async def add_by_username(
    group_id: int,
    data: MemberAddByUsername,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await add_member_by_username(db, group_id, data.username, current_user.id)

@router.put("/{member_id}/promote", response_model=GroupMemberOut)
async def promote(member_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await promote_admin(db, member_id, current_user.id)

@router.put("/{member_id}/demote", response_model=GroupMemberOut)
async def demote(member_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await demote_admin(db, member_id, current_user.id)

@router.delete("/{member_id}")
async def rem_mem(member_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await remove_member(db, member_id, current_user.id)
