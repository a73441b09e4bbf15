from datetime import datetime
from pydantic import BaseModel
from household.schemas.user import UserPublic

class GroupCreate(BaseModel):
    name: str
    description: str | None = None
    whatsapp_url: str | None = None

class GroupUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    whatsapp_url: str | None = None

class GroupOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    whatsapp_url: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True

class GroupSummaryOut(GroupOut):
    member_count: int
    task_count: int
    is_admin: bool

class GroupMemberOut(BaseModel):
    id: int
    user_id: int
    group_id: int
    is_admin: bool
    user: UserPublic | None = None

    class Config:
        from_attributes = True

class MemberAdd(BaseModel):
    user_id: int
    group_id: int

class MemberAddByUsername(BaseModel):
    username: str
