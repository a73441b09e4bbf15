from datetime import date, datetime
from typing import List
from pydantic import BaseModel
from household.models.enums import Stage
from household.schemas.group import GroupMemberOut

class TaskCreate(BaseModel):
    group_id: int | None = None
    name: str | None = None
    description: str | None = None
    due: date | None = None

class TaskUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    due: date | None = None

class StageChange(BaseModel):
    # kept as a plain string, the service owns stage parsing
    stage: str

class TaskOut(BaseModel):
    id: int
    group_id: int
    name: str
    description: str | None = None
    due: date | None = None
    stage: Stage
    group_member_id: int | None = None
    created_at: datetime | None = None
    assignee: GroupMemberOut | None = None

    class Config:
        from_attributes = True

class BoardOut(BaseModel):
    group_id: int
    TO_DO: List[TaskOut]
    IN_PROGRESS: List[TaskOut]
    DONE: List[TaskOut]
