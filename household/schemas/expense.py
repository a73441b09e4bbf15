from datetime import date, datetime
from decimal import Decimal
from typing import List
from pydantic import BaseModel
from household.models.enums import Currency, RecurrenceInterval
from household.schemas.group import GroupMemberOut

# required fields are checked by the service so that every caller gets the same errors
class ExpenseCreate(BaseModel):
    group_id: int | None = None
    title: str | None = None
    description: str | None = None
    value: Decimal | None = None
    currency: Currency | None = None
    is_recurring: bool = False
    recurrence_interval: RecurrenceInterval | None = None
    due: date | None = None

class ExpenseUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    value: Decimal | None = None
    currency: Currency | None = None
    is_recurring: bool | None = None
    recurrence_interval: RecurrenceInterval | None = None
    due: date | None = None

class ContributionCreate(BaseModel):
    expense_id: int
    value: Decimal

class ContributionUpdate(BaseModel):
    value: Decimal

class ContributionOut(BaseModel):
    id: int
    expense_id: int
    group_member_id: int | None = None
    value: Decimal
    created_at: datetime | None = None
    member: GroupMemberOut | None = None

    class Config:
        from_attributes = True

class ExpenseOut(BaseModel):
    id: int
    group_id: int
    title: str
    description: str | None = None
    value: Decimal
    currency: Currency
    is_recurring: bool
    recurrence_interval: RecurrenceInterval
    due: date | None = None
    created_at: datetime | None = None
    contributed: Decimal
    balance: Decimal
    contributions: List[ContributionOut] = []

    class Config:
        from_attributes = True

class CurrencyTotals(BaseModel):
    value: Decimal
    contributed: Decimal
    balance: Decimal

class MemberContributionTotals(BaseModel):
    group_member_id: int | None
    user_id: int | None = None
    username: str | None = None
    contributed: dict[Currency, Decimal]

class GroupLedgerOut(BaseModel):
    group_id: int
    totals: dict[Currency, CurrencyTotals]
    members: List[MemberContributionTotals]
