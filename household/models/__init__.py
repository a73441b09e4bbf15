from household.models.enums import Currency, RecurrenceInterval, Stage
from household.models.user import User
from household.models.group import Group
from household.models.group_member import GroupMember
from household.models.expense import Expense
from household.models.contribution import Contribution
from household.models.task import Task

__all__ = [
    "Currency",
    "RecurrenceInterval",
    "Stage",
    "User",
    "Group",
    "GroupMember",
    "Expense",
    "Contribution",
    "Task",
]
