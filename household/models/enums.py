import enum

class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    RON = "RON"
    GBP = "GBP"

class RecurrenceInterval(str, enum.Enum):
    NONE = "NONE"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

class Stage(str, enum.Enum):
    TO_DO = "TO_DO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
