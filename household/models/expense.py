from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Numeric, Boolean, Enum, Text, false
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from household.core.utils import ZERO, compute_balance, qround
from household.db.session import Base
from household.models.enums import Currency, RecurrenceInterval

class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    value = Column(Numeric(10, 2), nullable=False)
    currency = Column(Enum(Currency, name="currency"), nullable=False, default=Currency.USD)
    is_recurring = Column(Boolean, nullable=False, default=False, server_default=false())
    recurrence_interval = Column(
        Enum(RecurrenceInterval, name="recurrence_interval"),
        nullable=False,
        default=RecurrenceInterval.NONE,
    )
    due = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    group = relationship("Group", back_populates="expenses")
    contributions = relationship(
        "Contribution",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="Contribution.id",
    )

    # contributions must already be loaded, these never hit the database
    @property
    def contributed(self):
        return qround(sum((c.value for c in self.contributions), ZERO))

    @property
    def balance(self):
        return compute_balance(self.value, (c.value for c in self.contributions))
