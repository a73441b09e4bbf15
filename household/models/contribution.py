from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from household.db.session import Base

class Contribution(Base):
    __tablename__ = "contributions"
    __table_args__ = (
        UniqueConstraint("expense_id", "group_member_id", name="uq_contributions_expense_member"),
    )

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    # nulled when the member leaves the group, the payment itself stays on the books
    group_member_id = Column(Integer, ForeignKey("group_members.id", ondelete="SET NULL"), nullable=True)
    value = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    expense = relationship("Expense", back_populates="contributions")
    member = relationship("GroupMember")
