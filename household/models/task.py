from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Enum, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from household.db.session import Base
from household.models.enums import Stage

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    due = Column(Date, nullable=True)
    stage = Column(Enum(Stage, name="stage"), nullable=False, default=Stage.TO_DO)
    group_member_id = Column(Integer, ForeignKey("group_members.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    group = relationship("Group", back_populates="tasks")
    assignee = relationship("GroupMember")
