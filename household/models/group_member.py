from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, false
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from household.db.session import Base

class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_group_members_user_group"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="memberships")
    group = relationship("Group", back_populates="members")
