"""
User Model
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from novo.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)

    # Premium subscription state, maintained by the payment collaborator
    is_premium = Column(Boolean, default=False, nullable=False)
    premium_start_date = Column(DateTime(timezone=True), nullable=True)
    premium_end_date = Column(DateTime(timezone=True), nullable=True)
    user_cancelled_premium = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    owned_projects = relationship("Project", back_populates="owner", foreign_keys="Project.owner_id")
    project_memberships = relationship(
        "ProjectMember",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="ProjectMember.user_id",
    )
    comments = relationship("TaskComment", back_populates="author", cascade="all, delete-orphan")
