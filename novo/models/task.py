"""
Task Model
"""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from novo.database import Base


class TaskStatus(str, enum.Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


task_labels = Table(
    "task_labels",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", Integer, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True),
)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=TaskStatus.NOT_STARTED.value, nullable=False, index=True)
    # Status restored when a completed task is toggled back
    previous_status = Column(String(20), nullable=True)
    priority = Column(String(10), default=TaskPriority.MEDIUM.value, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    milestone_id = Column(Integer, ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True, index=True)
    # Not a foreign key: deleting a parent leaves its subtasks pointing at the old id
    parent_task_id = Column(Integer, nullable=True, index=True)
    attachments_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="tasks")
    milestone = relationship("Milestone", back_populates="tasks")
    labels = relationship("Label", secondary=task_labels, back_populates="tasks", order_by="Label.name")
    assignments = relationship(
        "Assignment",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="Assignment.assigned_at.desc()",
    )
    comments = relationship(
        "TaskComment",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskComment.created_at",
    )

    @property
    def is_subtask(self) -> bool:
        return self.parent_task_id is not None
