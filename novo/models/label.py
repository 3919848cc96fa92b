"""Project label model"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from novo.database import Base
from novo.models.task import task_labels


class Label(Base):
    __tablename__ = "labels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="labels")
    tasks = relationship("Task", secondary=task_labels, back_populates="labels")

    __table_args__ = (
        UniqueConstraint("project_id", "name", name="unique_project_label"),
    )
