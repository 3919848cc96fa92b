"""Schemas for milestones"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class MilestoneCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class MilestoneUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class MilestoneTasksAdd(BaseModel):
    task_ids: List[int] = Field(..., min_length=1)


class MilestoneResponse(BaseModel):
    id: int
    project_id: int
    name: str
    description: Optional[str]
    due_date: Optional[datetime]
    color: str
    created_at: datetime
    all_tasks_count: int
    completed_tasks_count: int

    class Config:
        from_attributes = True
