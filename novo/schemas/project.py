"""Schemas for projects"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    owner_id: int
    status: str
    progress: int
    member_count: int
    read_only: bool
    total_tasks: int
    completed_tasks: int
    created_at: datetime
    updated_at: datetime


class AccessResponse(BaseModel):
    project_id: int
    role: str
    can_manage: bool
    read_only: bool


class TaskCountsResponse(BaseModel):
    total: int
    completed: int
    in_progress: int
