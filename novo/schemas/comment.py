"""Schemas for task comments"""
from datetime import datetime

from pydantic import BaseModel, Field

from novo.schemas.user import UserSummary


class TaskCommentCreate(BaseModel):
    content: str = Field(..., min_length=1)


class TaskCommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class TaskCommentResponse(BaseModel):
    id: int
    task_id: int
    content: str
    created_at: datetime
    updated_at: datetime
    author: UserSummary

    class Config:
        from_attributes = True
