"""Schemas for task assignments"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from novo.schemas.user import UserSummary


class AssignUsers(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)


class AssignmentResponse(BaseModel):
    user: UserSummary
    assigned_by_id: Optional[int]
    assigned_at: datetime

    class Config:
        from_attributes = True
