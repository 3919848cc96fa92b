"""Schemas for project labels"""
from typing import Optional

from pydantic import BaseModel, Field


class LabelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class LabelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


class LabelSummary(BaseModel):
    id: int
    name: str
    color: str

    class Config:
        from_attributes = True


class LabelResponse(LabelSummary):
    project_id: int
    description: Optional[str]
