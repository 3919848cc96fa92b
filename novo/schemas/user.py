"""Schemas for users"""
from pydantic import BaseModel


class UserSummary(BaseModel):
    id: int
    email: str
    name: str

    class Config:
        from_attributes = True
