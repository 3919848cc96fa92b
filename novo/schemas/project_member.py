"""Schemas for project members"""
from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

from novo.schemas.user import UserSummary

AssignableRole = Literal["admin", "member"]


class MemberCandidate(BaseModel):
    """A user to add; ``id`` is set when the client picked a registered account."""

    id: Optional[int] = None
    email: EmailStr
    name: Optional[str] = None
    role: AssignableRole = "member"


class MembersAdd(BaseModel):
    # Bare e-mails are accepted next to full candidate objects
    users: List[Union[MemberCandidate, EmailStr]] = Field(..., min_length=1)


class MemberRoleUpdate(BaseModel):
    role: AssignableRole


class ActiveMemberResponse(BaseModel):
    user: UserSummary
    role: str
    joined_at: Optional[datetime] = None


class PendingMemberResponse(BaseModel):
    id: Optional[int] = None
    email: str
    role: str
    created_at: Optional[datetime] = None
