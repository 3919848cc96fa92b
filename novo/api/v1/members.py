"""Project member and invitation endpoints"""
from typing import List, Tuple, Union

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from novo.database import get_db
from novo.dependencies import get_current_user
from novo.models import User
from novo.schemas import (
    ActiveMemberResponse,
    MemberRoleUpdate,
    MembersAdd,
    PendingMemberResponse,
    UserSummary,
)
from novo.services.membership import MemberListing, MembershipRegistry

router = APIRouter()

MembersPair = Tuple[List[ActiveMemberResponse], List[PendingMemberResponse]]


def _serialize_listing(listing: MemberListing) -> MembersPair:
    active = [
        ActiveMemberResponse(
            user=UserSummary(id=member.user_id, email=member.email, name=member.name),
            role=member.role,
            joined_at=member.joined_at,
        )
        for member in listing.active
    ]
    pending = [
        PendingMemberResponse(
            id=member.invitation_id,
            email=member.email,
            role=member.role,
            created_at=member.created_at,
        )
        for member in listing.pending
    ]
    return active, pending


def _parse_target(member: str) -> Union[int, str]:
    """Path segment is either a user id or an e-mail address."""
    return int(member) if member.isdigit() else member


@router.get("/projects/{project_id}/members", response_model=MembersPair)
def list_members(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return ``[active, pending]`` members, excluding the caller."""
    return _serialize_listing(MembershipRegistry(db).list_members(project_id, current_user))


@router.post("/projects/{project_id}/members", response_model=MembersPair)
def add_members(
    project_id: int,
    members_data: MembersAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    registry = MembershipRegistry(db)
    return _serialize_listing(registry.add_members(project_id, members_data.users, current_user))


@router.delete("/projects/{project_id}/members/{member}", response_model=MembersPair)
def remove_member(
    project_id: int,
    member: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    registry = MembershipRegistry(db)
    return _serialize_listing(registry.remove_member(project_id, _parse_target(member), current_user))


@router.patch("/projects/{project_id}/members/{member}", response_model=MembersPair)
def change_member_role(
    project_id: int,
    member: str,
    role_data: MemberRoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    registry = MembershipRegistry(db)
    listing = registry.change_role(project_id, _parse_target(member), role_data.role, current_user)
    return _serialize_listing(listing)


@router.post("/invitations/claim", response_model=List[int])
def claim_invitations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Accept every pending invitation sent to the current user's e-mail; returns project ids."""
    return [membership.project_id for membership in MembershipRegistry(db).claim_invitations(current_user)]
