"""Access evaluation for projects.

Every mutation in the tracker is gated on an ``AccessDecision``: the acting
user's role in the project, whether that role may manage the project, and
whether the project is locked read-only because the owner's premium plan
lapsed while the project is over the free-plan member limit.

The decision is a pure function of a ``ProjectSnapshot``. ``AccessEvaluator``
builds that snapshot from the database on every call, refreshing rows that
are already in the session, so a stale ``read_only`` flag can never leak into
a later mutation.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy.orm import Session

from novo.config import settings
from novo.errors import Forbidden, NotFound, READ_ONLY_MESSAGE
from novo.models import Invitation, Project, ProjectMember, User

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    NONE = "none"


MANAGER_ROLES = frozenset({Role.OWNER, Role.ADMIN})


@dataclass(frozen=True)
class ProjectSnapshot:
    project_id: int
    owner_id: int
    owner_premium_lapsed: bool
    owner_premium_active: bool
    member_count: int
    member_roles: Dict[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AccessDecision:
    project_id: int
    role: Role
    can_manage: bool
    read_only: bool

    @property
    def is_participant(self) -> bool:
        return self.role is not Role.NONE


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def premium_lapsed(owner: User, now: Optional[datetime] = None) -> bool:
    """True when the owner once had premium and it is now cancelled or expired."""
    had_premium = owner.premium_start_date is not None or bool(owner.user_cancelled_premium)
    if not had_premium:
        return False
    if owner.user_cancelled_premium or not owner.is_premium:
        return True
    end = _as_utc(owner.premium_end_date)
    return end is not None and end <= _as_utc(now or datetime.now(timezone.utc))


def premium_active(owner: User, now: Optional[datetime] = None) -> bool:
    if not owner.is_premium or owner.user_cancelled_premium:
        return False
    end = _as_utc(owner.premium_end_date)
    return end is None or end > _as_utc(now or datetime.now(timezone.utc))


def is_read_only(owner_premium_lapsed: bool, member_count: int, limit: Optional[int] = None) -> bool:
    if limit is None:
        limit = settings.FREE_PLAN_MEMBER_LIMIT
    return owner_premium_lapsed and member_count > limit


def evaluate(snapshot: ProjectSnapshot, acting_user_id: int) -> AccessDecision:
    """Resolve the acting user's role, manage rights and the read-only flag."""
    if snapshot.owner_id == acting_user_id:
        role = Role.OWNER
    elif acting_user_id in snapshot.member_roles:
        role = Role(snapshot.member_roles[acting_user_id])
    else:
        role = Role.NONE

    return AccessDecision(
        project_id=snapshot.project_id,
        role=role,
        can_manage=role in MANAGER_ROLES,
        read_only=is_read_only(snapshot.owner_premium_lapsed, snapshot.member_count),
    )


class AccessEvaluator:
    def __init__(self, db: Session):
        self.db = db

    def load_project(self, project_id: int) -> Project:
        project = (
            self.db.query(Project)
            .populate_existing()
            .filter(Project.id == project_id)
            .first()
        )
        if project is None:
            raise NotFound("Project not found")
        return project

    def snapshot(self, project_id: int) -> ProjectSnapshot:
        project = self.load_project(project_id)
        owner = self.db.query(User).populate_existing().filter(User.id == project.owner_id).one()

        member_rows = (
            self.db.query(ProjectMember.user_id, ProjectMember.role)
            .filter(ProjectMember.project_id == project_id)
            .all()
        )
        pending_count = self.db.query(Invitation).filter(Invitation.project_id == project_id).count()
        member_roles = {user_id: role for user_id, role in member_rows if user_id != project.owner_id}

        return ProjectSnapshot(
            project_id=project.id,
            owner_id=project.owner_id,
            owner_premium_lapsed=premium_lapsed(owner),
            owner_premium_active=premium_active(owner),
            # The owner counts towards the plan limit
            member_count=1 + len(member_roles) + pending_count,
            member_roles=member_roles,
        )

    def evaluate(self, project_id: int, acting_user_id: int) -> AccessDecision:
        return evaluate(self.snapshot(project_id), acting_user_id)

    def require_participant(self, project_id: int, user: User) -> AccessDecision:
        decision = self.evaluate(project_id, user.id)
        if not decision.is_participant:
            logger.warning("User %s denied access to project %s", user.id, project_id)
            raise Forbidden("You don't have access to this project")
        return decision

    def require_manager(self, project_id: int, user: User) -> AccessDecision:
        decision = self.require_participant(project_id, user)
        if not decision.can_manage:
            logger.warning("User %s (%s) cannot manage project %s", user.id, decision.role.value, project_id)
            raise Forbidden("Only the project owner or an admin can do this")
        return decision

    def require_writable(self, project_id: int, user: User, manage: bool = False) -> AccessDecision:
        """Gate a mutation: participant (or manager) on a project that is not read-only."""
        if manage:
            decision = self.require_manager(project_id, user)
        else:
            decision = self.require_participant(project_id, user)
        if decision.read_only:
            logger.warning("Rejected mutation by user %s on read-only project %s", user.id, project_id)
            raise Forbidden(READ_ONLY_MESSAGE)
        return decision
