"""Project membership: registered members and pending e-mail invitations.

Members come in two shapes. A ``RegisteredMember`` has an account and a row in
``project_members``; a ``PendingMember`` is an e-mail that was invited before
an account existed. Both flow through ``dedup_keys`` so a person can never be
added twice, whichever shape they arrive in.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from novo.config import settings
from novo.errors import Conflict, Forbidden, NotFound, ValidationFailed
from novo.models import Invitation, MemberRole, ProjectMember, User
from novo.schemas.project_member import MemberCandidate
from novo.services.access import AccessDecision, AccessEvaluator, Role

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = frozenset(role.value for role in MemberRole)


@dataclass(frozen=True)
class RegisteredMember:
    user_id: int
    email: str
    name: str
    role: str
    joined_at: Optional[datetime] = None

    kind = "registered"


@dataclass(frozen=True)
class PendingMember:
    email: str
    role: str
    invitation_id: Optional[int] = None
    created_at: Optional[datetime] = None

    kind = "pending"


Member = Union[RegisteredMember, PendingMember]


@dataclass
class MemberListing:
    active: List[RegisteredMember]
    pending: List[PendingMember]

    def as_pair(self) -> Tuple[List[RegisteredMember], List[PendingMember]]:
        return self.active, self.pending


def normalize_email(email: str) -> str:
    return email.strip().lower()


def dedup_keys(member: Member) -> FrozenSet[str]:
    """Identity keys of a member; two members clash when their keys intersect."""
    keys = {f"email:{normalize_email(member.email)}"} if member.email else set()
    if isinstance(member, RegisteredMember):
        keys.add(f"user:{member.user_id}")
    return frozenset(keys)


def _registered(user: User, role: str, joined_at: Optional[datetime] = None) -> RegisteredMember:
    return RegisteredMember(user_id=user.id, email=user.email, name=user.name, role=role, joined_at=joined_at)


def _validate_role(role: str) -> str:
    if role not in ASSIGNABLE_ROLES:
        raise ValidationFailed(f"Unknown role '{role}'", field="role")
    return role


class MembershipRegistry:
    def __init__(self, db: Session):
        self.db = db
        self.access = AccessEvaluator(db)

    def _load(self, project_id: int) -> Tuple[List[RegisteredMember], List[PendingMember]]:
        rows = (
            self.db.query(ProjectMember, User)
            .join(User, User.id == ProjectMember.user_id)
            .filter(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.joined_at, ProjectMember.id)
            .all()
        )
        active = [_registered(user, member.role, member.joined_at) for member, user in rows]

        invitations = (
            self.db.query(Invitation)
            .filter(Invitation.project_id == project_id)
            .order_by(Invitation.created_at, Invitation.id)
            .all()
        )
        pending = [
            PendingMember(email=inv.email, role=inv.role, invitation_id=inv.id, created_at=inv.created_at)
            for inv in invitations
        ]
        return active, pending

    def _taken_keys(self, project) -> Set[str]:
        active, pending = self._load(project.id)
        taken: Set[str] = set(dedup_keys(_registered(project.owner, Role.OWNER.value)))
        for member in [*active, *pending]:
            taken |= dedup_keys(member)
        return taken

    def list_members(self, project_id: int, acting_user: User) -> MemberListing:
        """Active and pending members as seen by ``acting_user`` (who is never listed)."""
        self.access.require_participant(project_id, acting_user)
        project = self.access.load_project(project_id)
        active, pending = self._load(project_id)

        caller_keys = dedup_keys(_registered(acting_user, Role.MEMBER.value))
        if project.owner_id != acting_user.id:
            owner = project.owner
            active.insert(0, _registered(owner, Role.OWNER.value, project.created_at))

        return MemberListing(
            active=[member for member in active if not dedup_keys(member) & caller_keys],
            pending=[member for member in pending if not dedup_keys(member) & caller_keys],
        )

    def _resolve(self, candidate: Union[MemberCandidate, str]) -> Member:
        if isinstance(candidate, str):
            candidate = MemberCandidate(email=candidate)
        role = _validate_role(candidate.role)

        if candidate.id is not None:
            user = self.db.get(User, candidate.id)
            if user is None:
                raise NotFound(f"User {candidate.id} not found")
            return _registered(user, role)

        email = normalize_email(str(candidate.email))
        user = self.db.query(User).filter(func.lower(User.email) == email).first()
        if user is not None:
            return _registered(user, role)
        return PendingMember(email=email, role=role)

    def add_members(
        self,
        project_id: int,
        candidates: Iterable[Union[MemberCandidate, str]],
        acting_user: User,
    ) -> MemberListing:
        """Add registered members and pending invitations in one all-or-nothing batch."""
        self.access.require_writable(project_id, acting_user, manage=True)
        project = self.access.load_project(project_id)
        resolved = [self._resolve(candidate) for candidate in candidates]
        if not resolved:
            raise ValidationFailed("No members to add", field="users")

        taken = self._taken_keys(project)
        conflicts = []
        for member in resolved:
            keys = dedup_keys(member)
            if keys & taken:
                conflicts.append(member.email)
            taken |= keys
        if conflicts:
            logger.warning("Rejected member batch for project %s: conflicts %s", project_id, conflicts)
            raise Conflict("Some users are already members or invited", conflicts=conflicts)

        self._check_plan_limit(project_id, len(resolved))

        for member in resolved:
            if isinstance(member, RegisteredMember):
                self.db.add(ProjectMember(
                    project_id=project_id,
                    user_id=member.user_id,
                    role=member.role,
                    inviter_id=acting_user.id,
                ))
            else:
                self.db.add(Invitation(
                    project_id=project_id,
                    email=member.email,
                    role=member.role,
                    inviter_id=acting_user.id,
                ))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            taken = self._taken_keys(self.access.load_project(project_id))
            conflicts = [member.email for member in resolved if dedup_keys(member) & taken]
            logger.warning(
                "Member batch for project %s collided with a concurrent add: %s", project_id, conflicts
            )
            raise Conflict(
                "Some users are already members or invited",
                conflicts=conflicts or [member.email for member in resolved],
            )

        logger.info(
            "User %s added %d member(s) to project %s",
            acting_user.id,
            len(resolved),
            project_id,
        )
        return self.list_members(project_id, acting_user)

    def _check_plan_limit(self, project_id: int, added: int) -> None:
        snapshot = self.access.snapshot(project_id)
        if snapshot.member_count + added <= settings.FREE_PLAN_MEMBER_LIMIT:
            return
        if not snapshot.owner_premium_active:
            logger.warning(
                "Project %s would exceed the free plan limit (%d members)",
                project_id,
                snapshot.member_count + added,
            )
            raise Forbidden(
                f"Free plan projects are limited to {settings.FREE_PLAN_MEMBER_LIMIT} members; "
                "the owner needs an active premium subscription"
            )

    def _find_target(self, project_id: int, target: Union[int, str]):
        """Locate a member row or invitation by user id or e-mail."""
        if isinstance(target, int):
            return (
                self.db.query(ProjectMember)
                .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == target)
                .first()
            )

        email = normalize_email(target)
        invitation = (
            self.db.query(Invitation)
            .filter(Invitation.project_id == project_id, func.lower(Invitation.email) == email)
            .first()
        )
        if invitation is not None:
            return invitation
        return (
            self.db.query(ProjectMember)
            .join(User, User.id == ProjectMember.user_id)
            .filter(ProjectMember.project_id == project_id, func.lower(User.email) == email)
            .first()
        )

    def _is_owner_target(self, project_id: int, target: Union[int, str]) -> bool:
        project = self.access.load_project(project_id)
        if isinstance(target, int):
            return target == project.owner_id
        return normalize_email(target) == normalize_email(project.owner.email)

    def _authorize_change(self, decision: AccessDecision, row, acting_user: User, action: str) -> None:
        if isinstance(row, Invitation):
            if not decision.can_manage:
                raise Forbidden(f"Only the project owner or an admin can {action} invitations")
            return

        is_self = row.user_id == acting_user.id
        if decision.role is Role.OWNER:
            return
        if decision.role is Role.ADMIN and (is_self or row.role == MemberRole.MEMBER.value):
            return
        if decision.role is Role.MEMBER and is_self and action == "remove":
            return
        logger.warning(
            "User %s (%s) may not %s member %s in project %s",
            acting_user.id,
            decision.role.value,
            action,
            row.user_id,
            decision.project_id,
        )
        raise Forbidden(f"You are not allowed to {action} this member")

    def remove_member(self, project_id: int, target: Union[int, str], acting_user: User) -> MemberListing:
        """Remove a registered member (by user id or e-mail) or a pending invitation (by e-mail)."""
        decision = self.access.require_writable(project_id, acting_user)
        if self._is_owner_target(project_id, target):
            raise Forbidden("The project owner cannot be removed")

        row = self._find_target(project_id, target)
        if row is None:
            raise NotFound("Member not found")
        self._authorize_change(decision, row, acting_user, "remove")
        leaving = isinstance(row, ProjectMember) and row.user_id == acting_user.id

        self.db.delete(row)
        self.db.commit()
        logger.info("User %s removed %s from project %s", acting_user.id, target, project_id)

        if leaving:
            # The caller left the project and can no longer list it
            return MemberListing(active=[], pending=[])
        return self.list_members(project_id, acting_user)

    def change_role(self, project_id: int, target: Union[int, str], role: str, acting_user: User) -> MemberListing:
        decision = self.access.require_writable(project_id, acting_user, manage=True)
        role = _validate_role(role)
        if self._is_owner_target(project_id, target):
            raise Forbidden("The project owner's role cannot be changed")

        row = self._find_target(project_id, target)
        if row is None:
            raise NotFound("Member not found")
        self._authorize_change(decision, row, acting_user, "change the role of")

        if row.role != role:
            row.role = role
            self.db.commit()
            logger.info("User %s set role of %s in project %s to %s", acting_user.id, target, project_id, role)
        return self.list_members(project_id, acting_user)

    def claim_invitations(self, user: User) -> List[ProjectMember]:
        """Turn the pending invitations addressed to ``user``'s e-mail into memberships."""
        invitations = (
            self.db.query(Invitation)
            .filter(func.lower(Invitation.email) == normalize_email(user.email))
            .all()
        )
        created = []
        for invitation in invitations:
            project = invitation.project
            already_in = project.owner_id == user.id or (
                self.db.query(ProjectMember)
                .filter(ProjectMember.project_id == project.id, ProjectMember.user_id == user.id)
                .first()
                is not None
            )
            if not already_in:
                membership = ProjectMember(
                    project_id=project.id,
                    user_id=user.id,
                    role=invitation.role,
                    inviter_id=invitation.inviter_id,
                )
                self.db.add(membership)
                created.append(membership)
            self.db.delete(invitation)

        if invitations:
            self.db.commit()
            logger.info("User %s claimed %d invitation(s)", user.id, len(created))
        return created
