"""Task assignments.

An assignee set has two halves: assignments already stored for the task and
a pending set the client is still staging (for example while a new task is
being drafted). ``merge_assignments`` is the one place the two are reconciled.
"""
import logging
from typing import Any, Hashable, Iterable, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from novo.errors import NotFound, ValidationFailed
from novo.models import Assignment, Project, ProjectMember, Task, User
from novo.services.access import AccessEvaluator

logger = logging.getLogger(__name__)


def assignee_key(item: Any) -> Hashable:
    """The user id behind an assignment-like item."""
    if isinstance(item, int):
        return item
    if isinstance(item, dict):
        return item.get("user_id", item.get("id"))
    if hasattr(item, "user_id"):
        return item.user_id
    return item.id


def merge_assignments(existing: Iterable[Any], pending: Iterable[Any]) -> List[Any]:
    """Union by user id: existing entries keep their place, new pending ones follow."""
    merged = []
    seen: Set[Hashable] = set()
    for item in [*existing, *pending]:
        key = assignee_key(item)
        if key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return merged


class PendingAssignments:
    """Client-held assignees that have not been written yet."""

    def __init__(self, user_ids: Iterable[int] = ()):
        self._user_ids: List[int] = merge_assignments([], user_ids)

    @property
    def user_ids(self) -> List[int]:
        return list(self._user_ids)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._user_ids

    def __len__(self) -> int:
        return len(self._user_ids)

    def stage(self, user_ids: Iterable[int]) -> None:
        self._user_ids = merge_assignments(self._user_ids, user_ids)

    def unstage(self, user_id: int) -> bool:
        if user_id not in self._user_ids:
            return False
        self._user_ids.remove(user_id)
        return True


class AssignmentCoordinator:
    def __init__(self, db: Session):
        self.db = db
        self.access = AccessEvaluator(db)

    def _get_task(self, task_id: int) -> Task:
        task = self.db.query(Task).populate_existing().filter(Task.id == task_id).first()
        if task is None:
            raise NotFound("Task not found")
        return task

    def _existing(self, task_id: int) -> List[Assignment]:
        return (
            self.db.query(Assignment)
            .filter(Assignment.task_id == task_id)
            .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
            .all()
        )

    def participant_ids(self, project_id: int) -> Set[int]:
        owner_id = self.db.query(Project.owner_id).filter(Project.id == project_id).scalar()
        member_ids = {
            row[0]
            for row in self.db.query(ProjectMember.user_id).filter(ProjectMember.project_id == project_id)
        }
        if owner_id is not None:
            member_ids.add(owner_id)
        return member_ids

    def _check_participants(self, project_id: int, user_ids: Iterable[int]) -> None:
        allowed = self.participant_ids(project_id)
        outsiders = [user_id for user_id in user_ids if user_id not in allowed]
        if outsiders:
            raise ValidationFailed(
                f"Users {', '.join(str(uid) for uid in outsiders)} are not part of this project",
                field="user_ids",
            )

    def _write(self, task: Task, user_ids: Iterable[int], assigned_by: User) -> int:
        existing = [row.user_id for row in self._existing(task.id)]
        to_add = merge_assignments(existing, user_ids)[len(existing):]
        for user_id in to_add:
            self.db.add(Assignment(
                task_id=task.id,
                user_id=user_id,
                project_id=task.project_id,
                assigned_by_id=assigned_by.id,
            ))
        return len(to_add)

    def _write_and_commit(self, task: Task, user_ids: List[int], assigned_by: User) -> int:
        """Store the missing assignees and commit.

        A pair inserted by a concurrent request between the read and the commit
        trips the unique constraint. The transaction is rolled back and the
        write is replayed once against the fresh stored set.
        """
        task_id = task.id
        try:
            added = self._write(task, user_ids, assigned_by)
            if added:
                self.db.commit()
            return added
        except IntegrityError:
            self.db.rollback()
            logger.warning("Concurrent assignment on task %s, merging with stored assignees", task_id)

        added = self._write(task, user_ids, assigned_by)
        if added:
            self.db.commit()
        return added

    def persist_pending(self, task: Task, pending: PendingAssignments, assigned_by: User) -> int:
        """Write staged assignees for a freshly created task; the caller commits."""
        self._check_participants(task.project_id, pending.user_ids)
        self.db.flush()
        return self._write(task, pending.user_ids, assigned_by)

    def list_assignments(self, task_id: int, acting_user: User) -> List[Assignment]:
        task = self._get_task(task_id)
        self.access.require_participant(task.project_id, acting_user)
        return self._existing(task.id)

    def assign_self(self, task_id: int, acting_user: User) -> List[Assignment]:
        task = self._get_task(task_id)
        self.access.require_writable(task.project_id, acting_user)

        if self._write_and_commit(task, [acting_user.id], acting_user):
            logger.info("User %s assigned themselves to task %s", acting_user.id, task_id)
        return self._existing(task_id)

    def unassign_self(self, task_id: int, acting_user: User) -> List[Assignment]:
        task = self._get_task(task_id)
        self.access.require_writable(task.project_id, acting_user)

        removed = (
            self.db.query(Assignment)
            .filter(Assignment.task_id == task.id, Assignment.user_id == acting_user.id)
            .delete(synchronize_session="fetch")
        )
        if removed:
            self.db.commit()
            logger.info("User %s unassigned themselves from task %s", acting_user.id, task_id)
        return self._existing(task.id)

    def assign_others(self, task_id: int, user_ids: Iterable[int], acting_user: User) -> List[Assignment]:
        task = self._get_task(task_id)
        self.access.require_writable(task.project_id, acting_user, manage=True)
        user_ids = list(user_ids)
        self._check_participants(task.project_id, user_ids)

        added = self._write_and_commit(task, user_ids, acting_user)
        if added:
            logger.info("User %s assigned %d user(s) to task %s", acting_user.id, added, task_id)
        return self._existing(task_id)

    def unassign_other(
        self,
        task_id: int,
        user_id: int,
        acting_user: User,
        pending: Optional[PendingAssignments] = None,
    ) -> List[Assignment]:
        """Remove an assignee; one that only exists in ``pending`` is dropped locally."""
        task = self._get_task(task_id)
        existing = self._existing(task.id)
        stored = next((row for row in existing if row.user_id == user_id), None)

        if stored is None and pending is not None and pending.unstage(user_id):
            return existing

        self.access.require_writable(task.project_id, acting_user, manage=True)
        if stored is None:
            raise NotFound("User is not assigned to this task")

        self.db.delete(stored)
        self.db.commit()
        logger.info("User %s unassigned user %s from task %s", acting_user.id, user_id, task_id)
        return self._existing(task.id)
