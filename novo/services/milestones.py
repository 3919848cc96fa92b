"""Milestones and their task counts.

``all_tasks_count`` and ``completed_tasks_count`` are always recomputed from
the top-level tasks currently attached to the milestone. Subtasks are never
attached directly; they follow their parent.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from novo.errors import Conflict, NotFound, ValidationFailed
from novo.models import Milestone, Task, TaskStatus, User
from novo.schemas.milestone import MilestoneCreate, MilestoneUpdate
from novo.services.access import AccessEvaluator
from novo.services.task_tree import TaskNode, build_nodes
from novo.utils.colors import pick_color

logger = logging.getLogger(__name__)

SUBTASK_MILESTONE_MESSAGE = "Subtasks follow their parent's milestone; manage it via the parent task"


@dataclass(frozen=True)
class MilestoneCounts:
    all_tasks: int
    completed_tasks: int


def compute_counts(tasks: Iterable[Task], milestone_id: int) -> MilestoneCounts:
    members = [task for task in tasks if task.milestone_id == milestone_id and not task.is_subtask]
    completed = sum(1 for task in members if task.status == TaskStatus.COMPLETED.value)
    return MilestoneCounts(all_tasks=len(members), completed_tasks=completed)


@dataclass
class MilestoneSummary:
    milestone: Milestone
    counts: MilestoneCounts


class MilestoneAggregator:
    def __init__(self, db: Session):
        self.db = db
        self.access = AccessEvaluator(db)

    def recompute_counts(self, milestone: Milestone) -> Milestone:
        """Rewrite the milestone's counts from its current top-level tasks (not committed)."""
        self.db.flush()
        tasks = (
            self.db.query(Task)
            .filter(Task.milestone_id == milestone.id, Task.parent_task_id.is_(None))
            .all()
        )
        counts = compute_counts(tasks, milestone.id)
        milestone.all_tasks_count = counts.all_tasks
        milestone.completed_tasks_count = counts.completed_tasks
        return milestone

    def recompute_by_ids(self, milestone_ids: Iterable[Optional[int]]) -> None:
        for milestone_id in {mid for mid in milestone_ids if mid is not None}:
            milestone = self.db.get(Milestone, milestone_id)
            if milestone is not None:
                self.recompute_counts(milestone)

    def _get(self, milestone_id: int) -> Milestone:
        milestone = self.db.query(Milestone).populate_existing().filter(Milestone.id == milestone_id).first()
        if milestone is None:
            raise NotFound("Milestone not found")
        return milestone

    def get_milestone(self, milestone_id: int, acting_user: User) -> Milestone:
        milestone = self._get(milestone_id)
        self.access.require_participant(milestone.project_id, acting_user)
        return milestone

    def list_milestones(self, project_id: int, acting_user: User) -> List[MilestoneSummary]:
        """Milestones with counts computed from their current tasks; nothing is written."""
        self.access.require_participant(project_id, acting_user)
        milestones = (
            self.db.query(Milestone)
            .filter(Milestone.project_id == project_id)
            .order_by(Milestone.created_at, Milestone.id)
            .all()
        )
        tasks = (
            self.db.query(Task)
            .filter(
                Task.project_id == project_id,
                Task.milestone_id.isnot(None),
                Task.parent_task_id.is_(None),
            )
            .all()
        )
        return [MilestoneSummary(milestone, compute_counts(tasks, milestone.id)) for milestone in milestones]

    def create_milestone(self, project_id: int, data: MilestoneCreate, acting_user: User) -> Milestone:
        self.access.require_writable(project_id, acting_user, manage=True)
        used = [row[0] for row in self.db.query(Milestone.color).filter(Milestone.project_id == project_id)]

        milestone = Milestone(
            project_id=project_id,
            name=data.name.strip(),
            description=data.description,
            due_date=data.due_date,
            color=data.color or pick_color(used),
            all_tasks_count=0,
            completed_tasks_count=0,
        )
        self.db.add(milestone)
        self.db.commit()
        self.db.refresh(milestone)
        logger.info("User %s created milestone %s in project %s", acting_user.id, milestone.id, project_id)
        return milestone

    def update_milestone(self, milestone_id: int, data: MilestoneUpdate, acting_user: User) -> Milestone:
        milestone = self._get(milestone_id)
        self.access.require_writable(milestone.project_id, acting_user, manage=True)

        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if not (value is None and key in ("name", "color")) and getattr(milestone, key) != value
        }
        if not changes:
            return milestone

        for key, value in changes.items():
            setattr(milestone, key, value)
        self.db.commit()
        self.db.refresh(milestone)
        logger.info("User %s updated milestone %s (%s)", acting_user.id, milestone_id, ", ".join(changes))
        return milestone

    def delete_milestone(self, milestone_id: int, acting_user: User) -> None:
        milestone = self._get(milestone_id)
        self.access.require_writable(milestone.project_id, acting_user, manage=True)

        detached = (
            self.db.query(Task)
            .filter(Task.milestone_id == milestone_id)
            .update({Task.milestone_id: None}, synchronize_session="fetch")
        )
        self.db.delete(milestone)
        self.db.commit()
        logger.info("User %s deleted milestone %s, detached %d task(s)", acting_user.id, milestone_id, detached)

    def list_tasks(self, milestone_id: int, acting_user: User) -> List[TaskNode]:
        milestone = self.get_milestone(milestone_id, acting_user)
        tasks = (
            self.db.query(Task)
            .filter(Task.milestone_id == milestone.id, Task.parent_task_id.is_(None))
            .order_by(Task.created_at, Task.id)
            .all()
        )
        return build_nodes(self.db, tasks)

    def unassigned_tasks(self, project_id: int, acting_user: User) -> List[TaskNode]:
        self.access.require_participant(project_id, acting_user)
        tasks = (
            self.db.query(Task)
            .filter(
                Task.project_id == project_id,
                Task.milestone_id.is_(None),
                Task.parent_task_id.is_(None),
            )
            .order_by(Task.created_at, Task.id)
            .all()
        )
        return build_nodes(self.db, tasks)

    def add_tasks_to_milestone(self, milestone_id: int, task_ids: Iterable[int], acting_user: User) -> Milestone:
        """Attach top-level tasks; every task is validated before anything is written."""
        milestone = self._get(milestone_id)
        self.access.require_writable(milestone.project_id, acting_user, manage=True)

        tasks = []
        for task_id in dict.fromkeys(task_ids):
            task = self.db.query(Task).populate_existing().filter(Task.id == task_id).first()
            if task is None:
                raise NotFound(f"Task {task_id} not found")
            if task.project_id != milestone.project_id:
                raise ValidationFailed(f"Task {task_id} belongs to another project", field="task_ids")
            if task.is_subtask:
                raise Conflict(SUBTASK_MILESTONE_MESSAGE, conflicts=[task_id])
            tasks.append(task)

        touched: Set[Optional[int]] = {milestone.id}
        for task in tasks:
            touched.add(task.milestone_id)
            task.milestone_id = milestone.id

        self.recompute_by_ids(touched)
        self.db.commit()
        self.db.refresh(milestone)
        logger.info("User %s added %d task(s) to milestone %s", acting_user.id, len(tasks), milestone_id)
        return milestone

    def remove_task_from_milestone(self, milestone_id: int, task_id: int, acting_user: User) -> Milestone:
        milestone = self._get(milestone_id)
        self.access.require_writable(milestone.project_id, acting_user, manage=True)

        task = self.db.query(Task).populate_existing().filter(Task.id == task_id).first()
        if task is None:
            raise NotFound("Task not found")
        if task.is_subtask:
            raise Conflict(SUBTASK_MILESTONE_MESSAGE, conflicts=[task_id])
        if task.milestone_id != milestone.id:
            raise NotFound("Task is not part of this milestone")

        task.milestone_id = None
        self.recompute_counts(milestone)
        self.db.commit()
        self.db.refresh(milestone)
        logger.info("User %s removed task %s from milestone %s", acting_user.id, task_id, milestone_id)
        return milestone
