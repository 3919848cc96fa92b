"""Tasks and their one-level subtask trees.

A task is top-level when ``parent_task_id`` is empty; otherwise it is a
subtask of that parent. Nesting stops there: a subtask never gets subtasks of
its own. Subtasks inherit their parent's milestone when read and never count
towards milestone totals themselves.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from novo.config import settings
from novo.errors import NotFound, ValidationFailed
from novo.models import Milestone, Task, TaskPriority, TaskStatus, User
from novo.schemas.task import TaskCreate, TaskUpdate
from novo.services.access import AccessEvaluator
from novo.services.assignments import AssignmentCoordinator, PendingAssignments
from novo.services.labels import LabelService
from novo.services.milestones import MilestoneAggregator
from novo.services.task_tree import SubtaskProgress, TaskNode, build_nodes, subtask_progress

logger = logging.getLogger(__name__)

STATUS_VALUES = frozenset(status.value for status in TaskStatus)
PRIORITY_ORDER = {TaskPriority.LOW.value: 0, TaskPriority.MEDIUM.value: 1, TaskPriority.HIGH.value: 2}
SORTABLE_FIELDS = {
    "updated_at": Task.updated_at,
    "created_at": Task.created_at,
    "due_date": Task.due_date,
    "title": Task.title,
    "status": Task.status,
    "priority": case(PRIORITY_ORDER, value=Task.priority, else_=-1),
}


@dataclass
class StatusChange:
    task: Task
    parent_progress: Optional[SubtaskProgress] = None
    milestone: Optional[Milestone] = None


@dataclass
class TaskDeletion:
    task_id: int
    parent_progress: Optional[SubtaskProgress] = None
    orphaned_subtask_ids: List[int] = field(default_factory=list)


def _normalized(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return value


def _check_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if len(title) < settings.TASK_TITLE_MIN_LENGTH:
        raise ValidationFailed(
            f"Title must be at least {settings.TASK_TITLE_MIN_LENGTH} characters long",
            field="title",
        )
    return title


def _check_status(status: str) -> str:
    if status not in STATUS_VALUES:
        raise ValidationFailed(f"Unknown status '{status}'", field="status")
    return status


class TaskHierarchyManager:
    def __init__(self, db: Session):
        self.db = db
        self.access = AccessEvaluator(db)
        self.milestones = MilestoneAggregator(db)
        self.assignments = AssignmentCoordinator(db)
        self.labels = LabelService(db)

    def _get(self, task_id: int) -> Task:
        task = self.db.query(Task).populate_existing().filter(Task.id == task_id).first()
        if task is None:
            raise NotFound("Task not found")
        return task

    def parent_of(self, task: Task) -> Optional[Task]:
        """The parent of a subtask, or None for top-level and orphaned tasks."""
        if not task.is_subtask:
            return None
        return self.db.query(Task).filter(Task.id == task.parent_task_id).first()

    def subtasks_of(self, task: Task) -> List[Task]:
        return (
            self.db.query(Task)
            .filter(Task.parent_task_id == task.id)
            .order_by(Task.created_at, Task.id)
            .all()
        )

    def subtask_progress(self, task: Task) -> SubtaskProgress:
        return subtask_progress(self.subtasks_of(task))

    def effective_milestone_id(self, task: Task) -> Optional[int]:
        if task.is_subtask:
            parent = self.parent_of(task)
            return parent.milestone_id if parent is not None else None
        return task.milestone_id

    def node(self, task: Task) -> TaskNode:
        return build_nodes(self.db, [task])[0]

    def get_task(self, task_id: int, acting_user: User) -> Task:
        task = self._get(task_id)
        self.access.require_participant(task.project_id, acting_user)
        return task

    def list_tasks(
        self,
        project_id: int,
        acting_user: User,
        sort_field: str = "updated_at",
        sort_dir: str = "desc",
    ) -> List[TaskNode]:
        """Top-level tasks of a project, each with its subtasks."""
        self.access.require_participant(project_id, acting_user)
        if sort_field not in SORTABLE_FIELDS:
            raise ValidationFailed(
                f"Cannot sort by '{sort_field}'; use one of {', '.join(sorted(SORTABLE_FIELDS))}",
                field="sort",
            )
        if sort_dir not in ("asc", "desc"):
            raise ValidationFailed("Sort direction must be 'asc' or 'desc'", field="order")

        column = SORTABLE_FIELDS[sort_field]
        tasks = (
            self.db.query(Task)
            .filter(Task.project_id == project_id, Task.parent_task_id.is_(None))
            .order_by(column.desc() if sort_dir == "desc" else column.asc(), Task.id.asc())
            .all()
        )
        return build_nodes(self.db, tasks)

    def create_task(
        self,
        project_id: int,
        data: TaskCreate,
        acting_user: User,
        parent_task_id: Optional[int] = None,
        pending: Optional[PendingAssignments] = None,
    ) -> Task:
        """Create a top-level task, or a subtask when a parent id is given."""
        self.access.require_writable(project_id, acting_user, manage=True)
        title = _check_title(data.title)

        if parent_task_id is None:
            parent_task_id = data.parent_task_id
        milestone_id = data.milestone_id
        if parent_task_id is not None:
            parent = self.db.query(Task).filter(Task.id == parent_task_id).first()
            if parent is None:
                raise NotFound("Parent task not found")
            if parent.project_id != project_id:
                raise ValidationFailed("Parent task belongs to another project", field="parent_task_id")
            if parent.is_subtask:
                raise ValidationFailed("Subtasks cannot have subtasks of their own", field="parent_task_id")
            # Subtasks follow the parent's milestone
            milestone_id = None
        elif milestone_id is not None:
            milestone = self.db.get(Milestone, milestone_id)
            if milestone is None or milestone.project_id != project_id:
                raise ValidationFailed("Milestone does not belong to this project", field="milestone_id")

        status = data.status or (TaskStatus.COMPLETED.value if data.completed else TaskStatus.NOT_STARTED.value)
        task = Task(
            project_id=project_id,
            title=title,
            description=data.description,
            status=_check_status(status),
            previous_status=TaskStatus.NOT_STARTED.value if status == TaskStatus.COMPLETED.value else None,
            priority=data.priority,
            due_date=data.due_date,
            milestone_id=milestone_id,
            parent_task_id=parent_task_id,
            attachments_count=0,
        )
        task.labels = self.labels.resolve_labels(project_id, data.label_ids)
        self.db.add(task)
        self.db.flush()

        staged = PendingAssignments(data.assignee_ids)
        if pending is not None:
            staged.stage(pending.user_ids)
        if len(staged):
            self.assignments.persist_pending(task, staged, acting_user)

        self.milestones.recompute_by_ids([milestone_id])
        self.db.commit()
        self.db.refresh(task)
        logger.info(
            "User %s created %s %s in project %s",
            acting_user.id,
            "subtask" if task.is_subtask else "task",
            task.id,
            project_id,
        )
        return task

    def _apply_status(self, task: Task, new_status: str) -> bool:
        """Set a task's status, remembering the prior state and completing subtasks with a parent."""
        new_status = _check_status(new_status)
        if task.status == new_status:
            return False

        if new_status == TaskStatus.COMPLETED.value:
            task.previous_status = task.status
        task.status = new_status

        if new_status == TaskStatus.COMPLETED.value and not task.is_subtask:
            for subtask in self.subtasks_of(task):
                if subtask.status != TaskStatus.COMPLETED.value:
                    subtask.previous_status = subtask.status
                    subtask.status = TaskStatus.COMPLETED.value
        return True

    def _status_change(self, task: Task, acting_user: User, new_status: str) -> StatusChange:
        if self._apply_status(task, new_status):
            milestone_id = self.effective_milestone_id(task)
            self.milestones.recompute_by_ids([milestone_id])
            self.db.commit()
            self.db.refresh(task)
            logger.info("User %s set task %s to %s", acting_user.id, task.id, task.status)

        parent = self.parent_of(task)
        milestone_id = self.effective_milestone_id(task)
        return StatusChange(
            task=task,
            parent_progress=self.subtask_progress(parent) if parent is not None else None,
            milestone=self.db.get(Milestone, milestone_id) if milestone_id is not None else None,
        )

    def update_status(self, task_id: int, new_status: str, acting_user: User) -> StatusChange:
        task = self._get(task_id)
        self.access.require_writable(task.project_id, acting_user)
        return self._status_change(task, acting_user, new_status)

    def toggle_completed(self, task_id: int, acting_user: User) -> StatusChange:
        """Flip between completed and the status the task had before completion."""
        task = self._get(task_id)
        self.access.require_writable(task.project_id, acting_user)

        if task.status == TaskStatus.COMPLETED.value:
            restored = task.previous_status
            if restored in (None, TaskStatus.COMPLETED.value):
                restored = TaskStatus.NOT_STARTED.value
            new_status = restored
        else:
            new_status = TaskStatus.COMPLETED.value
        return self._status_change(task, acting_user, new_status)

    def update_task(self, task_id: int, data: TaskUpdate, acting_user: User) -> Task:
        """Edit a task; a payload that changes nothing leaves the task untouched."""
        task = self._get(task_id)
        self.access.require_writable(task.project_id, acting_user, manage=True)

        fields: Dict[str, Any] = data.model_dump(exclude_unset=True)
        changes: Dict[str, Any] = {}
        if "title" in fields:
            title = _check_title(fields["title"])
            if title != task.title:
                changes["title"] = title
        for key in ("description", "due_date", "priority"):
            if key in fields and _normalized(fields[key]) != _normalized(getattr(task, key)):
                changes[key] = fields[key]

        new_labels = None
        if fields.get("label_ids") is not None:
            new_labels = self.labels.resolve_labels(task.project_id, fields["label_ids"])
            if {label.id for label in new_labels} == {label.id for label in task.labels}:
                new_labels = None

        status_changed = False
        if fields.get("status") is not None and fields["status"] != task.status:
            status_changed = True

        if not changes and new_labels is None and not status_changed:
            logger.debug("No changes for task %s", task_id)
            return task

        for key, value in changes.items():
            setattr(task, key, value)
        if new_labels is not None:
            task.labels = new_labels
        if status_changed:
            self._apply_status(task, fields["status"])
            self.milestones.recompute_by_ids([self.effective_milestone_id(task)])

        self.db.commit()
        self.db.refresh(task)
        logger.info("User %s updated task %s", acting_user.id, task_id)
        return task

    def delete_task(self, task_id: int, acting_user: User) -> TaskDeletion:
        """Delete a task; its subtasks stay behind as orphans."""
        task = self._get(task_id)
        self.access.require_writable(task.project_id, acting_user, manage=True)

        parent = self.parent_of(task)
        milestone_id = None if task.is_subtask else task.milestone_id
        orphaned = [subtask.id for subtask in self.subtasks_of(task)]

        self.db.delete(task)
        self.milestones.recompute_by_ids([milestone_id])
        self.db.commit()

        if orphaned:
            logger.warning("Deleted task %s left %d orphaned subtask(s)", task_id, len(orphaned))
        logger.info("User %s deleted task %s", acting_user.id, task_id)
        return TaskDeletion(
            task_id=task_id,
            parent_progress=self.subtask_progress(parent) if parent is not None else None,
            orphaned_subtask_ids=orphaned,
        )

    def task_counts(self, project_id: int, acting_user: User) -> Dict[str, int]:
        self.access.require_participant(project_id, acting_user)
        rows = (
            self.db.query(Task.status, func.count(Task.id))
            .filter(Task.project_id == project_id)
            .group_by(Task.status)
            .all()
        )
        by_status = dict(rows)
        return {
            "total": sum(by_status.values()),
            "completed": by_status.get(TaskStatus.COMPLETED.value, 0),
            "in_progress": by_status.get(TaskStatus.IN_PROGRESS.value, 0),
        }
