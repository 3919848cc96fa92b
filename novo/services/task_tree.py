"""Helpers for one-level task trees (top-level tasks and their subtasks)"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from novo.models import Task, TaskStatus


@dataclass(frozen=True)
class SubtaskProgress:
    completed: int
    total: int


@dataclass
class TaskNode:
    task: Task
    subtasks: List[Task] = field(default_factory=list)

    @property
    def progress(self) -> Optional[SubtaskProgress]:
        if self.task.is_subtask:
            return None
        return subtask_progress(self.subtasks)


def subtask_progress(subtasks: Iterable[Task]) -> SubtaskProgress:
    subtasks = list(subtasks)
    completed = sum(1 for task in subtasks if task.status == TaskStatus.COMPLETED.value)
    return SubtaskProgress(completed=completed, total=len(subtasks))


def load_subtasks(db: Session, parent_ids: Iterable[int]) -> Dict[int, List[Task]]:
    parent_ids = list(parent_ids)
    grouped: Dict[int, List[Task]] = {parent_id: [] for parent_id in parent_ids}
    if not parent_ids:
        return grouped

    rows = (
        db.query(Task)
        .filter(Task.parent_task_id.in_(parent_ids))
        .order_by(Task.created_at, Task.id)
        .all()
    )
    for subtask in rows:
        grouped[subtask.parent_task_id].append(subtask)
    return grouped


def build_nodes(db: Session, tasks: List[Task]) -> List[TaskNode]:
    """Wrap tasks into nodes; only top-level tasks get their subtasks populated."""
    subtasks = load_subtasks(db, [task.id for task in tasks if not task.is_subtask])
    return [TaskNode(task=task, subtasks=subtasks.get(task.id, [])) for task in tasks]
