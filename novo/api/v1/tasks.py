"""Task endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from novo.database import get_db
from novo.dependencies import get_current_user
from novo.models import Task, User
from novo.schemas import (
    AssignmentResponse,
    LabelSummary,
    StatusChangeResponse,
    SubtaskProgressResponse,
    TaskCreate,
    TaskDeletedResponse,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from novo.services.hierarchy import StatusChange, TaskHierarchyManager
from novo.services.task_tree import SubtaskProgress, TaskNode

router = APIRouter()


def _progress(progress: Optional[SubtaskProgress]) -> Optional[SubtaskProgressResponse]:
    if progress is None:
        return None
    return SubtaskProgressResponse(completed=progress.completed, total=progress.total)


def _serialize_task(
    task: Task,
    milestone_id: Optional[int],
    subtasks: Optional[List[TaskResponse]] = None,
    progress: Optional[SubtaskProgress] = None,
) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        project_id=task.project_id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        due_date=task.due_date,
        milestone_id=milestone_id,
        parent_task_id=task.parent_task_id,
        attachments_count=task.attachments_count,
        created_at=task.created_at,
        updated_at=task.updated_at,
        labels=[LabelSummary.model_validate(label) for label in task.labels],
        assignees=[AssignmentResponse.model_validate(assignment) for assignment in task.assignments],
        subtasks=subtasks or [],
        subtask_progress=_progress(progress),
    )


def serialize_node(manager: TaskHierarchyManager, node: TaskNode) -> TaskResponse:
    """Render a task with its subtasks; subtasks report their parent's milestone."""
    milestone_id = manager.effective_milestone_id(node.task)
    children = [_serialize_task(subtask, milestone_id) for subtask in node.subtasks]
    return _serialize_task(node.task, milestone_id, children, node.progress)


def _serialize_change(manager: TaskHierarchyManager, change: StatusChange) -> StatusChangeResponse:
    milestone = change.milestone
    return StatusChangeResponse(
        task=serialize_node(manager, manager.node(change.task)),
        parent_progress=_progress(change.parent_progress),
        milestone_id=milestone.id if milestone else None,
        milestone_completed_tasks_count=milestone.completed_tasks_count if milestone else None,
        milestone_all_tasks_count=milestone.all_tasks_count if milestone else None,
    )


@router.get("/projects/{project_id}/tasks", response_model=List[TaskResponse])
def list_tasks(
    project_id: int,
    sort: str = Query("updated_at"),
    order: str = Query("desc"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the top-level tasks of a project with their subtasks."""
    manager = TaskHierarchyManager(db)
    nodes = manager.list_tasks(project_id, current_user, sort_field=sort, sort_dir=order)
    return [serialize_node(manager, node) for node in nodes]


@router.post("/projects/{project_id}/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    project_id: int,
    task_data: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a task, or a subtask when ``parent_task_id`` is set."""
    manager = TaskHierarchyManager(db)
    task = manager.create_task(project_id, task_data, current_user)
    return serialize_node(manager, manager.node(task))


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    manager = TaskHierarchyManager(db)
    task = manager.get_task(task_id, current_user)
    return serialize_node(manager, manager.node(task))


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    task_data: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    manager = TaskHierarchyManager(db)
    task = manager.update_task(task_id, task_data, current_user)
    return serialize_node(manager, manager.node(task))


@router.delete("/tasks/{task_id}", response_model=TaskDeletedResponse)
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a task. Subtasks of a deleted parent are left in place."""
    deletion = TaskHierarchyManager(db).delete_task(task_id, current_user)
    return TaskDeletedResponse(
        id=deletion.task_id,
        parent_progress=_progress(deletion.parent_progress),
        orphaned_subtask_ids=deletion.orphaned_subtask_ids,
    )


@router.patch("/tasks/{task_id}/status", response_model=StatusChangeResponse)
def update_task_status(
    task_id: int,
    status_data: TaskStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    manager = TaskHierarchyManager(db)
    change = manager.update_status(task_id, status_data.status, current_user)
    return _serialize_change(manager, change)


@router.post("/tasks/{task_id}/toggle", response_model=StatusChangeResponse)
def toggle_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Toggle a task between completed and its previous status."""
    manager = TaskHierarchyManager(db)
    change = manager.toggle_completed(task_id, current_user)
    return _serialize_change(manager, change)
