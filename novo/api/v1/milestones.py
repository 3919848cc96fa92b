"""Milestone endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from novo.api.v1.tasks import serialize_node
from novo.database import get_db
from novo.dependencies import get_current_user
from novo.models import User
from novo.schemas import MilestoneCreate, MilestoneResponse, MilestoneTasksAdd, MilestoneUpdate, TaskResponse
from novo.services.hierarchy import TaskHierarchyManager
from novo.services.milestones import MilestoneAggregator, MilestoneSummary

router = APIRouter()


def _serialize_summary(summary: MilestoneSummary) -> MilestoneResponse:
    milestone = summary.milestone
    return MilestoneResponse(
        id=milestone.id,
        project_id=milestone.project_id,
        name=milestone.name,
        description=milestone.description,
        due_date=milestone.due_date,
        color=milestone.color,
        created_at=milestone.created_at,
        all_tasks_count=summary.counts.all_tasks,
        completed_tasks_count=summary.counts.completed_tasks,
    )


@router.get("/projects/{project_id}/milestones", response_model=List[MilestoneResponse])
def list_milestones(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    summaries = MilestoneAggregator(db).list_milestones(project_id, current_user)
    return [_serialize_summary(summary) for summary in summaries]


@router.post("/projects/{project_id}/milestones", response_model=MilestoneResponse, status_code=status.HTTP_201_CREATED)
def create_milestone(
    project_id: int,
    milestone_data: MilestoneCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return MilestoneAggregator(db).create_milestone(project_id, milestone_data, current_user)


@router.get("/projects/{project_id}/milestones/unassigned-tasks", response_model=List[TaskResponse])
def list_unassigned_tasks(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Top-level tasks of the project that are not in any milestone."""
    nodes = MilestoneAggregator(db).unassigned_tasks(project_id, current_user)
    manager = TaskHierarchyManager(db)
    return [serialize_node(manager, node) for node in nodes]


@router.patch("/milestones/{milestone_id}", response_model=MilestoneResponse)
def update_milestone(
    milestone_id: int,
    milestone_data: MilestoneUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return MilestoneAggregator(db).update_milestone(milestone_id, milestone_data, current_user)


@router.delete("/milestones/{milestone_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_milestone(
    milestone_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    MilestoneAggregator(db).delete_milestone(milestone_id, current_user)


@router.get("/milestones/{milestone_id}/tasks", response_model=List[TaskResponse])
def list_milestone_tasks(
    milestone_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    nodes = MilestoneAggregator(db).list_tasks(milestone_id, current_user)
    manager = TaskHierarchyManager(db)
    return [serialize_node(manager, node) for node in nodes]


@router.post("/milestones/{milestone_id}/tasks", response_model=MilestoneResponse)
def add_tasks_to_milestone(
    milestone_id: int,
    tasks_data: MilestoneTasksAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return MilestoneAggregator(db).add_tasks_to_milestone(milestone_id, tasks_data.task_ids, current_user)


@router.delete("/milestones/{milestone_id}/tasks/{task_id}", response_model=MilestoneResponse)
def remove_task_from_milestone(
    milestone_id: int,
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Detach a top-level task; subtasks are managed through their parent."""
    return MilestoneAggregator(db).remove_task_from_milestone(milestone_id, task_id, current_user)
