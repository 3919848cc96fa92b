"""Project endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from novo.database import get_db
from novo.dependencies import get_current_user
from novo.models import User
from novo.schemas import AccessResponse, ProjectCreate, ProjectResponse, ProjectUpdate, TaskCountsResponse
from novo.services.access import AccessEvaluator
from novo.services.hierarchy import TaskHierarchyManager
from novo.services.projects import ProjectOverview, ProjectService

router = APIRouter()


def _serialize_project(overview: ProjectOverview) -> ProjectResponse:
    project = overview.project
    return ProjectResponse(
        id=project.id,
        name=project.name,
        description=project.description,
        owner_id=project.owner_id,
        status=overview.status,
        progress=overview.progress,
        member_count=overview.member_count,
        read_only=overview.read_only,
        total_tasks=overview.total_tasks,
        completed_tasks=overview.completed_tasks,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


@router.get("/projects", response_model=List[ProjectResponse])
def list_projects(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Projects the current user owns or belongs to."""
    return [_serialize_project(overview) for overview in ProjectService(db).list_projects(current_user)]


@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize_project(ProjectService(db).create_project(project_data, current_user))


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize_project(ProjectService(db).get_project(project_id, current_user))


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize_project(ProjectService(db).update_project(project_id, project_data, current_user))


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ProjectService(db).delete_project(project_id, current_user)


@router.get("/projects/{project_id}/access", response_model=AccessResponse)
def get_project_access(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Role, manage rights and read-only state of the current user in a project."""
    decision = AccessEvaluator(db).evaluate(project_id, current_user.id)
    return AccessResponse(
        project_id=decision.project_id,
        role=decision.role.value,
        can_manage=decision.can_manage,
        read_only=decision.read_only,
    )


@router.get("/projects/{project_id}/task-counts", response_model=TaskCountsResponse)
def get_task_counts(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return TaskCountsResponse(**TaskHierarchyManager(db).task_counts(project_id, current_user))
