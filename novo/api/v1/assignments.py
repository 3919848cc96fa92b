"""Task assignment endpoints"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from novo.database import get_db
from novo.dependencies import get_current_user
from novo.models import Assignment, User
from novo.schemas import AssignmentResponse, AssignUsers
from novo.services.assignments import AssignmentCoordinator

router = APIRouter()


def _serialize(assignments: List[Assignment]) -> List[AssignmentResponse]:
    return [AssignmentResponse.model_validate(assignment) for assignment in assignments]


@router.get("/tasks/{task_id}/assignments", response_model=List[AssignmentResponse])
def list_assignments(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize(AssignmentCoordinator(db).list_assignments(task_id, current_user))


# /me routes must stay above /{user_id}
@router.post("/tasks/{task_id}/assignments/me", response_model=List[AssignmentResponse])
def assign_self(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize(AssignmentCoordinator(db).assign_self(task_id, current_user))


@router.delete("/tasks/{task_id}/assignments/me", response_model=List[AssignmentResponse])
def unassign_self(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize(AssignmentCoordinator(db).unassign_self(task_id, current_user))


@router.post("/tasks/{task_id}/assignments", response_model=List[AssignmentResponse])
def assign_users(
    task_id: int,
    assign_data: AssignUsers,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Assign project participants to a task (owner or admin only)."""
    return _serialize(AssignmentCoordinator(db).assign_others(task_id, assign_data.user_ids, current_user))


@router.delete("/tasks/{task_id}/assignments/{user_id}", response_model=List[AssignmentResponse])
def unassign_user(
    task_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _serialize(AssignmentCoordinator(db).unassign_other(task_id, user_id, current_user))
