"""Label endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from novo.database import get_db
from novo.dependencies import get_current_user
from novo.models import User
from novo.schemas import LabelCreate, LabelResponse, LabelUpdate
from novo.services.labels import LabelService

router = APIRouter()


@router.get("/projects/{project_id}/labels", response_model=List[LabelResponse])
def list_labels(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LabelService(db).list_labels(project_id, current_user)


@router.post("/projects/{project_id}/labels", response_model=LabelResponse, status_code=status.HTTP_201_CREATED)
def create_label(
    project_id: int,
    label_data: LabelCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LabelService(db).create_label(project_id, label_data, current_user)


@router.patch("/labels/{label_id}", response_model=LabelResponse)
def update_label(
    label_id: int,
    label_data: LabelUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return LabelService(db).update_label(label_id, label_data, current_user)


@router.delete("/labels/{label_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_label(
    label_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    LabelService(db).delete_label(label_id, current_user)
