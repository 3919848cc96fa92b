"""Task comment endpoints"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from novo.database import get_db
from novo.dependencies import get_current_user
from novo.models import TaskComment, User
from novo.schemas import TaskCommentCreate, TaskCommentResponse, TaskCommentUpdate, UserSummary
from novo.services.comments import CommentService

router = APIRouter()


def _serialize_comment(comment: TaskComment) -> TaskCommentResponse:
    return TaskCommentResponse(
        id=comment.id,
        task_id=comment.task_id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        author=UserSummary.model_validate(comment.author),
    )


@router.get("/tasks/{task_id}/comments", response_model=List[TaskCommentResponse])
def list_comments(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [_serialize_comment(comment) for comment in CommentService(db).list_comments(task_id, current_user)]


@router.post("/tasks/{task_id}/comments", response_model=TaskCommentResponse, status_code=status.HTTP_201_CREATED)
def create_comment(
    task_id: int,
    comment_data: TaskCommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    comment = CommentService(db).create_comment(task_id, comment_data.content, current_user)
    return _serialize_comment(comment)


@router.patch("/comments/{comment_id}", response_model=TaskCommentResponse)
def update_comment(
    comment_id: int,
    comment_data: TaskCommentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Edit a comment; only its author may do so."""
    comment = CommentService(db).update_comment(comment_id, comment_data.content, current_user)
    return _serialize_comment(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    CommentService(db).delete_comment(comment_id, current_user)
