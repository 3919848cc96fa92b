"""Task comments"""
import logging
from typing import List

from sqlalchemy.orm import Session, selectinload

from novo.errors import Forbidden, NotFound, ValidationFailed
from novo.models import Task, TaskComment, User
from novo.services.access import AccessEvaluator

logger = logging.getLogger(__name__)


def _clean(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Comment content cannot be empty", field="content")
    return content


class CommentService:
    def __init__(self, db: Session):
        self.db = db
        self.access = AccessEvaluator(db)

    def _get_task(self, task_id: int) -> Task:
        task = self.db.query(Task).filter(Task.id == task_id).first()
        if task is None:
            raise NotFound("Task not found")
        return task

    def _get_comment(self, comment_id: int) -> TaskComment:
        comment = (
            self.db.query(TaskComment)
            .options(selectinload(TaskComment.author), selectinload(TaskComment.task))
            .filter(TaskComment.id == comment_id)
            .first()
        )
        if comment is None:
            raise NotFound("Comment not found")
        return comment

    def list_comments(self, task_id: int, acting_user: User) -> List[TaskComment]:
        task = self._get_task(task_id)
        self.access.require_participant(task.project_id, acting_user)
        return (
            self.db.query(TaskComment)
            .options(selectinload(TaskComment.author))
            .filter(TaskComment.task_id == task.id)
            .order_by(TaskComment.created_at, TaskComment.id)
            .all()
        )

    def create_comment(self, task_id: int, content: str, acting_user: User) -> TaskComment:
        task = self._get_task(task_id)
        self.access.require_writable(task.project_id, acting_user)

        comment = TaskComment(task_id=task.id, author_id=acting_user.id, content=_clean(content))
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        logger.info("User %s commented on task %s", acting_user.id, task_id)
        return comment

    def update_comment(self, comment_id: int, content: str, acting_user: User) -> TaskComment:
        comment = self._get_comment(comment_id)
        self.access.require_writable(comment.task.project_id, acting_user)
        if comment.author_id != acting_user.id:
            raise Forbidden("Only the author can edit this comment")

        comment.content = _clean(content)
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def delete_comment(self, comment_id: int, acting_user: User) -> None:
        comment = self._get_comment(comment_id)
        decision = self.access.require_writable(comment.task.project_id, acting_user)
        if comment.author_id != acting_user.id and not decision.can_manage:
            raise Forbidden("Only the author or a project manager can delete this comment")

        self.db.delete(comment)
        self.db.commit()
        logger.info("User %s deleted comment %s", acting_user.id, comment_id)
