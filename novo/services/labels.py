"""Project labels"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from novo.errors import Conflict, NotFound, ValidationFailed
from novo.models import Label, User
from novo.schemas.label import LabelCreate, LabelUpdate
from novo.services.access import AccessEvaluator
from novo.utils.colors import pick_color

logger = logging.getLogger(__name__)


class LabelService:
    def __init__(self, db: Session):
        self.db = db
        self.access = AccessEvaluator(db)

    def _get(self, label_id: int) -> Label:
        label = self.db.query(Label).filter(Label.id == label_id).first()
        if label is None:
            raise NotFound("Label not found")
        return label

    def _ensure_unique_name(self, project_id: int, name: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(Label).filter(Label.project_id == project_id, Label.name == name)
        if exclude_id is not None:
            query = query.filter(Label.id != exclude_id)
        if query.first() is not None:
            raise Conflict(f"Label '{name}' already exists in this project", conflicts=[name])

    def list_labels(self, project_id: int, acting_user: User) -> List[Label]:
        self.access.require_participant(project_id, acting_user)
        return self.db.query(Label).filter(Label.project_id == project_id).order_by(Label.name).all()

    def resolve_labels(self, project_id: int, label_ids: Iterable[int]) -> List[Label]:
        """Labels for a task; every id must belong to ``project_id``."""
        label_ids = list(dict.fromkeys(label_ids))
        if not label_ids:
            return []
        labels = self.db.query(Label).filter(Label.id.in_(label_ids), Label.project_id == project_id).all()
        missing = sorted(set(label_ids) - {label.id for label in labels})
        if missing:
            raise ValidationFailed(
                f"Labels {', '.join(str(lid) for lid in missing)} do not belong to this project",
                field="label_ids",
            )
        return labels

    def create_label(self, project_id: int, data: LabelCreate, acting_user: User) -> Label:
        self.access.require_writable(project_id, acting_user, manage=True)
        name = data.name.strip()
        self._ensure_unique_name(project_id, name)

        used = [row[0] for row in self.db.query(Label.color).filter(Label.project_id == project_id)]
        label = Label(
            project_id=project_id,
            name=name,
            description=data.description,
            color=data.color or pick_color(used),
        )
        self.db.add(label)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(f"Label '{name}' already exists in this project", conflicts=[name])
        self.db.refresh(label)
        logger.info("User %s created label %s in project %s", acting_user.id, label.id, project_id)
        return label

    def update_label(self, label_id: int, data: LabelUpdate, acting_user: User) -> Label:
        label = self._get(label_id)
        self.access.require_writable(label.project_id, acting_user, manage=True)

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is not None:
            changes["name"] = changes["name"].strip()
            self._ensure_unique_name(label.project_id, changes["name"], exclude_id=label.id)
        for key, value in changes.items():
            if value is not None or key == "description":
                setattr(label, key, value)

        self.db.commit()
        self.db.refresh(label)
        return label

    def delete_label(self, label_id: int, acting_user: User) -> None:
        label = self._get(label_id)
        self.access.require_writable(label.project_id, acting_user, manage=True)
        self.db.delete(label)
        self.db.commit()
        logger.info("User %s deleted label %s", acting_user.id, label_id)
