"""Project lifecycle and project-level aggregates"""
import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from novo.errors import Forbidden
from novo.models import Project, ProjectMember, Task, TaskStatus, User
from novo.schemas.project import ProjectCreate, ProjectUpdate
from novo.services.access import AccessEvaluator, Role, evaluate

logger = logging.getLogger(__name__)


@dataclass
class ProjectOverview:
    project: Project
    status: str
    progress: int
    member_count: int
    read_only: bool
    total_tasks: int
    completed_tasks: int


def derive_status(total: int, completed: int, in_progress: int) -> str:
    if total and completed == total:
        return TaskStatus.COMPLETED.value
    if completed or in_progress:
        return TaskStatus.IN_PROGRESS.value
    return TaskStatus.NOT_STARTED.value


def derive_progress(total: int, completed: int) -> int:
    if not total:
        return 0
    return round(completed * 100 / total)


class ProjectService:
    def __init__(self, db: Session):
        self.db = db
        self.access = AccessEvaluator(db)

    def overview(self, project: Project) -> ProjectOverview:
        statuses = [row[0] for row in self.db.query(Task.status).filter(Task.project_id == project.id)]
        total = len(statuses)
        completed = statuses.count(TaskStatus.COMPLETED.value)
        in_progress = statuses.count(TaskStatus.IN_PROGRESS.value)

        snapshot = self.access.snapshot(project.id)
        return ProjectOverview(
            project=project,
            status=derive_status(total, completed, in_progress),
            progress=derive_progress(total, completed),
            member_count=snapshot.member_count,
            read_only=evaluate(snapshot, project.owner_id).read_only,
            total_tasks=total,
            completed_tasks=completed,
        )

    def create_project(self, data: ProjectCreate, acting_user: User) -> ProjectOverview:
        project = Project(name=data.name.strip(), description=data.description, owner_id=acting_user.id)
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        logger.info("User %s created project %s", acting_user.id, project.id)
        return self.overview(project)

    def get_project(self, project_id: int, acting_user: User) -> ProjectOverview:
        self.access.require_participant(project_id, acting_user)
        return self.overview(self.access.load_project(project_id))

    def list_projects(self, acting_user: User) -> List[ProjectOverview]:
        """Projects the user owns or is a member of."""
        member_project_ids = self.db.query(ProjectMember.project_id).filter(ProjectMember.user_id == acting_user.id)
        projects = (
            self.db.query(Project)
            .filter(or_(Project.owner_id == acting_user.id, Project.id.in_(member_project_ids)))
            .order_by(Project.updated_at.desc(), Project.id.desc())
            .all()
        )
        return [self.overview(project) for project in projects]

    def update_project(self, project_id: int, data: ProjectUpdate, acting_user: User) -> ProjectOverview:
        self.access.require_writable(project_id, acting_user, manage=True)
        project = self.access.load_project(project_id)

        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None and getattr(project, key) != value
        }
        if changes:
            for key, value in changes.items():
                setattr(project, key, value)
            self.db.commit()
            self.db.refresh(project)
            logger.info("User %s updated project %s (%s)", acting_user.id, project_id, ", ".join(changes))
        return self.overview(project)

    def delete_project(self, project_id: int, acting_user: User) -> None:
        decision = self.access.require_writable(project_id, acting_user, manage=True)
        if decision.role is not Role.OWNER:
            raise Forbidden("Only the project owner can delete the project")

        project = self.access.load_project(project_id)
        self.db.delete(project)
        self.db.commit()
        logger.info("User %s deleted project %s", acting_user.id, project_id)
