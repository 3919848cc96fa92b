import os
from datetime import datetime, timedelta, timezone

# Keep the application engine in memory while the app module is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import novo.models as models
from novo.database import Base, get_db
from novo.schemas import ProjectCreate, TaskCreate
from novo.services.hierarchy import TaskHierarchyManager
from novo.services.projects import ProjectService

TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def db_session() -> Session:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session: Session):
    def _make_user(name: str, email: str = None, premium: str = None) -> models.User:
        """``premium`` is one of None, "active", "cancelled" or "expired"."""
        now = datetime.now(timezone.utc)
        user = models.User(name=name, email=email or f"{name.lower()}@example.com")
        if premium is not None:
            user.is_premium = premium != "expired"
            user.premium_start_date = now - timedelta(days=30)
            user.premium_end_date = now + timedelta(days=30) if premium != "expired" else now - timedelta(days=1)
            user.user_cancelled_premium = premium == "cancelled"
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_project(db_session: Session):
    def _make_project(owner: models.User, name: str = "Demo Project") -> models.Project:
        overview = ProjectService(db_session).create_project(ProjectCreate(name=name), owner)
        return overview.project

    return _make_project


@pytest.fixture
def add_member(db_session: Session):
    """Insert a membership row directly, bypassing plan limits."""

    def _add_member(project: models.Project, user: models.User, role: str = "member") -> models.ProjectMember:
        membership = models.ProjectMember(project_id=project.id, user_id=user.id, role=role)
        db_session.add(membership)
        db_session.commit()
        return membership

    return _add_member


@pytest.fixture
def make_task(db_session: Session):
    def _make_task(project: models.Project, user: models.User, title: str, **fields) -> models.Task:
        return TaskHierarchyManager(db_session).create_task(project.id, TaskCreate(title=title, **fields), user)

    return _make_task


@pytest.fixture
def client(db_session: Session):
    from fastapi.testclient import TestClient

    from novo.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
