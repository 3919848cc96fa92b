import pytest
from sqlalchemy.orm import Session

import novo.models as models
from novo.errors import Conflict, Forbidden, ValidationFailed
from novo.schemas import LabelCreate, LabelUpdate
from novo.services.comments import CommentService
from novo.services.hierarchy import TaskHierarchyManager
from novo.services.labels import LabelService
from novo.utils.colors import DEFAULT_COLORS


@pytest.fixture
def owner(make_user):
    return make_user("Owner")


@pytest.fixture
def member(make_user):
    return make_user("Member")


@pytest.fixture
def project(owner, member, make_project, add_member):
    project = make_project(owner)
    add_member(project, member)
    return project


def test_label_crud(db_session: Session, owner, project):
    service = LabelService(db_session)

    label = service.create_label(project.id, LabelCreate(name="backend"), owner)
    assert label.color in DEFAULT_COLORS

    updated = service.update_label(label.id, LabelUpdate(name="api", color="#123ABC"), owner)
    assert (updated.name, updated.color) == ("api", "#123ABC")

    service.delete_label(label.id, owner)
    assert service.list_labels(project.id, owner) == []


def test_duplicate_label_name_conflicts(db_session: Session, owner, project):
    service = LabelService(db_session)
    service.create_label(project.id, LabelCreate(name="ui"), owner)

    with pytest.raises(Conflict):
        service.create_label(project.id, LabelCreate(name="ui"), owner)


def test_members_cannot_manage_labels(db_session: Session, member, project):
    with pytest.raises(Forbidden):
        LabelService(db_session).create_label(project.id, LabelCreate(name="mine"), member)


def test_participants_comment_and_only_authors_edit(db_session: Session, owner, member, project, make_task):
    task = make_task(project, owner, "Discuss")
    service = CommentService(db_session)

    comment = service.create_comment(task.id, "  Looks good  ", member)
    assert comment.content == "Looks good"
    assert comment.author.id == member.id

    with pytest.raises(Forbidden):
        service.update_comment(comment.id, "Edited by owner", owner)

    edited = service.update_comment(comment.id, "Looks great", member)
    assert edited.content == "Looks great"
    assert [item.id for item in service.list_comments(task.id, owner)] == [comment.id]


def test_managers_delete_any_comment_members_only_their_own(db_session: Session, owner, member, project, make_task):
    task = make_task(project, owner, "Discuss")
    service = CommentService(db_session)
    owners_comment = service.create_comment(task.id, "From the owner", owner)
    members_comment = service.create_comment(task.id, "From the member", member)

    with pytest.raises(Forbidden):
        service.delete_comment(owners_comment.id, member)

    service.delete_comment(members_comment.id, owner)
    service.delete_comment(owners_comment.id, owner)
    assert db_session.query(models.TaskComment).count() == 0


def test_empty_comment_is_rejected(db_session: Session, owner, project, make_task):
    task = make_task(project, owner, "Discuss")

    with pytest.raises(ValidationFailed) as exc:
        CommentService(db_session).create_comment(task.id, "   ", owner)
    assert exc.value.field == "content"


def test_deleting_task_removes_its_comments(db_session: Session, owner, project, make_task):
    task = make_task(project, owner, "Short lived")
    CommentService(db_session).create_comment(task.id, "Bye", owner)

    TaskHierarchyManager(db_session).delete_task(task.id, owner)
    assert db_session.query(models.TaskComment).count() == 0
