from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

import novo.models as models
from novo.errors import Forbidden, NotFound, ValidationFailed
from novo.services.assignments import AssignmentCoordinator, PendingAssignments, merge_assignments
from novo.services.membership import MembershipRegistry


@pytest.fixture
def team(db_session: Session, make_user, make_project, add_member, make_task):
    owner = make_user("Owner")
    admin = make_user("Admin")
    member = make_user("Member")
    project = make_project(owner)
    add_member(project, admin, role="admin")
    add_member(project, member)
    task = make_task(project, owner, "Ship it")
    return SimpleNamespace(owner=owner, admin=admin, member=member, project=project, task=task)


def _user_ids(assignments):
    return sorted(assignment.user_id for assignment in assignments)


def test_merge_is_union_by_id():
    existing = [{"user_id": 1}, SimpleNamespace(user_id=2)]
    pending = [2, 3, {"id": 3}, 1, 4]

    merged = merge_assignments(existing, pending)

    assert merged == [existing[0], existing[1], 3, 4]


def test_pending_assignments_stage_and_unstage():
    pending = PendingAssignments([5, 5, 6])
    pending.stage([6, 7])

    assert pending.user_ids == [5, 6, 7]
    assert pending.unstage(6) is True
    assert pending.unstage(6) is False
    assert 6 not in pending


def test_assigning_self_twice_keeps_one_assignment(db_session: Session, team):
    coordinator = AssignmentCoordinator(db_session)

    coordinator.assign_self(team.task.id, team.member)
    result = coordinator.assign_self(team.task.id, team.member)

    assert _user_ids(result) == [team.member.id]
    assert db_session.query(models.Assignment).count() == 1


def test_unassign_self_is_idempotent(db_session: Session, team):
    coordinator = AssignmentCoordinator(db_session)
    coordinator.assign_self(team.task.id, team.member)

    assert coordinator.unassign_self(team.task.id, team.member) == []
    assert coordinator.unassign_self(team.task.id, team.member) == []


def test_outsiders_cannot_assign_themselves(db_session: Session, team, make_user):
    outsider = make_user("Outsider")

    with pytest.raises(Forbidden):
        AssignmentCoordinator(db_session).assign_self(team.task.id, outsider)


def test_assign_others_is_manage_only(db_session: Session, team):
    with pytest.raises(Forbidden):
        AssignmentCoordinator(db_session).assign_others(team.task.id, [team.admin.id], team.member)


def test_assign_others_unions_with_existing(db_session: Session, team):
    coordinator = AssignmentCoordinator(db_session)
    coordinator.assign_self(team.task.id, team.member)

    result = coordinator.assign_others(team.task.id, [team.member.id, team.admin.id], team.owner)

    assert _user_ids(result) == sorted([team.member.id, team.admin.id])
    by_user = {assignment.user_id: assignment for assignment in result}
    assert by_user[team.member.id].assigned_by_id == team.member.id
    assert by_user[team.admin.id].assigned_by_id == team.owner.id


def test_assign_others_rejects_non_participants(db_session: Session, team, make_user):
    outsider = make_user("Outsider")

    with pytest.raises(ValidationFailed) as exc:
        AssignmentCoordinator(db_session).assign_others(team.task.id, [team.member.id, outsider.id], team.admin)
    assert exc.value.field == "user_ids"
    assert db_session.query(models.Assignment).count() == 0


def test_unassign_other_removes_pending_only_user_locally(db_session: Session, team):
    coordinator = AssignmentCoordinator(db_session)
    coordinator.assign_others(team.task.id, [team.member.id], team.owner)
    pending = PendingAssignments([team.admin.id])

    # No manage rights needed: nothing is written
    result = coordinator.unassign_other(team.task.id, team.admin.id, team.member, pending=pending)

    assert pending.user_ids == []
    assert _user_ids(result) == [team.member.id]


def test_unassign_other(db_session: Session, team):
    coordinator = AssignmentCoordinator(db_session)
    coordinator.assign_others(team.task.id, [team.member.id], team.owner)

    with pytest.raises(Forbidden):
        coordinator.unassign_other(team.task.id, team.member.id, team.member)

    assert coordinator.unassign_other(team.task.id, team.member.id, team.admin) == []
    with pytest.raises(NotFound):
        coordinator.unassign_other(team.task.id, team.member.id, team.admin)


def test_create_task_persists_staged_assignees_once(db_session: Session, team, make_task):
    task = make_task(
        team.project,
        team.owner,
        "With team",
        assignee_ids=[team.member.id, team.admin.id, team.member.id],
    )

    assert _user_ids(AssignmentCoordinator(db_session).list_assignments(task.id, team.member)) == sorted(
        [team.member.id, team.admin.id]
    )


def test_read_only_project_rejects_self_assignment(db_session: Session, make_user, make_project, make_task):
    owner = make_user("Owner", premium="active")
    project = make_project(owner)
    task = make_task(project, owner, "Locked soon")
    MembershipRegistry(db_session).add_members(project.id, [f"user{i}@x.com" for i in range(5)], owner)
    owner.is_premium = False
    db_session.commit()

    with pytest.raises(Forbidden):
        AssignmentCoordinator(db_session).assign_self(task.id, owner)


def _stale_first_read(monkeypatch):
    """The first read of the stored assignees misses a row another request just committed."""
    real_existing = AssignmentCoordinator._existing
    reads = []

    def _existing(self, task_id):
        reads.append(task_id)
        if len(reads) == 1:
            return []
        return real_existing(self, task_id)

    monkeypatch.setattr(AssignmentCoordinator, "_existing", _existing)


def _store_assignment(db_session: Session, task, user):
    db_session.add(models.Assignment(
        task_id=task.id,
        user_id=user.id,
        project_id=task.project_id,
        assigned_by_id=user.id,
    ))
    db_session.commit()


def test_concurrent_self_assignment_keeps_one_row(db_session: Session, team, monkeypatch):
    _store_assignment(db_session, team.task, team.member)
    _stale_first_read(monkeypatch)

    result = AssignmentCoordinator(db_session).assign_self(team.task.id, team.member)

    assert _user_ids(result) == [team.member.id]
    assert db_session.query(models.Assignment).count() == 1


def test_concurrent_assign_others_still_stores_the_rest(db_session: Session, team, monkeypatch):
    _store_assignment(db_session, team.task, team.member)
    _stale_first_read(monkeypatch)

    result = AssignmentCoordinator(db_session).assign_others(
        team.task.id, [team.member.id, team.admin.id], team.owner
    )

    assert _user_ids(result) == sorted([team.member.id, team.admin.id])
    assert db_session.query(models.Assignment).count() == 2
