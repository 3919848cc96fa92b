from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.orm import Session

import novo.models as models
from novo.errors import Forbidden, READ_ONLY_MESSAGE
from novo.schemas import MembersAdd, TaskCreate
from novo.services.access import (
    AccessEvaluator,
    ProjectSnapshot,
    Role,
    evaluate,
    is_read_only,
    premium_lapsed,
)
from novo.services.hierarchy import TaskHierarchyManager
from novo.services.membership import MembershipRegistry


def _snapshot(lapsed: bool = False, member_count: int = 1, roles=None) -> ProjectSnapshot:
    return ProjectSnapshot(
        project_id=1,
        owner_id=10,
        owner_premium_lapsed=lapsed,
        owner_premium_active=not lapsed,
        member_count=member_count,
        member_roles=roles or {},
    )


@pytest.mark.parametrize(
    "user_id, role, can_manage",
    [
        (10, Role.OWNER, True),
        (11, Role.ADMIN, True),
        (12, Role.MEMBER, False),
        (99, Role.NONE, False),
    ],
)
def test_evaluate_yields_one_role_and_manage_rights(user_id, role, can_manage):
    decision = evaluate(_snapshot(roles={11: "admin", 12: "member"}), user_id)
    assert decision.role is role
    assert decision.can_manage is can_manage


def test_read_only_requires_lapsed_premium_and_more_than_five_members():
    assert is_read_only(True, 6) is True
    assert is_read_only(True, 5) is False
    assert is_read_only(False, 6) is False
    assert evaluate(_snapshot(lapsed=True, member_count=6), 10).read_only is True


def test_premium_lapsed_states(make_user):
    assert premium_lapsed(make_user("Never")) is False
    assert premium_lapsed(make_user("Active", premium="active")) is False
    assert premium_lapsed(make_user("Cancelled", premium="cancelled")) is True
    assert premium_lapsed(make_user("Expired", premium="expired")) is True


def test_premium_lapsed_when_end_date_passed(make_user):
    owner = make_user("Late", premium="active")
    later = datetime.now(timezone.utc) + timedelta(days=60)
    assert premium_lapsed(owner, now=later) is True


def _fill_project(db_session: Session, owner, make_user, make_project, count: int = 5):
    project = make_project(owner)
    users = [make_user(f"Member{i}") for i in range(count - 1)]
    candidates = [{"id": user.id, "email": user.email} for user in users]
    candidates.append({"email": "pending@example.com"})
    MembershipRegistry(db_session).add_members(project.id, MembersAdd(users=candidates).users, owner)
    return project, users


def test_cancelled_premium_with_six_members_locks_project(db_session, make_user, make_project):
    owner = make_user("Owner", premium="active")
    project, users = _fill_project(db_session, owner, make_user, make_project)

    evaluator = AccessEvaluator(db_session)
    assert evaluator.evaluate(project.id, owner.id).read_only is False

    owner.user_cancelled_premium = True
    db_session.commit()

    decision = evaluator.evaluate(project.id, users[0].id)
    assert decision.read_only is True
    assert decision.role is Role.MEMBER

    with pytest.raises(Forbidden) as exc:
        TaskHierarchyManager(db_session).create_task(project.id, TaskCreate(title="Blocked"), owner)
    assert exc.value.status_code == 403
    assert exc.value.message == READ_ONLY_MESSAGE
    assert db_session.query(models.Task).count() == 0


def test_read_only_is_refetched_on_every_evaluation(db_session, make_user, make_project):
    owner = make_user("Owner", premium="active")
    project, _ = _fill_project(db_session, owner, make_user, make_project)
    evaluator = AccessEvaluator(db_session)
    assert evaluator.evaluate(project.id, owner.id).read_only is False

    # Stale identity map: the loaded User still says premium is active
    db_session.execute(
        update(models.User)
        .where(models.User.id == owner.id)
        .values(user_cancelled_premium=True)
        .execution_options(synchronize_session=False)
    )
    assert owner.user_cancelled_premium is False

    assert evaluator.evaluate(project.id, owner.id).read_only is True


def test_owner_is_not_exempt_from_read_only(db_session, make_user, make_project):
    owner = make_user("Owner", premium="active")
    project, _ = _fill_project(db_session, owner, make_user, make_project)
    owner.is_premium = False
    db_session.commit()

    with pytest.raises(Forbidden):
        AccessEvaluator(db_session).require_writable(project.id, owner, manage=True)


def test_outsider_is_forbidden_even_for_reads(db_session, make_user, make_project):
    owner = make_user("Owner")
    outsider = make_user("Outsider")
    project = make_project(owner)

    with pytest.raises(Forbidden):
        TaskHierarchyManager(db_session).list_tasks(project.id, outsider)
