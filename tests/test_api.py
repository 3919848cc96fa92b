import pytest
from sqlalchemy.orm import Session

import novo.api.v1.members as member_routes
import novo.api.v1.milestones as milestone_routes
import novo.api.v1.tasks as task_routes
import novo.schemas as schemas
from novo.dependencies import create_access_token, decode_access_token
from novo.errors import Conflict, Forbidden, Unauthorized


def _auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def test_requests_without_bearer_are_unauthorized(client):
    response = client.get("/api/v1/projects")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_invalid_and_expired_tokens_are_unauthorized(client, make_user):
    user = make_user("Ivy")

    response = client.get("/api/v1/projects", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401

    expired = create_access_token(user.id, expires_minutes=-1)
    response = client.get("/api/v1/projects", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "Token expired"


def test_decode_access_token_round_trip():
    assert decode_access_token(create_access_token(42)) == 42
    with pytest.raises(Unauthorized):
        decode_access_token("garbage")


def test_project_lifecycle_over_http(client, make_user):
    owner = make_user("Owner")

    response = client.post("/api/v1/projects", json={"name": "Web"}, headers=_auth(owner))
    assert response.status_code == 201
    project_id = response.json()["id"]

    response = client.get(f"/api/v1/projects/{project_id}/access", headers=_auth(owner))
    assert response.json() == {"project_id": project_id, "role": "owner", "can_manage": True, "read_only": False}

    response = client.post(
        f"/api/v1/projects/{project_id}/tasks",
        json={"title": "First", "completed": False},
        headers=_auth(owner),
    )
    assert response.status_code == 201
    task_id = response.json()["id"]

    response = client.post(f"/api/v1/tasks/{task_id}/toggle", headers=_auth(owner))
    assert response.json()["task"]["status"] == "completed"

    response = client.get(f"/api/v1/projects/{project_id}/task-counts", headers=_auth(owner))
    assert response.json() == {"total": 1, "completed": 1, "in_progress": 0}


def test_member_listing_is_an_active_pending_pair(client, make_user, make_project):
    owner = make_user("Owner")
    project = make_project(owner)

    response = client.get(f"/api/v1/projects/{project.id}/members", headers=_auth(owner))
    assert response.json() == [[], []]

    response = client.post(
        f"/api/v1/projects/{project.id}/members",
        json={"users": ["a@x.com"]},
        headers=_auth(owner),
    )
    active, pending = response.json()
    assert active == []
    assert [entry["email"] for entry in pending] == ["a@x.com"]

    response = client.post(
        f"/api/v1/projects/{project.id}/members",
        json={"users": ["a@x.com"]},
        headers=_auth(owner),
    )
    assert response.status_code == 409
    assert response.json()["detail"]["conflicts"] == ["a@x.com"]


def test_short_title_over_http_reports_field(client, make_user, make_project):
    owner = make_user("Owner")
    project = make_project(owner)

    response = client.post(
        f"/api/v1/projects/{project.id}/tasks",
        json={"title": "x", "completed": False},
        headers=_auth(owner),
    )
    assert response.status_code == 422
    assert response.json()["detail"]["field"] == "title"


def test_assign_me_route_is_not_shadowed_by_user_id(client, make_user, make_project, make_task):
    owner = make_user("Owner")
    project = make_project(owner)
    task = make_task(project, owner, "Pick me")

    response = client.post(f"/api/v1/tasks/{task.id}/assignments/me", headers=_auth(owner))
    assert response.status_code == 200
    assert [entry["user"]["id"] for entry in response.json()] == [owner.id]

    response = client.delete(f"/api/v1/tasks/{task.id}/assignments/me", headers=_auth(owner))
    assert response.json() == []


def test_route_functions_called_directly(db_session: Session, make_user, make_project, add_member):
    owner = make_user("Owner")
    member = make_user("Member")
    project = make_project(owner)
    add_member(project, member)

    parent = task_routes.create_task(project.id, schemas.TaskCreate(title="Parent"), db_session, owner)
    child = task_routes.create_task(
        project.id, schemas.TaskCreate(title="Child", parent_task_id=parent.id), db_session, owner
    )

    change = task_routes.toggle_task(child.id, db_session, member)
    assert change.task.status == "completed"
    assert change.parent_progress.model_dump() == {"completed": 1, "total": 1}

    listed = task_routes.list_tasks(project.id, "updated_at", "desc", db_session, member)
    assert [item.id for item in listed] == [parent.id]
    assert listed[0].status == "not-started"
    assert [item.id for item in listed[0].subtasks] == [child.id]

    with pytest.raises(Forbidden):
        task_routes.delete_task(parent.id, db_session, member)

    active, pending = member_routes.list_members(project.id, db_session, member)
    assert [entry.role for entry in active] == ["owner"]
    assert pending == []


def test_milestone_routes_reject_subtasks(db_session: Session, make_user, make_project):
    owner = make_user("Owner")
    project = make_project(owner)
    milestone = milestone_routes.create_milestone(project.id, schemas.MilestoneCreate(name="v1"), db_session, owner)
    parent = task_routes.create_task(project.id, schemas.TaskCreate(title="Parent"), db_session, owner)
    child = task_routes.create_task(
        project.id, schemas.TaskCreate(title="Child", parent_task_id=parent.id), db_session, owner
    )

    with pytest.raises(Conflict):
        milestone_routes.add_tasks_to_milestone(
            milestone.id, schemas.MilestoneTasksAdd(task_ids=[child.id]), db_session, owner
        )

    updated = milestone_routes.add_tasks_to_milestone(
        milestone.id, schemas.MilestoneTasksAdd(task_ids=[parent.id]), db_session, owner
    )
    assert updated.all_tasks_count == 1

    tasks = milestone_routes.list_milestone_tasks(milestone.id, db_session, owner)
    assert [item.subtasks[0].milestone_id for item in tasks] == [milestone.id]

    listed = milestone_routes.list_milestones(project.id, db_session, owner)
    assert [(item.id, item.all_tasks_count, item.completed_tasks_count) for item in listed] == [(milestone.id, 1, 0)]
