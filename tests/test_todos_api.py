import pytest

from collabtrack.errors import ValidationFailedError
from collabtrack.schemas import TodoCreate
from collabtrack.services import TodoService

from .helpers import all_notifications, auth, inbox


@pytest.fixture
def team(client, register):
    """Project P owned by A with collaborators B and C."""
    a, b, c = register("alice"), register("bob"), register("carol")
    project = client.post(
        "/api/v1/projects/", json={"name": "P", "description": "Scenario project"}, headers=auth(a)
    ).json()
    res = client.put(f"/api/v1/projects/{project['id']}", json={"collaborators": [b, c]}, headers=auth(a))
    assert res.status_code == 200
    return project, a, b, c


def new_task(client, project_id, user_id, assigned_to=()):
    res = client.post(
        f"/api/v1/projects/{project_id}/tasks",
        json={"title": "T", "assigned_to": list(assigned_to)},
        headers=auth(user_id),
    )
    assert res.status_code == 201, res.text
    return res.json()


def add_todo(client, task_id, user_id, text="Write tests", assigned_to=None):
    body = {"text": text}
    if assigned_to is not None:
        body["assigned_to"] = assigned_to
    return client.post(f"/api/v1/tasks/{task_id}/todos", json=body, headers=auth(user_id))


def patch_todo(client, task_id, todo_id, user_id, **fields):
    return client.patch(f"/api/v1/tasks/{task_id}/todos/{todo_id}", json=fields, headers=auth(user_id))


def wipe(store, *user_ids):
    for user_id in user_ids:
        store.notifications.mark_all_read(user_id)
        store.notifications.delete_read(user_id)


class TestTodoAssignmentScenarios:
    def test_narrowed_task_rejects_other_member(self, client, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a, assigned_to=[b])
        res = add_todo(client, task["id"], a, assigned_to=c)
        assert res.status_code == 400
        assert res.json()["message"].startswith("Todo can only be assigned to users assigned to this task")

    def test_open_task_accepts_any_member(self, client, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        res = add_todo(client, task["id"], a, assigned_to=c)
        assert res.status_code == 201
        assert res.json()["todos"][0]["assigned_to"] == c

    def test_open_task_rejects_outsider(self, client, register, team):
        project, a, _, _ = team
        d = register("dave")
        task = new_task(client, project["id"], a)
        assert add_todo(client, task["id"], a, assigned_to=d).status_code == 400


class TestAddTodo:
    def test_add_notifies_assignee_and_members(self, client, store, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        wipe(store, a, b, c)

        res = add_todo(client, task["id"], a, text="  Check fuel  ", assigned_to=b)
        assert res.status_code == 201
        todo = res.json()["todos"][0]
        assert todo["text"] == "Check fuel"
        assert todo["completed"] is False

        assert sorted(n["type"] for n in inbox(store, b)) == ["TODO_ADDED", "TODO_ASSIGNED"]
        assert [n["type"] for n in inbox(store, c)] == ["TODO_ADDED"]
        assert inbox(store, a) == []

    def test_actor_assigning_self_hears_nothing(self, client, store, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        wipe(store, a, b, c)

        assert add_todo(client, task["id"], a, assigned_to=a).status_code == 201
        assert inbox(store, a) == []
        assert [n["type"] for n in inbox(store, b)] == ["TODO_ADDED"]
        assert [n["type"] for n in inbox(store, c)] == ["TODO_ADDED"]

    def test_empty_text_is_rejected(self, client, team):
        project, a, _, _ = team
        task = new_task(client, project["id"], a)
        res = add_todo(client, task["id"], a, text="   ")
        assert res.status_code == 400
        assert "Todo text is required" in res.json()["message"]

    def test_todo_limit(self, client, store, team):
        project, a, _, _ = team
        task = new_task(client, project["id"], a)
        entity = store.tasks.get(task["id"])
        entity["todos"] = [
            {
                "id": f"todo-{i}",
                "text": f"step {i}",
                "completed": False,
                "completed_at": None,
                "completed_by": None,
                "assigned_to": None,
                "created_at": entity["created_at"],
            }
            for i in range(50)
        ]
        store.tasks.save(entity)

        res = add_todo(client, task["id"], a)
        assert res.status_code == 400
        assert res.json()["message"] == "A task cannot have more than 50 todos"

    def test_limit_is_configurable(self, store, team, client):
        project, a, _, _ = team
        task = new_task(client, project["id"], a)
        service = TodoService(store, max_todos=1)
        actor = store.users.get(a)

        service.add_todo(actor, task["id"], TodoCreate(text="one"))
        with pytest.raises(ValidationFailedError) as excinfo:
            service.add_todo(actor, task["id"], TodoCreate(text="two"))
        assert excinfo.value.message == "A task cannot have more than 1 todos"


class TestCompletion:
    def test_completion_sets_metadata_and_notifies_once(self, client, store, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        first = add_todo(client, task["id"], a, text="one").json()["todos"][0]
        add_todo(client, task["id"], a, text="two")
        wipe(store, a, b, c)

        res = patch_todo(client, task["id"], first["id"], b, completed=True)
        assert res.status_code == 200
        body = res.json()
        done = next(t for t in body["todos"] if t["id"] == first["id"])
        assert done["completed"] is True
        assert done["completed_by"] == b
        assert done["completed_at"] is not None
        assert body["todo_progress"] == 50

        notes = all_notifications(store, a, b, c)
        assert sorted(n["recipient"] for n in notes) == sorted([a, c])
        assert {n["type"] for n in notes} == {"TODO_COMPLETED"}

        # completing an already completed todo is a no-op
        wipe(store, a, b, c)
        again = patch_todo(client, task["id"], first["id"], c, completed=True).json()
        still = next(t for t in again["todos"] if t["id"] == first["id"])
        assert still["completed_by"] == b
        assert all_notifications(store, a, b, c) == []

    def test_last_completion_broadcasts_all_done(self, client, store, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        one = add_todo(client, task["id"], a, text="one").json()["todos"][0]
        two = add_todo(client, task["id"], a, text="two").json()["todos"][1]
        patch_todo(client, task["id"], one["id"], a, completed=True)
        wipe(store, a, b, c)

        res = patch_todo(client, task["id"], two["id"], a, completed=True)
        assert res.json()["todo_progress"] == 100
        for user_id in (b, c):
            assert sorted(n["type"] for n in inbox(store, user_id)) == ["ALL_TODOS_COMPLETED", "TODO_COMPLETED"]
        assert inbox(store, a) == []

    def test_reopening_clears_metadata_silently(self, client, store, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        todo = add_todo(client, task["id"], a).json()["todos"][0]
        patch_todo(client, task["id"], todo["id"], a, completed=True)
        wipe(store, a, b, c)

        res = patch_todo(client, task["id"], todo["id"], b, completed=False)
        reopened = res.json()["todos"][0]
        assert reopened["completed"] is False
        assert reopened["completed_at"] is None
        assert reopened["completed_by"] is None
        assert all_notifications(store, a, b, c) == []


class TestReassignment:
    def test_only_new_assignee_is_notified(self, client, store, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        todo = add_todo(client, task["id"], a, assigned_to=b).json()["todos"][0]
        wipe(store, a, b, c)

        same = patch_todo(client, task["id"], todo["id"], a, assigned_to=b)
        assert same.status_code == 200
        assert all_notifications(store, a, b, c) == []

        moved = patch_todo(client, task["id"], todo["id"], a, assigned_to=c)
        assert moved.json()["todos"][0]["assigned_to"] == c
        assert inbox(store, b) == []
        assert [n["type"] for n in inbox(store, c)] == ["TODO_ASSIGNED"]

    def test_unassign_with_null(self, client, store, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a)
        todo = add_todo(client, task["id"], a, assigned_to=b).json()["todos"][0]
        wipe(store, a, b, c)

        res = patch_todo(client, task["id"], todo["id"], a, assigned_to=None)
        assert res.json()["todos"][0]["assigned_to"] is None
        assert all_notifications(store, a, b, c) == []

    def test_reassignment_respects_task_narrowing(self, client, team):
        project, a, b, c = team
        task = new_task(client, project["id"], a, assigned_to=[b])
        todo = add_todo(client, task["id"], a, assigned_to=b).json()["todos"][0]
        res = patch_todo(client, task["id"], todo["id"], a, assigned_to=c)
        assert res.status_code == 400


class TestTodoLifecycle:
    def test_delete_todo(self, client, team):
        project, a, _, _ = team
        task = new_task(client, project["id"], a)
        todo = add_todo(client, task["id"], a).json()["todos"][0]

        res = client.delete(f"/api/v1/tasks/{task['id']}/todos/{todo['id']}", headers=auth(a))
        assert res.status_code == 200
        assert res.json()["todos"] == []

        missing = client.delete(f"/api/v1/tasks/{task['id']}/todos/{todo['id']}", headers=auth(a))
        assert missing.status_code == 404
        assert missing.json()["message"] == "Todo not found"

    def test_stale_version_rejects_todo_edit(self, client, team):
        project, a, b, _ = team
        task = new_task(client, project["id"], a)
        body = add_todo(client, task["id"], a).json()
        todo_id, seen_version = body["todos"][0]["id"], body["version"]

        assert patch_todo(client, task["id"], todo_id, a, text="Edited", version=seen_version).status_code == 200
        stale = patch_todo(client, task["id"], todo_id, b, completed=True, version=seen_version)
        assert stale.status_code == 409
