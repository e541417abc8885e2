import pytest

from collabtrack.assignment import (
    TASK_ASSIGNEE_MESSAGE,
    validate_task_assignment,
    validate_todo_assignment,
)

from .helpers import make_project, make_task, make_user


@pytest.fixture
def world(store):
    a = make_user(store, "alice")
    b = make_user(store, "bob")
    c = make_user(store, "carol")
    d = make_user(store, "dave")
    project = make_project(store, a, [b, c])
    return store, a, b, c, d, project


class TestTaskAssignment:
    def test_empty_list_is_valid(self, world):
        *_, project = world
        assert validate_task_assignment([], project).valid is True

    def test_members_are_valid(self, world):
        _, a, b, c, _, project = world
        assert validate_task_assignment([a["id"], b["id"], c["id"]], project).valid is True

    def test_non_member_is_rejected(self, world):
        _, _, b, _, d, project = world
        check = validate_task_assignment([b["id"], d["id"]], project)
        assert check.valid is False
        assert check.message == TASK_ASSIGNEE_MESSAGE


class TestTodoAssignment:
    def test_narrowed_task_only_accepts_task_assignees(self, world):
        store, a, b, c, _, project = world
        task = make_task(store, project, assigned_to=[b])
        assert validate_todo_assignment(b["id"], task, project).valid is True
        rejected = validate_todo_assignment(c["id"], task, project)
        assert rejected.valid is False
        assert rejected.message.startswith("Todo can only be assigned to users assigned to this task")
        # the owner is not special once the task is narrowed
        assert validate_todo_assignment(a["id"], task, project).valid is False

    def test_open_task_accepts_any_member(self, world):
        store, a, b, c, d, project = world
        task = make_task(store, project)
        for user in (a, b, c):
            assert validate_todo_assignment(user["id"], task, project).valid is True
        assert validate_todo_assignment(d["id"], task, project).valid is False

    def test_unassign_is_always_valid(self, world):
        store, _, b, _, _, project = world
        task = make_task(store, project, assigned_to=[b])
        assert validate_todo_assignment(None, task, project).valid is True
