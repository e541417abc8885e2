from .helpers import auth, inbox


def create_project(client, owner_id, name="Apollo", description="Moon landing"):
    res = client.post(
        "/api/v1/projects/",
        json={"name": name, "description": description, "tags": [" space ", ""]},
        headers=auth(owner_id),
    )
    assert res.status_code == 201, res.text
    return res.json()


def add_collaborator(client, project_id, owner_id, **identity):
    return client.post(
        f"/api/v1/projects/{project_id}/collaborators", json=identity, headers=auth(owner_id)
    )


class TestProjectCRUD:
    def test_create_sets_owner_and_trims_tags(self, client, register):
        a = register("alice")
        project = create_project(client, a)
        assert project["owner"] == {"id": a, "username": "alice"}
        assert project["collaborators"] == []
        assert project["tags"] == ["space"]

    def test_create_requires_name_and_description(self, client, register):
        a = register("alice")
        res = client.post(
            "/api/v1/projects/", json={"name": "  ", "description": "x"}, headers=auth(a)
        )
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "ValidationFailed"
        assert "Project name is required" in body["message"]

    def test_requests_without_identity_are_rejected(self, client):
        assert client.get("/api/v1/projects/").status_code == 401
        assert client.get("/api/v1/projects/", headers=auth("nobody")).status_code == 401

    def test_list_returns_owned_and_shared_projects(self, client, register):
        a, b, c = register("alice"), register("bob"), register("carol")
        own = create_project(client, a, name="Own")
        shared = create_project(client, b, name="Shared")
        create_project(client, c, name="Other")
        assert add_collaborator(client, shared["id"], b, username="alice").status_code == 200

        res = client.get("/api/v1/projects/", headers=auth(a))
        assert res.status_code == 200
        names = [p["name"] for p in res.json()]
        assert sorted(names) == ["Own", "Shared"]
        assert own["id"] in {p["id"] for p in res.json()}

    def test_get_project_is_member_only(self, client, register):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        assert client.get(f"/api/v1/projects/{project['id']}", headers=auth(a)).status_code == 200

        forbidden = client.get(f"/api/v1/projects/{project['id']}", headers=auth(b))
        assert forbidden.status_code == 403
        assert forbidden.json() == {"error": "Forbidden", "message": "Not authorized to access this project"}

        missing = client.get("/api/v1/projects/does-not-exist", headers=auth(a))
        assert missing.status_code == 404
        assert missing.json()["message"] == "Project not found"


class TestProjectUpdate:
    def test_only_owner_may_update(self, client, register):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        add_collaborator(client, project["id"], a, username="bob")

        res = client.put(f"/api/v1/projects/{project['id']}", json={"name": "Renamed"}, headers=auth(b))
        assert res.status_code == 403
        assert res.json()["message"] == "Not authorized to update this project"

    def test_update_notifies_members_except_actor(self, client, register, store):
        a, b, c = register("alice"), register("bob"), register("carol")
        project = create_project(client, a)
        add_collaborator(client, project["id"], a, username="bob")
        add_collaborator(client, project["id"], a, username="carol")

        res = client.put(f"/api/v1/projects/{project['id']}", json={"name": "Artemis"}, headers=auth(a))
        assert res.status_code == 200
        assert res.json()["name"] == "Artemis"

        for user_id in (b, c):
            [note] = inbox(store, user_id, "PROJECT_UPDATED")
            assert note["message"] == "alice has updated the project 'Artemis'"
            assert note["sender"] == a
        assert inbox(store, a) == []

    def test_collaborator_list_changes_send_invite_and_removal(self, client, register, store):
        a, b, c, d = register("alice"), register("bob"), register("carol"), register("dave")
        project = create_project(client, a)
        add_collaborator(client, project["id"], a, username="bob")
        add_collaborator(client, project["id"], a, username="carol")
        for user_id in (b, c):
            store.notifications.mark_all_read(user_id)
            store.notifications.delete_read(user_id)

        res = client.put(
            f"/api/v1/projects/{project['id']}", json={"collaborators": [c, d]}, headers=auth(a)
        )
        assert res.status_code == 200

        [removed] = inbox(store, b)
        assert removed["type"] == "PROJECT_REMOVED"
        assert removed["message"] == "You have been removed from the project 'Apollo'"
        [invite] = inbox(store, d)
        assert invite["type"] == "PROJECT_INVITE"
        assert invite["message"] == "alice has added you to the project 'Apollo'"
        assert [n["type"] for n in inbox(store, c)] == ["PROJECT_UPDATED"]
        assert inbox(store, a) == []

    def test_owner_cannot_be_listed_as_collaborator(self, client, register):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        res = client.put(
            f"/api/v1/projects/{project['id']}", json={"collaborators": [b, a]}, headers=auth(a)
        )
        assert res.status_code == 400
        assert res.json()["message"] == "Owner cannot be added as collaborator"

    def test_collaborators_must_exist(self, client, register):
        a = register("alice")
        project = create_project(client, a)
        res = client.put(
            f"/api/v1/projects/{project['id']}", json={"collaborators": ["ghost"]}, headers=auth(a)
        )
        assert res.status_code == 400

    def test_collaborator_list_is_deduplicated(self, client, register):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        res = client.put(
            f"/api/v1/projects/{project['id']}", json={"collaborators": [b, b]}, headers=auth(a)
        )
        assert res.status_code == 200
        assert [c["id"] for c in res.json()["collaborators"]] == [b]


class TestCollaborators:
    def test_add_by_email_sends_invite(self, client, register, store):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        res = add_collaborator(client, project["id"], a, email="BOB@example.com")
        assert res.status_code == 200
        assert res.json()["collaborators"] == [{"id": b, "username": "bob"}]

        [invite] = inbox(store, b)
        assert invite["type"] == "PROJECT_INVITE"
        assert invite["project"] == project["id"]
        assert invite["message"] == "alice has added you to the project 'Apollo'"

    def test_add_rejections(self, client, register):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)

        assert add_collaborator(client, project["id"], a).status_code == 400
        assert add_collaborator(client, project["id"], a, username="nobody").status_code == 404

        owner = add_collaborator(client, project["id"], a, username="alice")
        assert owner.status_code == 400
        assert owner.json()["message"] == "Owner cannot be added as collaborator"

        assert add_collaborator(client, project["id"], a, username="bob").status_code == 200
        again = add_collaborator(client, project["id"], a, username="bob")
        assert again.status_code == 400
        assert again.json()["message"] == "User is already a collaborator"

        not_owner = add_collaborator(client, project["id"], b, username="alice")
        assert not_owner.status_code == 403

    def test_remove_notifies_removed_user(self, client, register, store):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        add_collaborator(client, project["id"], a, username="bob")

        res = client.delete(f"/api/v1/projects/{project['id']}/collaborators/{b}", headers=auth(a))
        assert res.status_code == 200
        assert res.json()["collaborators"] == []

        [removed] = inbox(store, b, "PROJECT_REMOVED")
        assert removed["message"] == "You have been removed from the project 'Apollo'"
        assert client.get(f"/api/v1/projects/{project['id']}", headers=auth(b)).status_code == 403

    def test_remove_non_collaborator_is_rejected(self, client, register, store):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        res = client.delete(f"/api/v1/projects/{project['id']}/collaborators/{b}", headers=auth(a))
        assert res.status_code == 400
        assert inbox(store, b) == []


class TestProjectDelete:
    def test_delete_removes_tasks_and_notifies_members(self, client, register, store):
        a, b = register("alice"), register("bob")
        project = create_project(client, a)
        add_collaborator(client, project["id"], a, username="bob")
        task = client.post(
            f"/api/v1/projects/{project['id']}/tasks", json={"title": "Launch"}, headers=auth(a)
        ).json()

        forbidden = client.delete(f"/api/v1/projects/{project['id']}", headers=auth(b))
        assert forbidden.status_code == 403

        res = client.delete(f"/api/v1/projects/{project['id']}", headers=auth(a))
        assert res.status_code == 200
        assert res.json()["message"] == "Project removed successfully"

        assert store.projects.get(project["id"]) is None
        assert store.tasks.get(task["id"]) is None
        [deleted] = inbox(store, b, "PROJECT_DELETED")
        assert deleted["message"] == "The project 'Apollo' has been deleted"
        assert inbox(store, a) == []
