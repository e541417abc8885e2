from datetime import datetime, timedelta

from collabtrack.enums import NotificationType
from collabtrack.notifications import NotificationDispatcher
from collabtrack.repositories import NotificationQuery, memory_store

from .helpers import auth, make_user


def send(store, recipient, sender=None, type_=NotificationType.TASK_CREATED, message="hello", **refs):
    return NotificationDispatcher(store.notifications).create_notification(
        recipient, type_, message, sender=sender, **refs
    )


class TestInbox:
    def test_list_newest_first_with_paging(self, client, register, store):
        a, b = register("alice"), register("bob")
        for i in range(3):
            send(store, a, sender=b, message=f"note {i}")

        res = client.get("/api/v1/notifications/", headers=auth(a))
        assert res.status_code == 200
        assert [n["message"] for n in res.json()] == ["note 2", "note 1", "note 0"]

        page = client.get("/api/v1/notifications/", params={"limit": 1, "skip": 1}, headers=auth(a))
        assert [n["message"] for n in page.json()] == ["note 1"]

        assert client.get("/api/v1/notifications/", params={"limit": 500}, headers=auth(a)).status_code == 400

    def test_references_resolve_until_deleted(self, client, register, store):
        a, b = register("alice"), register("bob")
        project = client.post(
            "/api/v1/projects/", json={"name": "Apollo", "description": "Moon"}, headers=auth(b)
        ).json()
        client.post(f"/api/v1/projects/{project['id']}/collaborators", json={"username": "alice"}, headers=auth(b))
        task = client.post(
            f"/api/v1/projects/{project['id']}/tasks", json={"title": "Launch"}, headers=auth(b)
        ).json()

        created = client.get("/api/v1/notifications/", headers=auth(a)).json()[0]
        assert created["type"] == "TASK_CREATED"
        assert created["sender_username"] == "bob"
        assert created["project_name"] == "Apollo"
        assert created["task_title"] == "Launch"

        client.delete(f"/api/v1/tasks/{task['id']}", headers=auth(b))
        client.delete(f"/api/v1/projects/{project['id']}", headers=auth(b))

        items = client.get("/api/v1/notifications/", headers=auth(a)).json()
        stale = next(n for n in items if n["id"] == created["id"])
        assert stale["task_title"] is None
        assert stale["project_name"] is None
        assert stale["sender_username"] == "bob"

    def test_unread_count_and_mark_read(self, client, register, store):
        a, b = register("alice"), register("bob")
        first = send(store, a, sender=b)
        send(store, a, sender=b)

        assert client.get("/api/v1/notifications/unread/count", headers=auth(a)).json() == {"count": 2}

        res = client.put(f"/api/v1/notifications/{first['id']}/read", headers=auth(a))
        assert res.status_code == 200
        assert res.json()["is_read"] is True
        assert res.json()["read_at"] is not None
        assert client.get("/api/v1/notifications/unread/count", headers=auth(a)).json() == {"count": 1}

        unread = client.get("/api/v1/notifications/", params={"unread_only": True}, headers=auth(a)).json()
        assert len(unread) == 1
        assert unread[0]["id"] != first["id"]

    def test_mark_all_and_clear_read(self, client, register, store):
        a, b = register("alice"), register("bob")
        send(store, a, sender=b)
        send(store, a, sender=b)
        send(store, b, sender=a)

        marked = client.put("/api/v1/notifications/mark-all-read", headers=auth(a))
        assert marked.json()["count"] == 2
        cleared = client.delete("/api/v1/notifications/clear-read", headers=auth(a))
        assert cleared.json()["count"] == 2

        assert client.get("/api/v1/notifications/", headers=auth(a)).json() == []
        # other recipients are untouched
        assert client.get("/api/v1/notifications/unread/count", headers=auth(b)).json() == {"count": 1}

    def test_notifications_are_private_to_recipient(self, client, register, store):
        a, b = register("alice"), register("bob")
        note = send(store, a, sender=b)

        assert client.put(f"/api/v1/notifications/{note['id']}/read", headers=auth(b)).status_code == 404
        missing = client.delete(f"/api/v1/notifications/{note['id']}", headers=auth(b))
        assert missing.status_code == 404
        assert missing.json()["message"] == "Notification not found"

        assert client.delete(f"/api/v1/notifications/{note['id']}", headers=auth(a)).status_code == 200
        assert client.get("/api/v1/notifications/", headers=auth(a)).json() == []


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestRetention:
    def test_expired_notifications_are_purged_on_read(self):
        clock = FakeClock(datetime(2024, 1, 1, 12, 0))
        store = memory_store(retention_days=30, clock=clock)
        alice, bob = make_user(store, "alice"), make_user(store, "bob")

        send(store, alice["id"], sender=bob["id"], message="old")
        clock.now += timedelta(days=20)
        send(store, alice["id"], sender=bob["id"], message="recent")
        clock.now += timedelta(days=11)

        items = store.notifications.list_for_recipient(alice["id"], NotificationQuery())
        assert [n["message"] for n in items] == ["recent"]
        assert store.notifications.count_unread(alice["id"]) == 1

    def test_expired_notifications_cannot_be_deleted(self):
        clock = FakeClock(datetime(2024, 1, 1, 12, 0))
        store = memory_store(retention_days=30, clock=clock)
        alice, bob = make_user(store, "alice"), make_user(store, "bob")

        old = send(store, alice["id"], sender=bob["id"], message="old")
        store.notifications.mark_read(old["id"], alice["id"])
        clock.now += timedelta(days=31)

        assert store.notifications.delete(old["id"], alice["id"]) is False
        assert store.notifications.delete_read(alice["id"]) == 0
