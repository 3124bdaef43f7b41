"""
Tests for in-app notifications.
"""

from __future__ import annotations

import json
import uuid
from datetime import timedelta

import pytest
from fastapi import BackgroundTasks

from app.models.base import utcnow
from app.services.notifications import create_notification, schedule_push
from conftest import auth_headers

URL = "/api/v1/notifications"


@pytest.fixture
async def inbox(session, factory):
    """A user with two unread notifications and one read one."""
    user = await factory.user()
    other = await factory.user()
    created = []
    for title in ("First", "Second", "Third"):
        created.append(
            await create_notification(
                session,
                user_id=user.id,
                type="system",
                title=title,
                message=f"{title} message",
                metadata={"k": title},
            )
        )
    start = utcnow() - timedelta(hours=1)
    for offset, note in enumerate(created):
        note.created_at = start + timedelta(minutes=offset)
        session.add(note)
    created[0].read = True
    await create_notification(
        session, user_id=other.id, type="system", title="Not yours", message="-"
    )
    await session.commit()
    return user, other, created


class TestNotificationService:
    async def test_schedule_push_queues_one_task_per_notification(self, session, factory):
        user = await factory.user()
        note = await create_notification(
            session, user_id=user.id, type="mention", title="Hi", message="You were mentioned"
        )
        tasks = BackgroundTasks()
        schedule_push(tasks, [note])
        assert len(tasks.tasks) == 1
        task = tasks.tasks[0]
        assert task.args[0] == user.id
        assert task.args[1] == "notification"
        assert task.args[2]["title"] == "Hi"
        assert task.args[2]["read"] is False

    def test_schedule_push_without_background_tasks(self):
        schedule_push(None, [object()])


class TestNotificationEndpoints:
    async def test_list_newest_first_with_unread_count(self, client, inbox):
        user, _, _ = inbox
        resp = await client.get(URL, headers=auth_headers(user))
        assert resp.status_code == 200
        data = resp.json()
        assert [n["title"] for n in data["notifications"]] == ["Third", "Second", "First"]
        assert data["unreadCount"] == 2
        assert data["notifications"][0]["metadata"] == {"k": "Third"}

    async def test_unread_only_and_limit(self, client, inbox):
        user, _, _ = inbox
        resp = await client.get(URL, params={"unreadOnly": "true"}, headers=auth_headers(user))
        assert {n["title"] for n in resp.json()["notifications"]} == {"Second", "Third"}

        resp = await client.get(URL, params={"limit": 1}, headers=auth_headers(user))
        assert len(resp.json()["notifications"]) == 1

    async def test_unread_count(self, client, inbox):
        user, _, _ = inbox
        resp = await client.get(f"{URL}/unread-count", headers=auth_headers(user))
        assert resp.json() == {"count": 2}

    async def test_mark_read(self, client, inbox):
        user, _, created = inbox
        resp = await client.patch(f"{URL}/{created[1].id}/read", headers=auth_headers(user))
        assert resp.status_code == 200
        assert resp.json()["read"] is True
        assert resp.json()["readAt"] is not None

        resp = await client.get(f"{URL}/unread-count", headers=auth_headers(user))
        assert resp.json() == {"count": 1}

    async def test_cannot_touch_other_users_notifications(self, client, inbox):
        _, other, created = inbox
        resp = await client.patch(f"{URL}/{created[1].id}/read", headers=auth_headers(other))
        assert resp.status_code == 404
        resp = await client.delete(f"{URL}/{created[1].id}", headers=auth_headers(other))
        assert resp.status_code == 404

    async def test_read_all(self, client, inbox):
        user, other, _ = inbox
        resp = await client.post(f"{URL}/read-all", headers=auth_headers(user))
        assert resp.json()["message"] == "Marked 2 notifications as read"

        resp = await client.get(f"{URL}/unread-count", headers=auth_headers(other))
        assert resp.json() == {"count": 1}

    async def test_delete(self, client, inbox):
        user, _, created = inbox
        resp = await client.delete(f"{URL}/{created[2].id}", headers=auth_headers(user))
        assert resp.status_code == 200
        resp = await client.get(URL, headers=auth_headers(user))
        assert [n["title"] for n in resp.json()["notifications"]] == ["Second", "First"]

    async def test_unknown_notification(self, client, inbox):
        user, _, _ = inbox
        resp = await client.delete(f"{URL}/{uuid.uuid4()}", headers=auth_headers(user))
        assert resp.status_code == 404

    async def test_share_notification_is_pushed(self, client, factory, fake_redis):
        brand = await factory.brand()
        owner = await factory.user()
        guest = await factory.user()
        conversation = await factory.conversation(owner, brand, title="Brief")
        resp = await client.post(
            "/api/v1/conversation-shares",
            json={"conversationId": str(conversation.id), "userIds": [str(guest.id)]},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 200

        channel, body = fake_redis.publish.call_args.args
        assert channel == f"bh:user:{guest.id}"
        event = json.loads(body)
        assert event["type"] == "notification"
        assert event["data"]["type"] == "conversation_shared"
        assert event["data"]["conversationId"] == str(conversation.id)
