"""
Tests for collaborative conversation access.

Access is granted to the owner and to users holding an accepted share;
pending and declined shares grant nothing.
"""

from __future__ import annotations

import json
import uuid

import pytest
from sqlmodel import select

from app.models.message import Message
from conftest import auth_headers

URL = "/api/v1/collaborative-messages"


@pytest.fixture
async def chat(factory):
    brand = await factory.brand()
    owner = await factory.user("owner@example.com", "Olive Owner")
    guest = await factory.user("guest@example.com", "Gus Guest")
    await factory.member(owner, brand, "owner")
    await factory.member(guest, brand, "editor")
    conversation = await factory.conversation(owner, brand)
    await factory.message(conversation, "Draft a tagline", author=owner)
    await factory.message(conversation, "Here are three options", role="assistant")
    return conversation, owner, guest


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

class TestGetCollaborativeMessages:
    async def test_owner_sees_messages(self, client, chat):
        conversation, owner, _ = chat
        resp = await client.get(
            URL, params={"conversationId": str(conversation.id)}, headers=auth_headers(owner)
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["isOwner"] is True
        assert data["isCollaborative"] is False

        first, second = data["messages"]
        assert first["content"] == "Draft a tagline"
        assert first["sender_name"] == "Olive Owner"
        assert first["sender_email"] == "owner@example.com"
        assert first["is_current_user"] is True
        assert second["sender_name"] == "Assistant"
        assert second["is_current_user"] is False

    async def test_accepted_write_share_is_collaborative(self, client, factory, chat):
        conversation, _, guest = chat
        await factory.share(conversation, guest, permission="write")
        resp = await client.get(
            URL, params={"conversationId": str(conversation.id)}, headers=auth_headers(guest)
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["isOwner"] is False
        assert data["isCollaborative"] is True
        assert data["messages"][0]["is_current_user"] is False

    async def test_owner_sees_collaborative_flag_from_write_share(self, client, factory, chat):
        conversation, owner, guest = chat
        await factory.share(conversation, guest, permission="write")
        resp = await client.get(
            URL, params={"conversationId": str(conversation.id)}, headers=auth_headers(owner)
        )
        assert resp.json()["isCollaborative"] is True

    async def test_read_share_is_not_collaborative(self, client, factory, chat):
        conversation, _, guest = chat
        await factory.share(conversation, guest, permission="read")
        resp = await client.get(
            URL, params={"conversationId": str(conversation.id)}, headers=auth_headers(guest)
        )
        assert resp.status_code == 200
        assert resp.json()["isCollaborative"] is False

    @pytest.mark.parametrize("status", ["pending", "declined"])
    async def test_unaccepted_share_grants_nothing(self, client, factory, chat, status):
        conversation, _, guest = chat
        await factory.share(conversation, guest, permission="write", status=status)
        resp = await client.get(
            URL, params={"conversationId": str(conversation.id)}, headers=auth_headers(guest)
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "No access to this conversation"

    async def test_stranger_forbidden(self, client, factory, chat):
        conversation, _, _ = chat
        stranger = await factory.user()
        resp = await client.get(
            URL, params={"conversationId": str(conversation.id)}, headers=auth_headers(stranger)
        )
        assert resp.status_code == 403

    async def test_unknown_and_inaccessible_look_the_same(self, client, chat):
        conversation, _, guest = chat
        responses = [
            await client.get(
                URL, params={"conversationId": str(conversation_id)}, headers=auth_headers(guest)
            )
            for conversation_id in (conversation.id, uuid.uuid4())
        ]
        assert [r.status_code for r in responses] == [403, 403]
        assert responses[0].json() == responses[1].json()


# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------

class TestPostCollaborativeMessage:
    async def test_write_collaborator_posts(self, client, session, factory, fake_redis, chat):
        conversation, owner, guest = chat
        await factory.share(conversation, guest, permission="write")
        resp = await client.post(
            URL,
            json={"conversationId": str(conversation.id), "content": "What about option two?"},
            headers=auth_headers(guest),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"]["sender_name"] == "Gus Guest"
        assert body["message"]["user_id"] == str(guest.id)
        assert body["message"]["is_current_user"] is True

        result = await session.execute(
            select(Message).where(Message.content == "What about option two?")
        )
        stored = result.scalar_one()
        assert stored.meta == {"sender_name": "Gus Guest"}

        await session.refresh(conversation)
        assert conversation.last_message_at is not None

        # Pushed to the owner, not back to the author.
        channels = [c.args[0] for c in fake_redis.publish.call_args_list]
        assert channels == [f"bh:user:{owner.id}"]
        event = json.loads(fake_redis.publish.call_args.args[1])
        assert event["type"] == "message.created"
        assert event["data"]["content"] == "What about option two?"

    async def test_owner_posts(self, client, chat):
        conversation, owner, _ = chat
        resp = await client.post(
            URL,
            json={"conversationId": str(conversation.id), "content": "Noted"},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 201

    async def test_read_collaborator_cannot_post(self, client, factory, chat):
        conversation, _, guest = chat
        await factory.share(conversation, guest, permission="read")
        resp = await client.post(
            URL,
            json={"conversationId": str(conversation.id), "content": "Hello"},
            headers=auth_headers(guest),
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "No write access to this conversation"

    async def test_pending_write_share_cannot_post(self, client, factory, chat):
        conversation, _, guest = chat
        await factory.share(conversation, guest, permission="write", status="pending")
        resp = await client.post(
            URL,
            json={"conversationId": str(conversation.id), "content": "Hello"},
            headers=auth_headers(guest),
        )
        assert resp.status_code == 403

    async def test_empty_content_rejected(self, client, chat):
        conversation, owner, _ = chat
        resp = await client.post(
            URL,
            json={"conversationId": str(conversation.id), "content": ""},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 422

    async def test_post_to_unknown_conversation_is_forbidden(self, client, chat):
        conversation, _, guest = chat
        responses = [
            await client.post(
                URL,
                json={"conversationId": str(conversation_id), "content": "Hello"},
                headers=auth_headers(guest),
            )
            for conversation_id in (conversation.id, uuid.uuid4())
        ]
        assert [r.status_code for r in responses] == [403, 403]
        assert responses[0].json() == responses[1].json()
