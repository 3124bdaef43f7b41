"""
Tests for the transactional email client and templates.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from app.core.email import (
    EmailClient,
    EmailError,
    render_role_change_email,
    render_team_invite_email,
    send_role_change_email,
    send_team_invite_email,
)


def _client(handler, api_key: str = "re_test") -> EmailClient:
    return EmailClient(
        api_key=api_key,
        api_url="https://mail.test/emails",
        sender="Brand Hub <hub@test>",
        transport=httpx.MockTransport(handler),
    )


class TestEmailClient:
    async def test_send_posts_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "msg_123"})

        message_id = await _client(handler).send("a@test", "Hello", "<p>Hi</p>", "Hi")
        assert message_id == "msg_123"
        assert captured["auth"] == "Bearer re_test"
        assert captured["body"] == {
            "from": "Brand Hub <hub@test>",
            "to": ["a@test"],
            "subject": "Hello",
            "html": "<p>Hi</p>",
            "text": "Hi",
        }

    async def test_disabled_without_api_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = _client(handler, api_key="")
        assert client.enabled is False
        assert await client.send("a@test", "Hello", "<p>Hi</p>") is None

    async def test_provider_error(self):
        client = _client(lambda request: httpx.Response(422, text="bad sender"))
        with pytest.raises(EmailError) as exc_info:
            await client.send("a@test", "Hello", "<p>Hi</p>")
        assert exc_info.value.details == {"status": 422, "body": "bad sender"}

    async def test_provider_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(EmailError, match="unreachable"):
            await _client(handler).send("a@test", "Hello", "<p>Hi</p>")

    @pytest.mark.parametrize("body", ["<html>gateway</html>", '["msg_123"]'])
    async def test_malformed_success_body(self, body):
        client = _client(lambda request: httpx.Response(200, text=body))
        with pytest.raises(EmailError, match="malformed") as exc_info:
            await client.send("a@test", "Hello", "<p>Hi</p>")
        assert exc_info.value.details == {"status": 200, "body": body}


class TestRoleChangeEmail:
    def test_render(self):
        subject, html, text = render_role_change_email(
            "Max <Member>", "Olive", "user", "editor", "Acme & Co", "https://hub.test"
        )
        assert subject == "Your role has been updated to Editor"
        assert "from Member to Editor" in text
        assert "Max &lt;Member&gt;" in html
        assert "Acme &amp; Co" in html

    async def test_failures_are_logged_not_raised(self):
        client = AsyncMock(spec=EmailClient)
        client.send.side_effect = EmailError("down")
        await send_role_change_email(
            "max@test", "Max", "Olive", "user", "admin", "Acme", client=client
        )
        subject = client.send.call_args.args[1]
        assert subject == "Your role has been updated to Admin"


class TestTeamInviteEmail:
    def test_signup_invite(self):
        subject, html, text = render_team_invite_email(
            "Olive", "Acme & Co", "b-1", "https://hub.test/", needs_signup=True
        )
        assert subject == "Olive invited you to join Acme & Co on Brand Hub"
        assert "https://hub.test/signup?invite=true&brand=b-1" in text
        assert "Acme &amp; Co" in html
        assert "Join Team" in html

    def test_added_to_team(self):
        subject, _, text = render_team_invite_email(
            "Olive", "Acme", "b-1", "https://hub.test", needs_signup=False
        )
        assert subject == "You've been added to Acme on Brand Hub"
        assert "Open Dashboard: https://hub.test/dashboard" in text

    async def test_failures_are_logged_not_raised(self):
        client = AsyncMock(spec=EmailClient)
        client.send.side_effect = EmailError("down")
        await send_team_invite_email("new@test", "Olive", "Acme", "b-1", True, client=client)
        assert client.send.call_args.args[0] == "new@test"
