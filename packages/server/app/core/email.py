"""
Transactional email over a Resend-compatible HTTP API.

Delivery is best-effort: callers schedule these as background tasks after the
primary mutation has committed, and failures are logged, never retried.
"""

from __future__ import annotations

from html import escape
from typing import Any

import httpx
import structlog

from app.core.config import get_settings
from app.core.permissions import get_role_display_name

log = structlog.get_logger()


class EmailError(Exception):
    """The email provider rejected the request or could not be reached."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class EmailClient:
    def __init__(
        self,
        api_key: str,
        api_url: str,
        sender: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._api_url = api_url
        self._sender = sender
        self._timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def send(
        self,
        to: str | list[str],
        subject: str,
        html: str,
        text: str | None = None,
    ) -> str | None:
        """Send one email. Returns the provider's message id, or None when disabled."""
        if not self.enabled:
            log.warning("email.disabled", subject=subject)
            return None

        payload: dict[str, Any] = {
            "from": self._sender,
            "to": [to] if isinstance(to, str) else to,
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout), transport=self._transport
        ) as client:
            try:
                resp = await client.post(
                    self._api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                resp.raise_for_status()
                message_id = resp.json().get("id")
            except httpx.HTTPStatusError as exc:
                raise EmailError(
                    "Email provider rejected the request",
                    details={"status": exc.response.status_code, "body": exc.response.text[:500]},
                ) from exc
            except httpx.HTTPError as exc:
                raise EmailError("Email provider unreachable", details=str(exc)) from exc
            except (ValueError, AttributeError) as exc:
                raise EmailError(
                    "Email provider returned a malformed response",
                    details={"status": resp.status_code, "body": resp.text[:500]},
                ) from exc

        log.info("email.sent", subject=subject, message_id=message_id)
        return message_id


def get_email_client() -> EmailClient:
    settings = get_settings()
    return EmailClient(
        api_key=settings.resend_api_key,
        api_url=settings.email_api_url,
        sender=settings.email_from,
        timeout=settings.http_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def render_role_change_email(
    member_name: str,
    changed_by: str,
    old_role: str,
    new_role: str,
    brand_name: str,
    app_url: str,
) -> tuple[str, str, str]:
    """Returns (subject, html, text)."""
    old_display = get_role_display_name(old_role)
    new_display = get_role_display_name(new_role)
    subject = f"Your role has been updated to {new_display}"
    text = (
        f"Hi {member_name},\n\n"
        f"{changed_by} changed your role in {brand_name} from {old_display} to {new_display}.\n\n"
        f"Open Brand Hub: {app_url}\n"
    )
    html = (
        f"<p>Hi {escape(member_name)},</p>"
        f"<p>{escape(changed_by)} changed your role in <strong>{escape(brand_name)}</strong> "
        f"from <strong>{escape(old_display)}</strong> to <strong>{escape(new_display)}</strong>.</p>"
        f'<p><a href="{escape(app_url)}">Open Brand Hub</a></p>'
    )
    return subject, html, text


async def send_role_change_email(
    to: str,
    member_name: str,
    changed_by: str,
    old_role: str,
    new_role: str,
    brand_name: str,
    client: EmailClient | None = None,
) -> None:
    """Background task: notify a member of a role change. Never raises EmailError."""
    client = client or get_email_client()
    subject, html, text = render_role_change_email(
        member_name, changed_by, old_role, new_role, brand_name, get_settings().app_url
    )
    try:
        await client.send(to, subject, html, text)
    except EmailError as exc:
        log.error("email.send_failed", to=to, subject=subject, error=str(exc), details=exc.details)


def render_team_invite_email(
    inviter_name: str,
    brand_name: str,
    brand_id: str,
    app_url: str,
    *,
    needs_signup: bool,
) -> tuple[str, str, str]:
    """Returns (subject, html, text).

    Unknown addresses get a sign-up link carrying the brand; existing users
    who were added directly get a link to the dashboard.
    """
    base = app_url.rstrip("/")
    if needs_signup:
        subject = f"{inviter_name} invited you to join {brand_name} on Brand Hub"
        link = f"{base}/signup?invite=true&brand={brand_id}"
        intro = f"{inviter_name} has invited you to join {brand_name} on Brand Hub."
        action = "Join Team"
    else:
        subject = f"You've been added to {brand_name} on Brand Hub"
        link = f"{base}/dashboard"
        intro = f"{inviter_name} has added you to {brand_name} on Brand Hub."
        action = "Open Dashboard"
    text = f"{intro}\n\n{action}: {link}\n"
    html = (
        f"<p>{escape(intro)}</p>"
        f'<p><a href="{escape(link)}">{action}</a></p>'
        "<p>If you didn't expect this invitation, you can ignore this email.</p>"
    )
    return subject, html, text


async def send_team_invite_email(
    to: str,
    inviter_name: str,
    brand_name: str,
    brand_id: str,
    needs_signup: bool,
    client: EmailClient | None = None,
) -> None:
    """Background task: invite someone to a brand. Never raises EmailError."""
    client = client or get_email_client()
    subject, html, text = render_team_invite_email(
        inviter_name, brand_name, brand_id, get_settings().app_url, needs_signup=needs_signup
    )
    try:
        await client.send(to, subject, html, text)
    except EmailError as exc:
        log.error("email.send_failed", to=to, subject=subject, error=str(exc), details=exc.details)
