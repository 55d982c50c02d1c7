"""Transactional email: invitation and signup confirmation messages."""

import html
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache

import httpx

from impactos.core.config import get_settings
from impactos.core.errors import EmailDeliveryFailed
from impactos.core.structured_logging import log_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class EmailSender(ABC):
    """Outbound email transport."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> str | None:
        """Deliver ``message`` and return the provider message id.

        Raises:
            EmailDeliveryFailed: The provider rejected or never received it
        """


class ResendEmailSender(EmailSender):
    """Sends through the Resend HTTP API."""

    def __init__(self, api_key: str, api_url: str, sender: str, timeout_seconds: float = 10.0):
        self.api_key = api_key
        self.api_url = api_url
        self.sender = sender
        self.timeout_seconds = timeout_seconds

    async def send(self, message: EmailMessage) -> str | None:
        payload = {
            "from": self.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds)) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            log_json(
                logger,
                logging.ERROR,
                "email_send_failed",
                subject=message.subject,
                error=str(e),
                exception=e.__class__.__name__,
            )
            raise EmailDeliveryFailed(f"Failed to send email: {e}") from e

        if response.status_code >= 400:
            log_json(
                logger,
                logging.ERROR,
                "email_send_failed",
                subject=message.subject,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise EmailDeliveryFailed(
                f"Failed to send email: provider returned {response.status_code}"
            )

        message_id = response.json().get("id")
        log_json(logger, logging.INFO, "email_sent", subject=message.subject, message_id=message_id)
        return message_id


@dataclass
class LoggingEmailSender(EmailSender):
    """Development sender: logs each message and keeps it in ``outbox``."""

    outbox: list[EmailMessage] = field(default_factory=list)

    async def send(self, message: EmailMessage) -> str | None:
        self.outbox.append(message)
        log_json(logger, logging.INFO, "email_logged", to=message.to, subject=message.subject)
        return None


@lru_cache
def get_email_sender() -> EmailSender:
    """Resend when an API key is configured, the logging sender otherwise."""
    settings = get_settings()
    if settings.resend_api_key:
        return ResendEmailSender(
            api_key=settings.resend_api_key,
            api_url=settings.resend_api_url,
            sender=settings.email_from,
            timeout_seconds=settings.email_timeout_seconds,
        )
    return LoggingEmailSender()


_BODY_STYLE = (
    "font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, "
    "'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; "
    "max-width: 600px; margin: 0 auto; padding: 20px;"
)
_BUTTON_STYLE = (
    "display: inline-block; background-color: #2563eb; color: white; "
    "padding: 12px 32px; text-decoration: none; border-radius: 6px; "
    "font-weight: 500; font-size: 16px;"
)
_MUTED = "font-size: 14px; color: #6b7280;"


def render_invitation_email(
    *,
    to: str,
    organization_name: str,
    inviter_name: str,
    role: str,
    invite_url: str,
    expire_days: int,
) -> EmailMessage:
    org = html.escape(organization_name)
    inviter = html.escape(inviter_name)
    url = html.escape(invite_url, quote=True)
    body = f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
  </head>
  <body style="{_BODY_STYLE}">
    <div style="background-color: #f9fafb; border-radius: 8px; padding: 32px; margin-bottom: 24px;">
      <h1 style="margin: 0 0 16px 0; font-size: 24px; font-weight: 600; color: #111827;">
        You've been invited to join {org}
      </h1>
      <p style="margin: 0 0 8px 0; color: #6b7280; font-size: 16px;">
        {inviter} has invited you to join their organization on impact OS as a <strong>{html.escape(role)}</strong>.
      </p>
    </div>
    <div style="margin-bottom: 32px;">
      <p style="margin: 0 0 16px 0; font-size: 16px;">
        impact OS helps accelerators and incubators track their portfolio companies and comply with government reporting requirements.
      </p>
      <p style="margin: 0 0 24px 0; font-size: 16px;">Click the button below to accept your invitation:</p>
      <div style="text-align: center;">
        <a href="{url}" style="{_BUTTON_STYLE}">Accept Invitation</a>
      </div>
      <p style="margin: 24px 0 0 0; {_MUTED}">
        Or copy and paste this link into your browser:<br>
        <a href="{url}" style="color: #2563eb; word-break: break-all;">{url}</a>
      </p>
    </div>
    <div style="border-top: 1px solid #e5e7eb; padding-top: 24px; margin-top: 32px;">
      <p style="margin: 0; {_MUTED}">
        This invitation was sent to {html.escape(to)}. If you didn't expect this invitation, you can safely ignore this email.
      </p>
      <p style="margin: 8px 0 0 0; {_MUTED}">This invitation link will expire in {expire_days} days.</p>
    </div>
  </body>
</html>
"""
    return EmailMessage(
        to=to,
        subject=f"You've been invited to join {organization_name} on impact OS",
        html=body,
    )


def render_confirmation_email(*, to: str, confirm_url: str) -> EmailMessage:
    url = html.escape(confirm_url, quote=True)
    body = f"""<!DOCTYPE html>
<html>
  <body style="{_BODY_STYLE}">
    <h1 style="margin: 0 0 16px 0; font-size: 24px; font-weight: 600; color: #111827;">Confirm your email</h1>
    <p style="margin: 0 0 24px 0; font-size: 16px;">Click the button below to confirm your impact OS account:</p>
    <div style="text-align: center;">
      <a href="{url}" style="{_BUTTON_STYLE}">Confirm Email</a>
    </div>
    <p style="margin: 24px 0 0 0; {_MUTED}">If you didn't sign up for impact OS, you can safely ignore this email.</p>
  </body>
</html>
"""
    return EmailMessage(to=to, subject="Confirm your impact OS account", html=body)
