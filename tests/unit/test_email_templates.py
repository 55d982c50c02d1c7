"""Unit tests for transactional email rendering and transports."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from impactos.core.errors import EmailDeliveryFailed
from impactos.services.email_service import (
    EmailMessage,
    LoggingEmailSender,
    ResendEmailSender,
    render_confirmation_email,
    render_invitation_email,
)


class TestInvitationEmail:
    """Unit tests for render_invitation_email."""

    def _render(self, **overrides):
        kwargs = {
            "to": "invitee@example.com",
            "organization_name": "Acme Ventures",
            "inviter_name": "Olivia Owner",
            "role": "editor",
            "invite_url": "http://localhost:3000/accept-invite/tok123",
            "expire_days": 7,
        }
        kwargs.update(overrides)
        return render_invitation_email(**kwargs)

    def test_subject_names_organization(self):
        message = self._render()

        assert message.to == "invitee@example.com"
        assert message.subject == "You've been invited to join Acme Ventures on impact OS"

    def test_body_contains_link_role_and_expiry(self):
        message = self._render()

        assert "http://localhost:3000/accept-invite/tok123" in message.html
        assert "<strong>editor</strong>" in message.html
        assert "Olivia Owner" in message.html
        assert "expire in 7 days" in message.html

    def test_html_in_names_is_escaped(self):
        message = self._render(organization_name="<script>x</script>", inviter_name="A & B")

        assert "<script>x</script>" not in message.html
        assert "&lt;script&gt;" in message.html
        assert "A &amp; B" in message.html


class TestConfirmationEmail:
    def test_confirmation_email(self):
        message = render_confirmation_email(
            to="new@example.com", confirm_url="http://localhost:3000/auth/confirm?token=a&b=c"
        )

        assert message.subject == "Confirm your impact OS account"
        assert "token=a&amp;b=c" in message.html


@pytest.mark.asyncio
class TestSenders:
    """Unit tests for the email transports."""

    async def test_logging_sender_records_messages(self):
        sender = LoggingEmailSender()
        message = EmailMessage(to="a@example.com", subject="Hi", html="<p>Hi</p>")

        result = await sender.send(message)

        assert result is None
        assert sender.outbox == [message]

    async def test_resend_sender_posts_payload(self):
        """Test the Resend transport sends the expected JSON and returns the id."""
        sender = ResendEmailSender(api_key="re_test", api_url="https://api.resend.test/emails", sender="impact OS <a@b.c>")
        response = MagicMock(status_code=200)
        response.json.return_value = {"id": "msg_123"}

        with patch("impactos.services.email_service.httpx.AsyncClient") as client_cls:
            client = client_cls.return_value.__aenter__.return_value
            client.post = AsyncMock(return_value=response)

            result = await sender.send(EmailMessage(to="x@example.com", subject="S", html="<p/>"))

        assert result == "msg_123"
        _, kwargs = client.post.call_args
        assert kwargs["json"]["to"] == ["x@example.com"]
        assert kwargs["headers"]["Authorization"] == "Bearer re_test"

    async def test_resend_sender_raises_on_error_status(self):
        sender = ResendEmailSender(api_key="re_test", api_url="https://api.resend.test/emails", sender="s")
        response = MagicMock(status_code=422, text="invalid from")

        with patch("impactos.services.email_service.httpx.AsyncClient") as client_cls:
            client = client_cls.return_value.__aenter__.return_value
            client.post = AsyncMock(return_value=response)

            with pytest.raises(EmailDeliveryFailed, match="422"):
                await sender.send(EmailMessage(to="x@example.com", subject="S", html="<p/>"))

    async def test_resend_sender_raises_on_transport_error(self):
        sender = ResendEmailSender(api_key="re_test", api_url="https://api.resend.test/emails", sender="s")

        with patch("impactos.services.email_service.httpx.AsyncClient") as client_cls:
            client = client_cls.return_value.__aenter__.return_value
            client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))

            with pytest.raises(EmailDeliveryFailed):
                await sender.send(EmailMessage(to="x@example.com", subject="S", html="<p/>"))
