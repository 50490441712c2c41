"""
Tests for templated email sending and the SendGrid channel.
"""
from unittest.mock import MagicMock

import pytest

from backend.core.config import settings
from backend.delivery.channels import SendGridChannel
from backend.delivery.models import DeliveryState, EmailContent
from backend.schemas.settings import SystemSettingsUpdate
from backend.services.email import EmailService, portal_url
from backend.services.settings import SystemSettingsService


def content(**overrides) -> EmailContent:
    fields = dict(
        subject="IMR Evaluation Assignment",
        body_html="<p>Hello</p>",
        body_text="Hello",
        from_email="helpdesk.rdc@university.edu",
        from_name="R&D Portal",
        to_email="meera.iyer@university.edu",
    )
    fields.update(overrides)
    return EmailContent(**fields)


class ProviderError(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"HTTP Error {status_code}")
        self.status_code = status_code


class TestEmailService:
    @pytest.mark.asyncio
    async def test_renders_notification_layout(self, email_service, fake_channel):
        status = await email_service.send_notification(
            to="asha.patel@university.edu",
            subject="Project Status Update",
            user_name="Dr. Asha Patel",
            paragraphs=["Your project status has changed."],
            details={"New Status": "Recommended", "Remarks": None},
            action_url=portal_url("/dashboard/my-projects"),
            action_text="View Project",
        )

        assert status.status == DeliveryState.SENT
        sent = fake_channel.sent[0]
        assert sent.from_email == settings.from_email
        assert sent.to_name == "Dr. Asha Patel"
        assert "Dear Dr. Asha Patel," in sent.body_text
        assert "New Status: Recommended" in sent.body_text
        assert "Remarks" not in sent.body_text
        assert "View Project: http://localhost:3000/dashboard/my-projects" in sent.body_text
        assert "Recommended" in sent.body_html

    @pytest.mark.asyncio
    async def test_html_is_escaped(self, email_service, fake_channel):
        await email_service.send_notification(
            to="asha.patel@university.edu",
            subject="Comments",
            paragraphs=["<script>alert(1)</script>"],
        )

        assert "<script>" not in fake_channel.sent[0].body_html

    @pytest.mark.asyncio
    async def test_rdc_sender(self, email_service, fake_channel):
        await email_service.send_notification(
            to="allstaff@university.edu", subject="New call", paragraphs=["Hello"], sender="rdc"
        )

        assert fake_channel.sent[0].from_email == settings.rdc_from_email
        assert fake_channel.sent[0].from_name == settings.rdc_from_name

    @pytest.mark.asyncio
    async def test_dnd_recipient_skipped(self, async_session, email_service, fake_channel):
        await SystemSettingsService(async_session).update(SystemSettingsUpdate(dnd_email="vc.office@university.edu"))

        status = await email_service.send_notification(
            to="VC.Office@university.edu", subject="Hello", paragraphs=["Hello"]
        )

        assert status.status == DeliveryState.SKIPPED
        assert status.error_message == "Recipient is on DND"
        assert fake_channel.sent == []

    @pytest.mark.asyncio
    async def test_dnd_removed_from_cc(self, async_session, email_service, fake_channel):
        await SystemSettingsService(async_session).update(SystemSettingsUpdate(dnd_email="vc.office@university.edu"))

        await email_service.send_notification(
            to="asha.patel@university.edu",
            subject="Hello",
            paragraphs=["Hello"],
            cc=["vc.office@university.edu", "rdc@university.edu", ""],
        )

        assert fake_channel.sent[0].cc == ["rdc@university.edu"]

    @pytest.mark.asyncio
    async def test_unconfigured_channel_skips(self, email_service, fake_channel):
        fake_channel.configured = False

        status = await email_service.send_notification(to="asha.patel@university.edu", subject="Hi", paragraphs=["Hi"])

        assert status.status == DeliveryState.SKIPPED
        assert status.error_message == "SendGrid not configured"
        assert status.ok is True

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, email_service, fake_channel):
        fake_channel.fail_for.add("asha.patel@university.edu")

        status = await email_service.send_notification(to="asha.patel@university.edu", subject="Hi", paragraphs=["Hi"])

        assert status.status == DeliveryState.FAILED
        assert status.ok is False

    def test_portal_url(self):
        assert portal_url("/dashboard/incentive-approvals") == "http://localhost:3000/dashboard/incentive-approvals"
        assert portal_url() == "http://localhost:3000/"


class TestSendGridChannel:
    @pytest.fixture
    def channel(self, monkeypatch) -> SendGridChannel:
        monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test-key")
        channel = SendGridChannel()
        channel.RETRY_DELAYS = (0.0, 0.0, 0.0)
        return channel

    def test_not_configured_without_key(self, monkeypatch):
        monkeypatch.setattr(settings, "sendgrid_api_key", None)
        channel = SendGridChannel()

        assert channel.is_configured() is False
        with pytest.raises(ValueError):
            channel.client

    @pytest.mark.asyncio
    async def test_send(self, channel, mock_sendgrid):
        status = await channel.send(content(cc=["rdc@university.edu"]))

        assert status.status == DeliveryState.SENT
        assert status.provider_message_id == "sg-message-id"
        assert status.retry_count == 0
        mock_sendgrid.assert_called_once_with(api_key="SG.test-key")
        mock_sendgrid.return_value.send.assert_called_once()

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, channel, mock_sendgrid):
        ok = MagicMock(status_code=202, headers={"X-Message-Id": "sg-retried"})
        mock_sendgrid.return_value.send.side_effect = [ProviderError(503), ok]

        status = await channel.send(content())

        assert status.status == DeliveryState.SENT
        assert status.provider_message_id == "sg-retried"
        assert status.retry_count == 1

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, channel, mock_sendgrid):
        mock_sendgrid.return_value.send.side_effect = ProviderError(400)

        status = await channel.send(content())

        assert status.status == DeliveryState.FAILED
        assert status.error_message == "HTTP Error 400"
        assert mock_sendgrid.return_value.send.call_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, channel, mock_sendgrid):
        mock_sendgrid.return_value.send.side_effect = ProviderError(500)

        status = await channel.send(content())

        assert status.status == DeliveryState.FAILED
        assert mock_sendgrid.return_value.send.call_count == SendGridChannel.MAX_RETRIES
