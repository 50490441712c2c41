"""
RDC Portal Email Service
Jinja2-based email template rendering and sending via SendGrid.
"""
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Optional

import structlog
from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.delivery.channels import SendGridChannel
from backend.delivery.models import DeliveryState, DeliveryStatus, EmailContent
from backend.services.settings import SystemSettingsService

logger = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates" / "email"

Sender = Literal["default", "rdc"]

_env: Optional[Environment] = None
_channel: Optional[SendGridChannel] = None


def get_template_env() -> Environment:
    """Lazy-loaded Jinja2 environment shared by all email services."""
    global _env
    if _env is None:
        _env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _env


def get_sendgrid_channel() -> SendGridChannel:
    global _channel
    if _channel is None:
        _channel = SendGridChannel()
    return _channel


def _sender_identity(sender: Sender) -> tuple[str, str]:
    if sender == "rdc":
        return settings.rdc_from_email, settings.rdc_from_name
    return settings.from_email, settings.from_name


class EmailService:
    """
    Renders templated emails and sends them through SendGrid.

    Emails to the configured do-not-disturb address are never sent; both
    that case and a missing SendGrid key report a ``skipped`` status.
    """

    def __init__(self, db: Optional[AsyncSession] = None, channel: Optional[SendGridChannel] = None):
        self.db = db
        self.channel = channel or get_sendgrid_channel()
        self._dnd_email: Optional[str] = None
        self._dnd_loaded = False

    def _base_context(self) -> dict[str, Any]:
        return {
            "app_name": settings.app_name,
            "frontend_url": settings.frontend_url,
            "current_year": datetime.now().year,
        }

    def render(self, template_name: str, context: dict[str, Any]) -> tuple[str, str]:
        """
        Render the HTML and plain-text versions of a template.

        Raises:
            TemplateNotFound: If the HTML template doesn't exist.
        """
        env = get_template_env()
        full_context = {**self._base_context(), **context}
        html = env.get_template(f"{template_name}.html").render(**full_context)
        try:
            text = env.get_template(f"{template_name}.txt").render(**full_context)
        except TemplateNotFound:
            logger.warning("plain_text_template_not_found", template=f"{template_name}.txt")
            text = ""
        return html, text

    async def _dnd_address(self) -> Optional[str]:
        if not self._dnd_loaded and self.db is not None:
            system_settings = await SystemSettingsService(self.db).get()
            self._dnd_email = (system_settings.dnd_email or "").strip().lower() or None
            self._dnd_loaded = True
        return self._dnd_email

    async def send_email(
        self,
        to: str,
        subject: str,
        template: str = "notification",
        context: Optional[dict[str, Any]] = None,
        sender: Sender = "default",
        cc: Optional[list[str]] = None,
        to_name: Optional[str] = None,
    ) -> DeliveryStatus:
        """Render ``template`` with ``context`` and send it to ``to``."""
        dnd = await self._dnd_address()
        if dnd and to.strip().lower() == dnd:
            logger.info("email_skipped_dnd", to_email=to, subject=subject[:50])
            return DeliveryStatus(to_email=to, status=DeliveryState.SKIPPED, error_message="Recipient is on DND")

        if not self.channel.is_configured():
            logger.warning("sendgrid_not_configured", to_email=to, template=template)
            return DeliveryStatus(to_email=to, status=DeliveryState.SKIPPED, error_message="SendGrid not configured")

        html, text = self.render(template, {"subject": subject, **(context or {})})
        from_email, from_name = _sender_identity(sender)
        content = EmailContent(
            subject=subject,
            body_html=html,
            body_text=text,
            from_email=from_email,
            from_name=from_name,
            to_email=to,
            to_name=to_name,
            cc=[address for address in (cc or []) if address and address.strip().lower() != dnd],
        )
        status = await self.channel.send(content)
        logger.info("templated_email_processed", to_email=to, template=template, status=status.status.value)
        return status

    async def send_notification(
        self,
        to: str,
        subject: str,
        paragraphs: list[str],
        user_name: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        action_url: Optional[str] = None,
        action_text: Optional[str] = None,
        notes: Optional[str] = None,
        sender: Sender = "default",
        cc: Optional[list[str]] = None,
    ) -> DeliveryStatus:
        """Send the generic notification layout: greeting, paragraphs, detail table, action link."""
        context = {
            "user_name": user_name,
            "paragraphs": paragraphs,
            "details": {label: value for label, value in (details or {}).items() if value not in (None, "")},
            "action_url": action_url,
            "action_text": action_text,
            "notes": notes,
        }
        return await self.send_email(
            to=to,
            subject=subject,
            template="notification",
            context=context,
            sender=sender,
            cc=cc,
            to_name=user_name,
        )


def portal_url(path: str = "") -> str:
    return f"{settings.frontend_url.rstrip('/')}/{path.lstrip('/')}"


__all__ = ["EmailService", "get_sendgrid_channel", "get_template_env", "portal_url"]
