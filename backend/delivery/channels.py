"""
SendGrid email channel.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Category, Cc, Content, Email, Mail, To

from backend.core.config import settings
from backend.delivery.models import DeliveryState, DeliveryStatus, EmailContent


class SendGridChannel:
    """
    SendGrid email delivery channel.

    Features:
    - Lazy client creation from ``settings.sendgrid_api_key``
    - Retry with backoff on rate limiting and server errors
    - Blocking API calls run in a worker thread
    """

    MAX_RETRIES: int = 3
    RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)

    def __init__(self):
        self._client: Optional[SendGridAPIClient] = None
        self.logger = structlog.get_logger().bind(channel="sendgrid")

    @property
    def client(self) -> SendGridAPIClient:
        """Lazy-loaded SendGrid client."""
        if self._client is None:
            if not settings.sendgrid_api_key:
                raise ValueError("SendGrid API key not configured")
            self._client = SendGridAPIClient(api_key=settings.sendgrid_api_key)
        return self._client

    def is_configured(self) -> bool:
        return bool(settings.sendgrid_api_key)

    def _build_message(self, content: EmailContent) -> Mail:
        message = Mail()
        message.from_email = Email(content.from_email, content.from_name)
        message.subject = content.subject
        message.add_to(To(content.to_email, content.to_name))
        for address in content.cc:
            message.add_cc(Cc(address))

        # Plain text first for proper fallback
        message.add_content(Content("text/plain", content.body_text))
        message.add_content(Content("text/html", content.body_html))
        message.category = Category(content.category)

        if content.reply_to:
            message.reply_to = Email(content.reply_to)
        return message

    def _is_retryable_error(self, exception: Exception) -> bool:
        """Rate limiting, server errors and connection problems are worth retrying."""
        status_code = getattr(exception, "status_code", None)
        if isinstance(status_code, int):
            return status_code == 429 or status_code >= 500

        error_str = str(exception).lower()
        return any(pattern in error_str for pattern in ("timeout", "connection", "rate limit"))

    def _send_sync(self, message: Mail) -> Any:
        return self.client.send(message)

    async def send(self, content: EmailContent) -> DeliveryStatus:
        """
        Send an email with retry logic.

        Provider failures are reported in the returned status rather than
        raised, so one bad recipient never aborts a fan-out.
        """
        status = DeliveryStatus(to_email=content.to_email)

        try:
            message = self._build_message(content)
        except (TypeError, ValueError) as e:
            status.status = DeliveryState.FAILED
            status.error_message = f"Failed to build message: {e}"
            self.logger.error("email_build_failed", to=content.to_email, error=str(e))
            return status

        last_exception: Optional[Exception] = None

        for attempt in range(self.MAX_RETRIES):
            try:
                response = await asyncio.to_thread(self._send_sync, message)

                status.status = DeliveryState.SENT
                status.sent_at = datetime.now(timezone.utc)
                status.provider_message_id = response.headers.get("X-Message-Id")
                status.retry_count = attempt

                self.logger.info(
                    "email_sent",
                    to=content.to_email,
                    subject=content.subject[:50],
                    status_code=response.status_code,
                    attempt=attempt + 1,
                )
                return status

            except Exception as e:
                last_exception = e
                status.retry_count = attempt + 1

                self.logger.warning(
                    "email_send_attempt_failed",
                    to=content.to_email,
                    error=str(e),
                    attempt=attempt + 1,
                    max_retries=self.MAX_RETRIES,
                )

                if attempt < self.MAX_RETRIES - 1 and self._is_retryable_error(e):
                    await asyncio.sleep(self.RETRY_DELAYS[attempt])
                else:
                    break

        status.status = DeliveryState.FAILED
        status.error_message = str(last_exception) if last_exception else "Unknown error"
        self.logger.error(
            "email_send_failed",
            to=content.to_email,
            error=status.error_message,
            total_attempts=status.retry_count,
        )
        return status
