"""Email integration for sending transactional emails through SendGrid."""

from dataclasses import dataclass
from typing import Optional
import logging

import httpx

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Outcome of a send attempt."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailService:
    """Email service sending through the SendGrid v3 mail API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize email service.

        Args:
            api_key: SendGrid API key; sending is disabled without one
            from_email: Default sender email
            api_url: Mail send endpoint
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used in tests)
        """
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.from_email = from_email or settings.from_email
        self.api_url = api_url or settings.sendgrid_api_url
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send_email(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> EmailResult:
        """
        Send an email. Never raises.

        Args:
            to: Recipient email address
            subject: Email subject
            text: Plain-text body
            html: Optional HTML body

        Returns:
            EmailResult with the provider message id on success
        """
        if not self.enabled:
            logger.warning(f"Email sending disabled, dropping email to {to}")
            return EmailResult(success=False, error="Email sending is not configured")

        content = [{"type": "text/plain", "value": text}]
        if html:
            content.append({"type": "text/html", "value": html})
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": content,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return EmailResult(success=False, error=str(e))

        message_id = response.headers.get("X-Message-Id")
        logger.info(f"Email sent to {to}")
        return EmailResult(success=True, message_id=message_id)


class EmailTemplates:
    """Pre-configured email templates."""

    @staticmethod
    def team_invitation(
        first_name: str,
        company_name: str,
        role: str,
        invitation_url: str,
        ttl_days: int,
    ) -> dict:
        """Team invitation email template."""
        role_label = role.replace("_", " ").title()
        return {
            "subject": f"You're invited to join {company_name}",
            "text": (
                f"Hi {first_name},\n\n"
                f"You have been invited to join {company_name} as {role_label}.\n"
                f"Accept the invitation and set your password here: {invitation_url}\n\n"
                f"This invitation expires in {ttl_days} days."
            ),
            "html": f"""
                <html>
                <body>
                    <h2>Hi {first_name},</h2>
                    <p>You have been invited to join <strong>{company_name}</strong>
                    as {role_label}.</p>
                    <p><a href="{invitation_url}">Accept invitation</a></p>
                    <p>This invitation expires in {ttl_days} days.</p>
                </body>
                </html>
            """,
        }
