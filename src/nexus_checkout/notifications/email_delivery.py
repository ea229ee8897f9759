"""Transactional email delivery — Resend / SendGrid integration."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class EmailSender:
    """Sends transactional emails.

    Supports Resend and SendGrid; "console" logs the message and reports
    success, which is what local development uses. With no provider
    configured every send is logged and reported as failed.

    When ``test_to`` is set every message goes there instead of the real
    recipient.
    """

    def __init__(
        self,
        provider: str = "",
        api_key: str = "",
        from_email: str = "contato@nexusautomacoes.com.br",
        from_name: str = "Nexus Automações",
        reply_to: str = "",
        test_to: str = "",
        timeout: float = 15.0,
    ):
        self.provider = provider.lower()  # "resend", "sendgrid" or "console"
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.reply_to = reply_to
        self.test_to = test_to
        self.timeout = timeout

    @property
    def test_mode(self) -> bool:
        return bool(self.test_to)

    async def send(self, to: str, subject: str, html: str) -> bool:
        """Send one email; returns False instead of raising on any failure."""
        recipient = self.test_to or to
        if self.test_to:
            logger.warning("[TEST MODE] Sending email to %s instead of %s", self.test_to, to)

        if self.provider == "resend":
            return await self._send_resend(recipient, subject, html)
        elif self.provider == "sendgrid":
            return await self._send_sendgrid(recipient, subject, html)
        elif self.provider == "console":
            logger.info("Email to %s: %s\n%s", recipient, subject, html)
            return True
        else:
            logger.info("No email provider configured; dropping email to %s: %s", recipient, subject)
            return False

    async def _send_resend(self, to: str, subject: str, html: str) -> bool:
        """Send via Resend API."""
        payload = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                if resp.status_code in (200, 201):
                    logger.info("Resend email sent to %s", to)
                    return True
                logger.warning("Resend error: %s %s", resp.status_code, resp.text)
                return False
        except Exception:
            logger.exception("Resend send failed")
            return False

    async def _send_sendgrid(self, to: str, subject: str, html: str) -> bool:
        """Send via SendGrid v3 API."""
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }
        if self.reply_to:
            payload["reply_to"] = {"email": self.reply_to}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    "https://api.sendgrid.com/v3/mail/send",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                if resp.status_code in (200, 202):
                    logger.info("SendGrid email sent to %s", to)
                    return True
                logger.warning("SendGrid error: %s %s", resp.status_code, resp.text)
                return False
        except Exception:
            logger.exception("SendGrid send failed")
            return False


def build_email_sender(settings) -> Optional[EmailSender]:
    """EmailSender from settings, or None when no provider is configured."""
    if not settings.email_provider:
        return None
    return EmailSender(
        provider=settings.email_provider,
        api_key=settings.email_api_key,
        from_email=settings.email_from,
        from_name=settings.email_from_name,
        reply_to=settings.email_reply_to,
        test_to=settings.email_test_to,
        timeout=settings.http_timeout_seconds,
    )
