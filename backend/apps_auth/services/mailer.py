import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from apps_auth.core.config import settings
from .background_tasks import background_manager

logger = logging.getLogger(__name__)


class Mailer:
    """SMTP delivery run in a worker thread; failures are logged, never raised"""

    def __init__(self, enabled: Optional[bool] = None):
        self.enabled = settings.MAIL_ENABLED if enabled is None else enabled

    def _build_message(self, to: str, subject: str, html: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((settings.FROM_NAME, settings.FROM_EMAIL))
        msg["To"] = to
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def _deliver(self, msg: MIMEMultipart):
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            if settings.SMTP_STARTTLS:
                server.starttls(context=ssl.create_default_context())
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)

    async def send(self, to: str, subject: str, html: str) -> bool:
        """Send one message; returns whether it was handed to the SMTP server"""
        if not self.enabled:
            logger.info(f"Mail disabled, not sending '{subject}' to {to}")
            return False
        try:
            await asyncio.to_thread(self._deliver, self._build_message(to, subject, html))
            logger.info(f"Mail sent to {to}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Mail sending to {to} failed: {e}")
            return False

    def send_in_background(self, to: str, subject: str, html: str):
        """Fire-and-forget send"""
        background_manager.spawn(self.send(to, subject, html), name=f"mail:{subject}")


# Global instance
_mailer = None


def get_mailer() -> Mailer:
    """Get global mailer instance"""
    global _mailer
    if _mailer is None:
        _mailer = Mailer()
    return _mailer
