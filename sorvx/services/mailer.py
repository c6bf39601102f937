"""Password reset notification: SMTP delivery, or a log line in development."""
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from jinja2 import Environment, FileSystemLoader, select_autoescape

from sorvx.core.config import BASE_DIR, Settings, get_settings

logger = logging.getLogger(__name__)

templates = Environment(
    loader=FileSystemLoader(BASE_DIR / "templates"),
    autoescape=select_autoescape(["html"]),
)


class NotificationSender(Protocol):
    async def send(self, email: str, reset_link: str) -> bool:
        ...


def render_reset_email(app_name: str, reset_link: str, expires_in: str = "1 hour") -> tuple[str, str]:
    """Return (text, html) bodies of the password reset email."""
    context = {"app_name": app_name, "reset_link": reset_link, "expires_in": expires_in}
    text = templates.get_template("email/password_reset.txt").render(context)
    html = templates.get_template("email/password_reset.html").render(context)
    return text, html


class SmtpNotificationSender:
    """Sends the reset link over SMTP. Never retries; failures return False."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def build_message(self, email: str, reset_link: str) -> EmailMessage:
        s = self.settings
        text, html = render_reset_email(s.app_name, reset_link)
        msg = EmailMessage()
        msg["From"] = f'"{s.app_name}" <{s.smtp_from_email or s.smtp_user}>'
        msg["To"] = email
        msg["Subject"] = f"Reset Your {s.app_name} Password"
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        s = self.settings
        smtp_cls = smtplib.SMTP_SSL if s.smtp_secure else smtplib.SMTP
        with smtp_cls(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout) as smtp:
            if not s.smtp_secure:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            if s.smtp_user:
                smtp.login(s.smtp_user, s.smtp_password or "")
            smtp.send_message(msg)

    async def send(self, email: str, reset_link: str) -> bool:
        msg = self.build_message(email, reset_link)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("Error sending password reset email via %s:%s", self.settings.smtp_host, self.settings.smtp_port)
            return False
        logger.info("Password reset email sent")
        return True


class LogNotificationSender:
    """Development sender: no SMTP configured, the link only goes to the log."""

    async def send(self, email: str, reset_link: str) -> bool:
        logger.warning("SMTP not configured; password reset link: %s", reset_link)
        return True


def get_notification_sender() -> NotificationSender:
    settings = get_settings()
    if settings.smtp_host:
        return SmtpNotificationSender(settings)
    return LogNotificationSender()
