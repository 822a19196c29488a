import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import get_settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def render_password_reset(reset_url: str, name: Optional[str] = None) -> str:
    template = _env.get_template("email/password_reset.html")
    return template.render(reset_url=reset_url, name=name)


class Mailer:
    """Sends over SMTP when a host is configured, otherwise logs the message."""

    def __init__(self) -> None:
        self.settings = get_settings()

    def send(self, to: str, subject: str, html: str) -> None:
        if not self.settings.smtp_host:
            logger.info(f"mail_skipped: to={to} subject={subject!r} reason=no_smtp_host")
            return

        msg = EmailMessage()
        msg["From"] = self.settings.mail_from
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as smtp:
            smtp.starttls()
            if self.settings.smtp_user:
                smtp.login(self.settings.smtp_user, self.settings.smtp_password or "")
            smtp.send_message(msg)
        logger.info(f"mail_sent: to={to} subject={subject!r}")

    def send_password_reset(
        self, to: str, reset_url: str, name: Optional[str] = None
    ) -> None:
        html = render_password_reset(reset_url, name)
        self.send(to, "Password reset", html)
