"""
Email Service

Renders and sends workflow notification emails.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"

SUBJECTS = {
    "draft_submitted": "New content is ready for your review",
    "revision_requested": "Revision requested on your draft",
    "draft_approved": "Your draft was approved",
    "draft_rejected": "Your draft was rejected",
    "draft_published": "Your content is live",
    "idea_reviewed": "Your idea has been reviewed",
}


class EmailService:
    """Service for sending emails with template support"""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )

        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_from = settings.smtp_from

    def render(self, kind: str, context: dict) -> tuple[str, str]:
        """Return (subject, html_body) for a notification kind."""
        template = self.env.get_template(f"{kind}.html")
        subject = SUBJECTS.get(kind, settings.app_name)
        return subject, template.render(app_name=settings.app_name, **context)

    def _send_email(
        self,
        to_email: str | list[str],
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> bool:
        """
        Send an email using SMTP.

        Args:
            to_email: Recipient email address(es)
            subject: Email subject
            html_body: HTML email body
            text_body: Plain text email body (optional)

        Returns:
            bool: True if email sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.smtp_from
            msg["To"] = to_email if isinstance(to_email, str) else ", ".join(to_email)

            if text_body:
                msg.attach(MIMEText(text_body, "plain"))
            msg.attach(MIMEText(html_body, "html"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False

    def send_notification(self, kind: str, to_email: str, context: dict) -> bool:
        subject, html_body = self.render(kind, context)
        return self._send_email(to_email, subject, html_body)
