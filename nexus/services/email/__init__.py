from __future__ import annotations

import html
import smtplib
import ssl
from email.message import EmailMessage

from nexus.utils.config import Settings, settings
from nexus.utils.errors import EmailDeliveryFailed
from nexus.utils.logging import get_logger


logger = get_logger(__name__)


def _layout(body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"{body}"
        '<hr style="margin: 30px 0;">'
        '<p style="color: #666; font-size: 12px;">This is an automated message. Please do not reply to this email.</p>'
        "</div>"
    )


class Mailer:
    """SMTP delivery for one-time codes and notifications.

    Without an SMTP host, debug mode logs the text body instead of sending;
    otherwise delivery fails.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or settings

    @property
    def is_configured(self) -> bool:
        return bool(self.config.smtp_host)

    def send(self, to: str, subject: str, html_body: str, text: str | None = None) -> None:
        if not self.is_configured:
            if not self.config.debug:
                logger.error("email_not_configured", subject=subject)
                raise EmailDeliveryFailed()
            logger.info("email_dev_mode", subject=subject, body_preview=(text or html_body)[:200])
            return

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.config.mail_from_name} <{self.config.mail_from}>"
        msg["To"] = to
        msg.set_content(text or subject)
        msg.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=10) as smtp:
                if self.config.smtp_use_tls:
                    smtp.starttls(context=ssl.create_default_context())
                if self.config.smtp_user and self.config.smtp_password:
                    smtp.login(self.config.smtp_user, self.config.smtp_password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("email_send_failed", subject=subject, error=str(exc))
            raise EmailDeliveryFailed()
        logger.info("email_sent", subject=subject)

    def send_mfa_otp(self, to: str, name: str, otp: str) -> None:
        body = (
            '<h2 style="color: #3498db;">Multi-Factor Authentication (MFA) OTP</h2>'
            f"<p>Hello {html.escape(name)},</p>"
            "<p>Your one-time code is:</p>"
            f'<div style="font-size: 2em; font-weight: bold; margin: 20px 0;">{otp}</div>'
            f"<p>This code will expire in {self.config.otp_expires_minutes} minutes.</p>"
            "<p>If you did not request this, please ignore this email.</p>"
        )
        text = f"Your one-time code is {otp}. It expires in {self.config.otp_expires_minutes} minutes."
        self.send(to, f"Your {self.config.mail_from_name} MFA OTP", _layout(body), text)

    def send_verification_otp(self, to: str, name: str, otp: str) -> None:
        body = (
            '<h2 style="color: #3498db;">Verify your email address</h2>'
            f"<p>Hello {html.escape(name)},</p>"
            "<p>Use this code to confirm your email address:</p>"
            f'<div style="font-size: 2em; font-weight: bold; margin: 20px 0;">{otp}</div>'
            f"<p>This code will expire in {self.config.otp_expires_minutes} minutes.</p>"
        )
        text = f"Your verification code is {otp}. It expires in {self.config.otp_expires_minutes} minutes."
        self.send(to, f"Verify your {self.config.mail_from_name} account", _layout(body), text)

    def send_project_assignment(self, to: str, name: str, project_name: str, project_description: str) -> None:
        """Notification only: failures are logged and never raised."""
        body = (
            '<h2 style="color: #3498db;">New Project Assignment</h2>'
            f"<p>Hello {html.escape(name)},</p>"
            "<p>You have been assigned to a new project:</p>"
            '<div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">'
            f'<h3 style="color: #2c3e50; margin-top: 0;">{html.escape(project_name)}</h3>'
            f"<p>{html.escape(project_description)}</p>"
            "</div>"
            f'<p><a href="{self.config.frontend_url}/dashboard">View Dashboard</a></p>'
        )
        try:
            self.send(to, f"New Project Assignment - {project_name}", _layout(body))
        except EmailDeliveryFailed:
            logger.warning("assignment_email_failed", project=project_name)


def get_mailer() -> Mailer:
    return Mailer()
