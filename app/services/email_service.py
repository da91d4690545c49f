"""Email service for account and invitation notifications."""

import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Outcome of a delivery attempt.

    In test mode (no SMTP configured outside production) nothing is sent and
    ``preview_url`` carries the link the email would have contained.
    """

    success: bool
    error: str | None = None
    preview_url: str | None = None
    is_test_mode: bool = False


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self):
        """Initialize email service with SMTP configuration."""
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.from_email = settings.email_from or settings.smtp_user
        self.frontend_url = settings.frontend_url.rstrip("/")

    def _validate_config(self) -> bool:
        """Validate email configuration."""
        return all([self.smtp_host, self.smtp_user, self.smtp_password])

    @property
    def is_test_mode(self) -> bool:
        return not self._validate_config() and not settings.is_production

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
        link: str | None = None,
    ) -> EmailResult:
        """Send an email via SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML content of the email
            text_content: Plain text content (fallback)
            link: The actionable URL inside the email, reported back in test mode

        Returns:
            EmailResult describing the outcome
        """
        if self.is_test_mode:
            logger.info("Email test mode, not sending '%s' to %s: %s", subject, to_email, link)
            return EmailResult(success=True, preview_url=link, is_test_mode=True)

        if not self._validate_config():
            logger.error("Cannot send email - configuration invalid")
            return EmailResult(success=False, error="Email service is not configured")

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.from_email
            msg["To"] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, "plain"))
            msg.attach(MIMEText(html_content, "html"))

            logger.info("Sending email to %s with subject: %s", to_email, subject)

            self._deliver(msg)

            logger.info("Email sent successfully to %s", to_email)
            return EmailResult(success=True)

        except smtplib.SMTPAuthenticationError as e:
            logger.error("SMTP authentication failed: %s", e)
            return EmailResult(success=False, error="SMTP authentication failed")
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP error sending email to %s: %s", to_email, e)
            return EmailResult(success=False, error=str(e))

    def send_verification_email(self, to_email: str, full_name: str, token: str) -> EmailResult:
        url = f"{self.frontend_url}/verify-email?token={token}"
        return self.send_email(
            to_email,
            "Verify your email address",
            self._render(
                f"Welcome, {full_name}!",
                "Please confirm your email address to start collaborating. "
                f"This link expires in {settings.email_verification_expire_hours} hours.",
                url,
                "Verify email",
            ),
            f"Hi {full_name},\n\nVerify your email address: {url}\n",
            link=url,
        )

    def send_password_reset_email(self, to_email: str, full_name: str, token: str) -> EmailResult:
        url = f"{self.frontend_url}/reset-password?token={token}"
        return self.send_email(
            to_email,
            "Reset your password",
            self._render(
                f"Hi {full_name},",
                "We received a request to reset your password. "
                f"This link expires in {settings.password_reset_expire_minutes} minutes. "
                "If you did not request it you can ignore this email.",
                url,
                "Reset password",
            ),
            f"Hi {full_name},\n\nReset your password: {url}\n",
            link=url,
        )

    def send_invitation_email(
        self,
        to_email: str,
        inviter_name: str,
        project_name: str,
        role: str,
        token: str,
    ) -> EmailResult:
        url = f"{self.frontend_url}/invitations/{token}"
        return self.send_email(
            to_email,
            f"{inviter_name} invited you to {project_name}",
            self._render(
                "You have been invited!",
                f"{inviter_name} invited you to join the project {project_name} as {role}. "
                f"The invitation expires in {settings.invitation_expire_days} days.",
                url,
                "View invitation",
            ),
            f"{inviter_name} invited you to join {project_name} as {role}.\n\nAccept: {url}\n",
            link=url,
        )

    @retry(
        retry=retry_if_exception_type(
            (
                smtplib.SMTPServerDisconnected,
                smtplib.SMTPConnectError,
                ConnectionError,
                TimeoutError,
            )
        ),
        stop=stop_after_attempt(settings.smtp_max_retry_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _deliver(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)

    def _render(self, heading: str, body: str, url: str, button: str) -> str:
        return f"""
        <div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif;">
            <h1 style="color: #1f2937;">{html.escape(heading)}</h1>
            <p style="color: #374151; line-height: 1.6;">{html.escape(body)}</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{html.escape(url)}"
                   style="background: #3B82F6; color: white; padding: 12px 30px;
                          border-radius: 8px; text-decoration: none;">
                    {html.escape(button)}
                </a>
            </p>
            <p style="color: #9ca3af; font-size: 13px;">{html.escape(url)}</p>
        </div>
        """


# Create singleton instance
email_service = EmailService()
