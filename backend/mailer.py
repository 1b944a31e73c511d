# mailer.py — Outbound email for invitations and password resets
import os
import html
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from urllib.parse import urlencode

from fastapi import Request

logger = logging.getLogger("taskboard.mail")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")
SMTP_TIMEOUT_SECONDS = 15


class Mailer:
    """SMTP sender. Never raises: returns False and logs when delivery fails."""

    def __init__(
        self,
        host: str = None,
        port: int = None,
        username: str = None,
        password: str = None,
        from_email: str = None,
        from_name: str = None,
        use_tls: bool = None,
        frontend_url: str = FRONTEND_URL,
    ):
        self.host = host if host is not None else os.getenv("SMTP_HOST", "")
        self.port = port if port is not None else int(os.getenv("SMTP_PORT", "587"))
        self.username = username if username is not None else os.getenv("SMTP_USERNAME", "")
        self.password = password if password is not None else os.getenv("SMTP_PASSWORD", "")
        self.from_email = from_email or os.getenv("SMTP_FROM_EMAIL", "no-reply@taskboard.local")
        self.from_name = from_name or os.getenv("SMTP_FROM_NAME", "Task Board")
        if use_tls is None:
            use_tls = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
        self.use_tls = use_tls
        self.frontend_url = frontend_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    def _send_sync(self, to_address: str, subject: str, html_body: str) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = to_address
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        with smtplib.SMTP(host=self.host, port=self.port, timeout=SMTP_TIMEOUT_SECONDS) as s:
            s.ehlo()
            if self.use_tls:
                s.starttls()
                s.ehlo()
            s.login(self.username, self.password)
            s.send_message(message)

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        if not self.is_configured:
            logger.warning(f"SMTP credentials not configured, email to {to_address} not sent")
            return False
        try:
            await asyncio.to_thread(self._send_sync, to_address, subject, html_body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_address}: {e}")
            return False
        logger.info(f"Email sent to {to_address} ({subject})")
        return True

    # ============================================================
    # TEMPLATES
    # ============================================================

    async def send_team_invitation(self, to_address: str, team_name: str, inviter_name: str) -> bool:
        link = f"{self.frontend_url}/login"
        subject = f"You have been added to {team_name}"
        body = (
            f"<p>{html.escape(inviter_name)} added you to the team "
            f"<strong>{html.escape(team_name)}</strong>.</p>"
            f'<p><a href="{html.escape(link)}">Sign in</a> to see its boards.</p>'
        )
        return await self.send(to_address, subject, body)

    async def send_team_invitation_with_registration(
        self, to_address: str, team_name: str, inviter_name: str, token: str,
    ) -> bool:
        link = f"{self.frontend_url}/accept-invitation?{urlencode({'token': token, 'team': team_name})}"
        subject = f"Invitation to join {team_name}"
        body = (
            f"<p>{html.escape(inviter_name)} invited you to join "
            f"<strong>{html.escape(team_name)}</strong>.</p>"
            f'<p><a href="{html.escape(link)}">Create your account</a> to accept. '
            f"The link expires in 7 days.</p>"
        )
        return await self.send(to_address, subject, body)

    async def send_password_reset(self, to_address: str, token: str) -> bool:
        link = f"{self.frontend_url}/reset-password?{urlencode({'token': token})}"
        subject = "Reset your password"
        body = (
            "<p>We received a request to reset your password.</p>"
            f'<p><a href="{html.escape(link)}">Choose a new password</a>. '
            "The link expires in 24 hours. If you did not ask for this, ignore this email.</p>"
        )
        return await self.send(to_address, subject, body)


def get_mailer(request: Request) -> Mailer:
    """FastAPI dependency: the application's mailer"""
    return request.app.state.mailer
