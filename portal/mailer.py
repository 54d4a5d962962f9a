"""Outbound email.

Delivery is best effort: a failed send is logged and reported as ``False``
and never raised, so a request that schedules an email cannot fail because
of it. Handlers schedule sends through ``BackgroundTasks``.
"""

import logging
from email.message import EmailMessage
from html import escape

import aiosmtplib
from fastapi import Request

from portal.core import config

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        start_tls: bool = True,
        timeout: float = 10,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.start_tls = start_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls) -> 'Mailer':
        return cls(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            sender=config.EMAIL_FROM,
            start_tls=config.SMTP_START_TLS,
            timeout=config.SMTP_TIMEOUT_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.sender)

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        message.set_content('This message requires an HTML capable mail client.')
        message.add_alternative(html, subtype='html')
        return message

    async def send(self, to: str, subject: str, html: str) -> bool:
        if not self.is_configured:
            logger.warning('SMTP is not configured; skipping email "%s" to %s', subject, to)
            return False

        try:
            await aiosmtplib.send(
                self.build_message(to, subject, html),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.start_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception('Failed to send email "%s" to %s', subject, to)
            return False

        logger.info('Sent email "%s" to %s', subject, to)
        return True


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def account_email(name: str, email: str, password: str, created: bool = True) -> tuple[str, str]:
    login_url = f"{config.APP_URL.rstrip('/')}/login"
    subject = (
        'Your University Portal account has been created'
        if created
        else 'Your University Portal account was updated'
    )
    html = (
        f'<p>Hello {escape(name)},</p>'
        f'<p>Email: {escape(email)}</p>'
        f'<p>Password: {escape(password) if password else "(unchanged)"}</p>'
        f'<p><a href="{escape(login_url)}">Login</a></p>'
    )
    return subject, html


def otp_email(otp: str, expires_seconds: int) -> tuple[str, str]:
    if expires_seconds % 60 == 0:
        validity = f'{expires_seconds // 60} minute(s)'
    else:
        validity = f'{expires_seconds} seconds'
    html = (
        '<div style="font-family: Arial, sans-serif; text-align: center;">'
        '<h2>Password Reset Request</h2>'
        f'<p>Use the following code to reset your password. It is valid for <b>{validity}</b>.</p>'
        f'<h1 style="letter-spacing: 5px;">{escape(otp)}</h1>'
        '</div>'
    )
    return 'Your Password Reset OTP', html


def decision_email(student_name: str, title: str, verdict: str, remarks: str) -> tuple[str, str]:
    html = f'<p>Hello {escape(student_name)},</p><p>Your assignment "{escape(title)}" has been {verdict.lower()}.</p>'
    if remarks:
        html += f'<p>Remarks: {escape(remarks)}</p>'
    return f'Assignment {verdict}', html
