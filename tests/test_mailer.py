import asyncio

import aiosmtplib

from portal import mailer as mailer_module
from portal.mailer import Mailer, account_email, decision_email, otp_email


def _mailer(host: str = 'smtp.example.com') -> Mailer:
    return Mailer(
        host=host,
        port=587,
        username='portal',
        password='secret',
        sender='portal@university.com',
    )


def test_send_is_skipped_when_smtp_not_configured(monkeypatch) -> None:
    calls = []

    async def fake_send(*args, **kwargs):
        calls.append(args)

    monkeypatch.setattr(mailer_module.aiosmtplib, 'send', fake_send)

    assert asyncio.run(_mailer(host='').send('a@b.com', 'Hi', '<p>Hi</p>')) is False
    assert calls == []


def test_send_delivers_message(monkeypatch) -> None:
    captured = {}

    async def fake_send(message, **kwargs):
        captured['message'] = message
        captured['kwargs'] = kwargs

    monkeypatch.setattr(mailer_module.aiosmtplib, 'send', fake_send)

    assert asyncio.run(_mailer().send('student@university.com', 'Hello', '<p>Hello</p>')) is True
    assert captured['message']['To'] == 'student@university.com'
    assert captured['message']['From'] == 'portal@university.com'
    assert captured['kwargs']['hostname'] == 'smtp.example.com'
    assert captured['kwargs']['start_tls'] is True


def test_send_failure_is_logged_and_swallowed(monkeypatch, caplog) -> None:
    async def failing_send(*args, **kwargs):
        raise aiosmtplib.SMTPException('connection refused')

    monkeypatch.setattr(mailer_module.aiosmtplib, 'send', failing_send)

    assert asyncio.run(_mailer().send('student@university.com', 'Hello', '<p>Hello</p>')) is False
    assert 'Failed to send email' in caplog.text


def test_account_email_escapes_values() -> None:
    subject, html = account_email('<Sam>', 'sam@university.com', 'pw', created=True)

    assert subject == 'Your University Portal account has been created'
    assert '&lt;Sam&gt;' in html
    assert '/login' in html


def test_otp_email_mentions_validity() -> None:
    subject, html = otp_email('1234', 60)

    assert subject == 'Your Password Reset OTP'
    assert '1234' in html
    assert '1 minute(s)' in html


def test_decision_email_includes_remarks_only_when_present() -> None:
    _, approved = decision_email('Sam', 'Thesis A', 'Approved', '')
    _, rejected = decision_email('Sam', 'Thesis A', 'Rejected', 'Missing references')

    assert 'has been approved' in approved
    assert 'Remarks' not in approved
    assert 'Missing references' in rejected
