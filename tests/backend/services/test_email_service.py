import smtplib

import pytest

from backend.core import config
from backend.services import email_service
from backend.services.email_service import (
    ConsoleEmailSender,
    EmailNotConfiguredError,
    EmailSendError,
    SmtpEmailSender,
    get_email_sender,
)


class _FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None) -> None:
        self.host = host
        self.port = port
        self.calls = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.calls.append('quit')
        return False

    def ehlo(self):
        self.calls.append('ehlo')

    def starttls(self):
        self.calls.append('starttls')

    def login(self, username, password):
        self.calls.append(('login', username))

    def sendmail(self, from_email, to_emails, message):
        self.calls.append(('sendmail', from_email, tuple(to_emails)))


class _RefusingSMTP(_FakeSMTP):
    def sendmail(self, from_email, to_emails, message):
        raise smtplib.SMTPRecipientsRefused({to_emails[0]: (550, b'no such user')})


def test_smtp_sender_uses_starttls_and_login(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeSMTP.instances = []
    monkeypatch.setattr(email_service.smtplib, 'SMTP', _FakeSMTP)
    sender = SmtpEmailSender(host='smtp.test', port=587, from_email='noreply@test', username='bot', password='pw')

    sender.send('a@b.com', 'Password Reset', '<p>hi</p>')

    smtp = _FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ('smtp.test', 587)
    assert smtp.calls == [
        'ehlo',
        'starttls',
        'ehlo',
        ('login', 'bot'),
        ('sendmail', 'noreply@test', ('a@b.com',)),
        'quit',
    ]


def test_smtp_sender_wraps_transport_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(email_service.smtplib, 'SMTP', _RefusingSMTP)
    sender = SmtpEmailSender(host='smtp.test', port=25, from_email='noreply@test', use_tls=False)

    with pytest.raises(EmailSendError):
        sender.send('a@b.com', 'Password Reset', '<p>hi</p>')


def test_smtp_sender_requires_host() -> None:
    with pytest.raises(EmailNotConfiguredError):
        SmtpEmailSender(host='', port=587, from_email='noreply@test').send('a@b.com', 's', 'b')


def test_get_email_sender_follows_email_enabled_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'EMAIL_ENABLED', False)
    assert isinstance(get_email_sender(), ConsoleEmailSender)

    monkeypatch.setattr(config, 'EMAIL_ENABLED', True)
    monkeypatch.setattr(config, 'SMTP_HOST', 'smtp.test')
    sender = get_email_sender()
    assert isinstance(sender, SmtpEmailSender)
    assert sender.host == 'smtp.test'
