import asyncio

import aiosmtplib
import pytest

from mail_relay.errors import ConfigurationError, TransportError
from mail_relay.message import OutboundMessage
from mail_relay.transport import (
    SmtpTransport,
    TransportSecurityMode,
    security_mode_for_port,
)


MESSAGE = OutboundMessage(
    from_address="relay@example.com",
    sender_name="Relay",
    to_address="ops@example.com",
    subject="Hello",
    body="Body",
)


class DummySMTP:
    def __init__(self, hostname, port, timeout=None, use_tls=False, start_tls=None):
        self.hostname = hostname
        self.port = port
        self.timeout = timeout
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.login_credentials = None
        self.sent = []
        self.closed = False
        self.fail_with = None
        self.delay = 0.0
        self.send_delay = 0.0
        self.quit_called = False

    async def connect(self):
        if self.delay:
            await asyncio.sleep(self.delay)

    async def login(self, user, password):
        self.login_credentials = (user, password)

    async def send_message(self, msg, sender=None, recipients=None):
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((msg, sender, recipients))
        return {}, "OK"

    async def quit(self):
        self.quit_called = True
        self.closed = True

    def close(self):
        self.closed = True


@pytest.fixture
def smtp_factory(monkeypatch):
    created = []
    behaviour = {}

    def factory(**kwargs):
        smtp = DummySMTP(**kwargs)
        for key, value in behaviour.items():
            setattr(smtp, key, value)
        created.append(smtp)
        return smtp

    monkeypatch.setattr("mail_relay.transport.aiosmtplib.SMTP", factory)
    return created, behaviour


@pytest.mark.parametrize(
    "port, mode",
    [
        (465, TransportSecurityMode.IMPLICIT_TLS),
        (587, TransportSecurityMode.REQUIRED_STARTTLS),
        (25, TransportSecurityMode.OPPORTUNISTIC),
        (2525, TransportSecurityMode.OPPORTUNISTIC),
    ],
)
def test_security_mode_for_port(port, mode):
    assert security_mode_for_port(port) is mode


def test_security_mode_client_options():
    assert TransportSecurityMode.IMPLICIT_TLS.client_options() == {"use_tls": True, "start_tls": False}
    assert TransportSecurityMode.REQUIRED_STARTTLS.client_options() == {"use_tls": False, "start_tls": True}
    assert TransportSecurityMode.OPPORTUNISTIC.client_options() == {"use_tls": False, "start_tls": None}


@pytest.mark.asyncio
async def test_send_logs_in_and_delivers(smtp_factory):
    created, _ = smtp_factory
    transport = SmtpTransport("smtp.local", 587, "user", "pass")

    await transport.send(MESSAGE)

    assert len(created) == 1
    smtp = created[0]
    assert (smtp.use_tls, smtp.start_tls) == (False, True)
    assert smtp.login_credentials == ("user", "pass")
    msg, sender, recipients = smtp.sent[0]
    assert sender == "relay@example.com"
    assert recipients == ["ops@example.com"]
    assert msg["From"] == "Relay <relay@example.com>"
    assert smtp.closed is True


@pytest.mark.asyncio
async def test_send_skips_login_without_credentials(smtp_factory):
    created, _ = smtp_factory
    await SmtpTransport("smtp.local", 25).send(MESSAGE)
    assert created[0].login_credentials is None


@pytest.mark.asyncio
async def test_smtp_error_becomes_transport_error(smtp_factory):
    created, behaviour = smtp_factory
    behaviour["fail_with"] = aiosmtplib.SMTPRecipientsRefused([])
    transport = SmtpTransport("smtp.local", 465, "user", "pass")

    with pytest.raises(TransportError) as excinfo:
        await transport.send(MESSAGE)

    assert excinfo.value.message.startswith("Failed to send email:")
    assert len(created) == 1
    assert created[0].closed is True


@pytest.mark.asyncio
async def test_socket_error_becomes_transport_error(smtp_factory):
    _, behaviour = smtp_factory
    behaviour["fail_with"] = ConnectionResetError("reset by peer")

    with pytest.raises(TransportError) as excinfo:
        await SmtpTransport("smtp.local", 465).send(MESSAGE)
    assert "reset by peer" in excinfo.value.detail


@pytest.mark.asyncio
async def test_send_timeout_becomes_transport_error(smtp_factory):
    _, behaviour = smtp_factory
    behaviour["delay"] = 1.0
    transport = SmtpTransport("smtp.local", 465, send_timeout=0.05)

    with pytest.raises(TransportError) as excinfo:
        await transport.send(MESSAGE)
    assert "timed out" in excinfo.value.detail


@pytest.mark.asyncio
async def test_timeout_during_send_closes_without_quit(smtp_factory):
    created, behaviour = smtp_factory
    behaviour["send_delay"] = 1.0
    transport = SmtpTransport("smtp.local", 587, "user", "pass", send_timeout=0.05)

    with pytest.raises(TransportError):
        await transport.send(MESSAGE)

    assert created[0].closed is True
    assert created[0].quit_called is False


@pytest.mark.asyncio
async def test_verify_connects_and_quits(smtp_factory):
    created, _ = smtp_factory
    await SmtpTransport("smtp.local", 465, "user", "pass").verify()
    assert created[0].login_credentials == ("user", "pass")
    assert created[0].closed is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"host": "", "port": 465},
        {"host": "smtp.local", "port": 0},
        {"host": "smtp.local", "port": 70000},
        {"host": "smtp.local", "port": 465, "send_timeout": 0},
    ],
)
def test_invalid_settings_raise_configuration_error(kwargs):
    with pytest.raises(ConfigurationError):
        SmtpTransport(**kwargs)


def test_from_config(app_config):
    transport = SmtpTransport.from_config(app_config.email)
    assert transport.host == "smtp.local"
    assert transport.security_mode is TransportSecurityMode.IMPLICIT_TLS
    assert transport.user == "relay@example.com"
    assert transport.summary()["auth"] is True
