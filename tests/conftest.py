import pytest

from mail_relay.config_loader import AppConfig, EmailConfig, ServerConfig
from tests.helpers import API_KEY, DummyTransport, FakeClock


@pytest.fixture
def app_config():
    return AppConfig(
        email=EmailConfig(
            smtp_server="smtp.local",
            smtp_port=465,
            email_account="relay@example.com",
            email_password="smtp-pass",
            email_from="relay@example.com",
            email_to="ops@example.com",
            sender_name="Relay",
        ),
        server=ServerConfig(api_key=API_KEY),
    )


@pytest.fixture
def transport():
    return DummyTransport()


@pytest.fixture
def clock():
    return FakeClock()
