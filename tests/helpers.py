"""Shared test doubles for the mail relay tests."""

from mail_relay.errors import TransportError

API_KEY = "secret-key"


class DummyTransport:
    """Records every message and optionally fails like a broken SMTP server."""

    def __init__(self, error: str | None = None):
        self.sent = []
        self.error = error

    async def send(self, message):
        self.sent.append(message)
        if self.error is not None:
            raise TransportError(self.error)


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
