"""HTTP-triggered email relay with per-client rate limiting.

This package exposes a single ``POST /send-email`` endpoint that accepts an
authenticated JSON request and forwards the message to an upstream SMTP
server. It includes:

- Shared-secret authentication through the ``X-API-Key`` header
- A per-client sliding-window rate limiter (10 requests per 60 seconds)
- Sender/recipient defaults taken from the configuration file
- SMTP delivery over implicit TLS or STARTTLS via aiosmtplib
- Prometheus metrics and a FastAPI REST surface

Example:
    Building the application from a configuration file::

        from mail_relay.config_loader import load_config
        from mail_relay.relay import EmailRelay
        from mail_relay.api import create_app

        config = load_config("config.ini")
        app = create_app(EmailRelay.from_config(config))
"""

__version__ = "0.1.0"
