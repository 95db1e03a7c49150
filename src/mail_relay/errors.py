# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error taxonomy for the mail relay.

Request-scoped errors carry a machine-readable ``code`` and the HTTP
``status_code`` they map to. They are raised by the pipeline steps and
caught at the :class:`~mail_relay.relay.EmailRelay` boundary, never
propagated to the ASGI server.

``ConfigurationError`` is the only startup-time error; it is fatal.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors that end a single request."""

    code = "relay_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingCredentialError(RelayError):
    """Raised when the request carries no ``X-API-Key`` header."""

    code = "missing_credential"
    status_code = 401

    def __init__(self, message: str = "Missing API key"):
        super().__init__(message)


class InvalidCredentialError(RelayError):
    """Raised when the presented API key does not match the configured one."""

    code = "invalid_credential"
    status_code = 401

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message)


class RateLimitedError(RelayError):
    """Raised when the client identity exhausted its request window."""

    code = "rate_limited"
    status_code = 429

    def __init__(self, identity: str, message: str = "Rate limit exceeded"):
        super().__init__(message)
        self.identity = identity


class AddressFormatError(RelayError):
    """Raised when a sender or recipient address fails syntax validation."""

    code = "invalid_address"
    status_code = 400

    def __init__(self, field: str, value: str, reason: str = "malformed address"):
        super().__init__(f"Invalid email address: {field}={value!r} ({reason})")
        self.field = field
        self.value = value


class InvalidMessageError(RelayError):
    """Raised when the subject cannot be carried in a mail header."""

    code = "invalid_message"
    status_code = 400

    def __init__(self, reason: str):
        super().__init__(f"Invalid message: {reason}")


class TransportError(RelayError):
    """Raised when the SMTP transport fails to deliver a message."""

    code = "transport_failure"
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(f"Failed to send email: {detail}")
        self.detail = detail


class ConfigurationError(RuntimeError):
    """Raised at startup when the configuration cannot be loaded or is invalid."""

    def __init__(self, message: str = "Invalid mail relay configuration"):
        super().__init__(message)
        self.code = "invalid_configuration"
