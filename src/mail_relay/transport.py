# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SMTP transport used to deliver relayed messages.

This is the only module that talks SMTP. Each send opens a fresh
aiosmtplib connection, authenticates with the configured account, sends
one message and quits. The whole exchange is bounded by ``send_timeout``;
expiry and every SMTP or socket failure surface as
:class:`~mail_relay.errors.TransportError`. Nothing is retried.

The encryption mode is chosen from the port alone:

- 465: implicit TLS (the socket is wrapped before the SMTP greeting)
- 587: STARTTLS is mandatory, the send fails if the server lacks it
- any other port: STARTTLS when the server advertises it, plain otherwise

Example:
    Delivering a message built by :func:`mail_relay.message.build_message`::

        transport = SmtpTransport.from_config(config.email)
        await transport.send(message)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any

import aiosmtplib

from .errors import ConfigurationError, TransportError
from .logger import get_logger
from .message import OutboundMessage

if TYPE_CHECKING:
    from .config_loader import EmailConfig

DEFAULT_SEND_TIMEOUT = 30.0
CONNECT_TIMEOUT = 10.0

logger = get_logger("SmtpTransport")


class TransportSecurityMode(str, Enum):
    """How the SMTP session is encrypted."""

    IMPLICIT_TLS = "implicit_tls"
    REQUIRED_STARTTLS = "required_starttls"
    OPPORTUNISTIC = "opportunistic"

    def client_options(self) -> dict[str, Any]:
        """Return the ``use_tls``/``start_tls`` keyword pair for aiosmtplib."""
        if self is TransportSecurityMode.IMPLICIT_TLS:
            return {"use_tls": True, "start_tls": False}
        if self is TransportSecurityMode.REQUIRED_STARTTLS:
            return {"use_tls": False, "start_tls": True}
        # start_tls=None upgrades only when the server supports STARTTLS
        return {"use_tls": False, "start_tls": None}


SECURITY_MODE_BY_PORT: dict[int, TransportSecurityMode] = {
    465: TransportSecurityMode.IMPLICIT_TLS,
    587: TransportSecurityMode.REQUIRED_STARTTLS,
}


def security_mode_for_port(port: int) -> TransportSecurityMode:
    """Map an SMTP port to its :class:`TransportSecurityMode`."""
    return SECURITY_MODE_BY_PORT.get(port, TransportSecurityMode.OPPORTUNISTIC)


class SmtpTransport:
    """Deliver :class:`OutboundMessage` objects to one upstream SMTP server.

    Attributes:
        host: SMTP server hostname.
        port: SMTP server port; also selects the security mode.
        user: Account used for SMTP AUTH, or None to skip authentication.
        password: Password for ``user``.
        send_timeout: Upper bound in seconds for connect, auth and send.
        security_mode: Encryption policy derived from ``port``.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str | None = None,
        password: str | None = None,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ):
        if not host:
            raise ConfigurationError("SMTP server host must not be empty")
        if not 0 < port < 65536:
            raise ConfigurationError(f"Invalid SMTP port: {port}")
        if send_timeout <= 0:
            raise ConfigurationError("send_timeout must be a positive number of seconds")
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.send_timeout = send_timeout
        self.security_mode = security_mode_for_port(port)

    @classmethod
    def from_config(cls, email_config: EmailConfig) -> SmtpTransport:
        """Build a transport from the ``[email]`` configuration section."""
        return cls(
            host=email_config.smtp_server,
            port=email_config.smtp_port,
            user=email_config.email_account or None,
            password=email_config.email_password or None,
            send_timeout=email_config.send_timeout,
        )

    def _client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            timeout=CONNECT_TIMEOUT,
            **self.security_mode.client_options(),
        )

    @staticmethod
    async def _quit(smtp: aiosmtplib.SMTP) -> None:
        try:
            await smtp.quit()
        except (aiosmtplib.SMTPException, OSError):
            smtp.close()

    async def _deliver(self, message: OutboundMessage) -> None:
        smtp = self._client()
        try:
            await smtp.connect()
            if self.user and self.password:
                await smtp.login(self.user, self.password)
            await smtp.send_message(
                message.to_email_message(),
                sender=message.from_address,
                recipients=[message.to_address],
            )
        except asyncio.CancelledError:
            # send_timeout expired: drop the socket without a QUIT round-trip
            smtp.close()
            raise
        except Exception:
            await self._quit(smtp)
            raise
        await self._quit(smtp)

    async def send(self, message: OutboundMessage) -> None:
        """Deliver one message, at most once.

        Raises:
            TransportError: On timeout, SMTP protocol errors or socket errors.
        """
        logger.info(
            "Sending email from %s to %s via %s:%s (%s)",
            message.from_address,
            message.to_address,
            self.host,
            self.port,
            self.security_mode.value,
        )
        try:
            await asyncio.wait_for(self._deliver(message), timeout=self.send_timeout)
        except asyncio.TimeoutError as exc:
            logger.error("SMTP send timed out after %ss", self.send_timeout)
            raise TransportError(f"timed out after {self.send_timeout}s") from exc
        except aiosmtplib.SMTPException as exc:
            logger.error("SMTP error: %s", exc)
            raise TransportError(str(exc)) from exc
        except OSError as exc:
            logger.error("Connection failed to %s:%s: %s", self.host, self.port, exc)
            raise TransportError(f"connection failed: {exc}") from exc
        logger.info("Email sent successfully to %s", message.to_address)

    async def verify(self) -> None:
        """Connect, authenticate and quit without sending anything.

        Raises:
            TransportError: If the server cannot be reached or rejects the login.
        """
        smtp = self._client()

        async def _do_verify():
            await smtp.connect()
            if self.user and self.password:
                await smtp.login(self.user, self.password)
            await smtp.quit()

        try:
            await asyncio.wait_for(_do_verify(), timeout=self.send_timeout)
        except (asyncio.TimeoutError, aiosmtplib.SMTPException, OSError) as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

    def summary(self) -> dict[str, Any]:
        """Return the non-secret transport settings for display."""
        return {
            "host": self.host,
            "port": self.port,
            "auth": bool(self.user),
            "security_mode": self.security_mode.value,
            "send_timeout": self.send_timeout,
        }
