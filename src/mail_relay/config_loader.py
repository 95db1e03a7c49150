# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for the mail relay.

Settings are read once at startup from an INI file, with environment
variables (all prefixed with ``MAIL_RELAY_``) used as fallbacks for keys
the file does not define. The result is an immutable :class:`AppConfig`;
there is no hot reload.

Example:
    Configuration file format (config.ini)::

        [email]
        smtp_server = smtp.example.com
        smtp_port = 465
        email_account = relay@example.com
        email_password = secret
        email_from = relay@example.com
        email_to = ops@example.com
        sender_name = Mail Relay
        # Seconds allowed for connect, login and send
        send_timeout = 30

        [server]
        host = 0.0.0.0
        port = 3000
        api_key = change-me
        # header (X-Forwarded-For) or peer (socket address)
        identity_source = header

    Loading it::

        config = load_config("/etc/mail-relay/config.ini")
"""

from __future__ import annotations

import configparser
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import AddressFormatError, ConfigurationError
from .logger import get_logger
from .message import MessageDefaults, has_line_break, validate_address

ENV_PREFIX = "MAIL_RELAY_"
DEFAULT_CONFIG_PATH = "config.ini"
DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 3000
DEFAULT_SEND_TIMEOUT = 30.0
IDENTITY_SOURCES = ("header", "peer")

logger = get_logger("ConfigLoader")


@dataclass(frozen=True)
class EmailConfig:
    """Upstream SMTP account and message defaults.

    Attributes:
        smtp_server: SMTP server hostname.
        smtp_port: SMTP port; 465 and 587 select the TLS mode.
        email_account: Username for SMTP AUTH.
        email_password: Password for SMTP AUTH.
        email_from: Default sender address.
        email_to: Default recipient address.
        sender_name: Default display name for the sender.
        send_timeout: Seconds allowed for one delivery.
    """

    smtp_server: str
    smtp_port: int
    email_account: str
    email_password: str
    email_from: str
    email_to: str
    sender_name: str
    send_timeout: float = DEFAULT_SEND_TIMEOUT

    @property
    def defaults(self) -> MessageDefaults:
        return MessageDefaults(
            from_address=self.email_from,
            to_address=self.email_to,
            sender_name=self.sender_name,
        )


@dataclass(frozen=True)
class ServerConfig:
    """HTTP listener and request admission settings."""

    api_key: str
    host: str = DEFAULT_SERVER_HOST
    port: int = DEFAULT_SERVER_PORT
    identity_source: str = "header"


@dataclass(frozen=True)
class AppConfig:
    email: EmailConfig
    server: ServerConfig

    def redacted(self) -> dict[str, dict[str, Any]]:
        """Return all settings with the password and API key masked."""
        return {
            "email": {
                "smtp_server": self.email.smtp_server,
                "smtp_port": self.email.smtp_port,
                "email_account": self.email.email_account,
                "email_password": "********",
                "email_from": self.email.email_from,
                "email_to": self.email.email_to,
                "sender_name": self.email.sender_name,
                "send_timeout": self.email.send_timeout,
            },
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "api_key": "********",
                "identity_source": self.server.identity_source,
            },
        }


def default_config_path() -> str:
    """Return the config path from ``MAIL_RELAY_CONFIG`` or ``config.ini``."""
    return os.getenv(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_PATH)


def load_config(config_path: str | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Read the relay configuration.

    Args:
        config_path: Path to the INI file. A missing file is allowed only
            when every required key comes from the environment.
        environ: Environment mapping, defaults to ``os.environ``.

    Returns:
        The immutable application configuration.

    Raises:
        ConfigurationError: If a required key is missing, a value has the
            wrong type, or the file cannot be parsed.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or default_config_path())
    parser = configparser.ConfigParser(interpolation=None)
    if path.exists():
        try:
            parser.read(path, encoding="utf-8")
        except configparser.Error as exc:
            raise ConfigurationError(f"Cannot parse config file {path}: {exc}") from exc
        logger.info("Loading configuration from %s", path)
    else:
        logger.info("Config file %s not found, using environment only", path)

    def get(section: str, option: str, env_name: str, default: str | None = None) -> str | None:
        if parser.has_option(section, option):
            return parser.get(section, option).strip()
        value = env.get(f"{ENV_PREFIX}{env_name}")
        if value is not None:
            return value.strip()
        return default

    def require(section: str, option: str, env_name: str) -> str:
        value = get(section, option, env_name)
        if value is None or value == "":
            raise ConfigurationError(
                f"Missing required setting [{section}] {option} (or {ENV_PREFIX}{env_name})"
            )
        return value

    def as_int(section: str, option: str, value: str) -> int:
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigurationError(f"[{section}] {option} must be an integer, got {value!r}") from exc

    def as_float(section: str, option: str, value: str) -> float:
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigurationError(f"[{section}] {option} must be a number, got {value!r}") from exc

    email = EmailConfig(
        smtp_server=require("email", "smtp_server", "SMTP_SERVER"),
        smtp_port=as_int("email", "smtp_port", require("email", "smtp_port", "SMTP_PORT")),
        email_account=require("email", "email_account", "EMAIL_ACCOUNT"),
        email_password=require("email", "email_password", "EMAIL_PASSWORD"),
        email_from=require("email", "email_from", "EMAIL_FROM"),
        email_to=require("email", "email_to", "EMAIL_TO"),
        sender_name=require("email", "sender_name", "SENDER_NAME"),
        send_timeout=as_float(
            "email", "send_timeout",
            get("email", "send_timeout", "SEND_TIMEOUT", str(DEFAULT_SEND_TIMEOUT)),
        ),
    )
    if email.send_timeout <= 0:
        raise ConfigurationError("[email] send_timeout must be positive")
    for option in ("email_from", "email_to"):
        try:
            validate_address(option, getattr(email, option))
        except AddressFormatError as exc:
            raise ConfigurationError(f"[email] {option}: {exc.message}") from exc
    if has_line_break(email.sender_name):
        raise ConfigurationError("[email] sender_name must not contain line breaks")

    identity_source = (get("server", "identity_source", "IDENTITY_SOURCE", "header") or "header").lower()
    if identity_source not in IDENTITY_SOURCES:
        raise ConfigurationError(
            f"[server] identity_source must be one of {', '.join(IDENTITY_SOURCES)}, got {identity_source!r}"
        )

    server = ServerConfig(
        api_key=require("server", "api_key", "API_KEY"),
        host=get("server", "host", "HOST", DEFAULT_SERVER_HOST) or DEFAULT_SERVER_HOST,
        port=as_int("server", "port", get("server", "port", "PORT", str(DEFAULT_SERVER_PORT))),
        identity_source=identity_source,
    )
    logger.info("Configuration loaded successfully")
    return AppConfig(email=email, server=server)
