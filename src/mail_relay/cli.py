# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for mail-relay.

Usage:
    mail-relay serve [--config PATH] [--host HOST] [--port PORT]
    mail-relay show-config [--config PATH] [--json]

Startup problems (unreadable configuration, invalid SMTP settings, an SMTP
server rejecting ``--verify-smtp``) are fatal: the error is printed and the
process exits with status 1 before any request is served.

Example:
    $ MAIL_RELAY_CONFIG=/etc/mail-relay/config.ini mail-relay serve -p 8080
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from mail_relay import __version__
from mail_relay.config_loader import AppConfig, default_config_path, load_config
from mail_relay.errors import ConfigurationError, TransportError
from mail_relay.logger import configure_logging, get_logger, normalize_level

console = Console()
err_console = Console(stderr=True)
logger = get_logger("CLI")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def _load_or_exit(config_path: Optional[str]) -> AppConfig:
    try:
        return load_config(config_path)
    except ConfigurationError as exc:
        print_error(str(exc))
        sys.exit(1)


@click.group()
@click.version_option(__version__)
def main() -> None:
    """mail-relay - authenticated, rate-limited HTTP to SMTP relay."""


@main.command("serve")
@click.option("--config", "-c", "config_path", default=None, help="Path to config.ini (default: $MAIL_RELAY_CONFIG or config.ini).")
@click.option("--host", "-h", default=None, help="Host to bind to (overrides [server] host).")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (overrides [server] port).")
@click.option("--log-level", default=lambda: os.getenv("MAIL_RELAY_LOG_LEVEL", "INFO"), show_default="INFO", help="Logging level.")
@click.option("--verify-smtp", is_flag=True, help="Log in to the SMTP server before accepting requests.")
def serve(config_path: Optional[str], host: Optional[str], port: Optional[int], log_level: str, verify_smtp: bool) -> None:
    """Start the HTTP server.

    Example:

        mail-relay serve -c config.ini -p 3000
    """
    import uvicorn

    from mail_relay.api import create_app
    from mail_relay.relay import EmailRelay
    from mail_relay.transport import SmtpTransport

    log_level = normalize_level(log_level)
    configure_logging(log_level)
    logger.info("Starting mail relay...")
    config = _load_or_exit(config_path)

    try:
        transport = SmtpTransport.from_config(config.email)
    except ConfigurationError as exc:
        print_error(f"Failed to create SMTP transport: {exc}")
        sys.exit(1)
    logger.info(
        "SMTP transport configured for %s:%s (%s)",
        transport.host, transport.port, transport.security_mode.value,
    )

    if verify_smtp:
        try:
            asyncio.run(transport.verify())
        except TransportError as exc:
            print_error(f"SMTP verification failed: {exc.detail}")
            sys.exit(1)
        logger.info("SMTP server accepted the connection")

    app = create_app(EmailRelay.from_config(config, transport=transport))
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    logger.info("Server starting on %s:%s", bind_host, bind_port)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=log_level.lower())


@main.command("show-config")
@click.option("--config", "-c", "config_path", default=None, help="Path to config.ini.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def show_config(config_path: Optional[str], as_json: bool) -> None:
    """Print the effective configuration with secrets masked."""
    from mail_relay.transport import security_mode_for_port

    config = _load_or_exit(config_path)
    data = config.redacted()
    data["email"]["security_mode"] = security_mode_for_port(config.email.smtp_port).value

    if as_json:
        print_json(data)
        return

    table = Table(title=f"mail-relay configuration ({config_path or default_config_path()})")
    table.add_column("Section", style="cyan")
    table.add_column("Key")
    table.add_column("Value", style="green")
    for section, values in data.items():
        for key, value in values.items():
            table.add_row(section, key, str(value))
    console.print(table)
    print_success("Configuration is valid")


if __name__ == "__main__":
    main()
