# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the mail relay.

Handlers, level and format are configured once by ``logging.basicConfig()``
in the command-line entry point; modules only ask for named loggers.

Example:
    Typical usage in a module::

        from mail_relay.logger import get_logger

        logger = get_logger("RateLimiter")
        logger.warning("Rate limit exceeded for %s", identity)
"""

import logging

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def get_logger(name: str = "MailRelay") -> logging.Logger:
    """Return the ``mail_relay`` child logger bound to ``name``.

    Args:
        name: Component name, appended to the ``mail_relay`` namespace.

    Returns:
        A ``logging.Logger`` instance; no handlers are attached here.
    """
    return logging.getLogger(f"mail_relay.{name}")


def normalize_level(level: str | None) -> str:
    """Return the upper-case level name, or ``INFO`` for unknown names."""
    name = (level or "").strip().upper()
    return name if name in LOG_LEVELS else "INFO"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service process.

    Unknown level names fall back to ``INFO``.
    """
    logging.basicConfig(
        level=getattr(logging, normalize_level(level)),
        format=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATEFMT,
        force=True,
    )
