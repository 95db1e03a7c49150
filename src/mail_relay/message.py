# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Construction of outbound messages from relay requests.

A relay request may leave ``from``, ``to`` and ``sender_name`` empty; each
empty field falls back to the value configured in the ``[email]`` section.
Subject and body are copied verbatim and may be empty.

Example:
    Building a message with configured defaults::

        defaults = MessageDefaults(
            from_address="noreply@example.com",
            to_address="ops@example.com",
            sender_name="Relay",
        )
        message = build_message(EmailRequest(subject="hi", body="there"), defaults)
        message.display_from  # 'Relay <noreply@example.com>'
"""

from __future__ import annotations

from dataclasses import dataclass
from email.errors import HeaderParseError
from email.headerregistry import Address
from email.message import EmailMessage

from .errors import AddressFormatError, InvalidMessageError
from .logger import get_logger

MAX_ADDRESS_LENGTH = 254

logger = get_logger("MessageBuilder")


@dataclass(frozen=True)
class EmailRequest:
    """Raw send request as received from the caller; empty means default."""

    from_address: str = ""
    to_address: str = ""
    sender_name: str = ""
    subject: str = ""
    body: str = ""


@dataclass(frozen=True)
class MessageDefaults:
    """Fallback sender, recipient and display name from the configuration."""

    from_address: str
    to_address: str
    sender_name: str


@dataclass(frozen=True)
class OutboundMessage:
    """Transport-ready message; built per request and never mutated."""

    from_address: str
    sender_name: str
    to_address: str
    subject: str
    body: str

    @property
    def display_from(self) -> str:
        return f"{self.sender_name} <{self.from_address}>"

    def to_email_message(self) -> EmailMessage:
        """Render the message as a plain-text :class:`EmailMessage`."""
        msg = EmailMessage()
        username, domain = self.from_address.rsplit("@", 1)
        msg["From"] = Address(display_name=self.sender_name, username=username, domain=domain)
        msg["To"] = self.to_address
        msg["Subject"] = self.subject
        msg.set_content(self.body)
        return msg


def has_line_break(value: str) -> bool:
    """True if ``value`` holds any character ``str.splitlines`` breaks on.

    That is the set mail headers refuse: CR, LF, but also U+2028, U+2029,
    VT, FF, the ``\\x1c``-``\\x1e`` separators and NEL.
    """
    return "".join(value.splitlines()) != value


def validate_address(field: str, value: str) -> str:
    """Return ``value`` stripped, or raise :class:`AddressFormatError`.

    Accepts a single bare ``local@domain`` address. The domain may be a
    single label (``root@localhost``) or an address literal
    (``ops@[192.0.2.1]``).
    """
    address = value.strip()
    if has_line_break(address):
        raise AddressFormatError(field, value, "line breaks are not allowed")
    if len(address) > MAX_ADDRESS_LENGTH:
        raise AddressFormatError(field, value, "address exceeds maximum length")
    if not address or any(ch.isspace() for ch in address):
        raise AddressFormatError(field, value)
    try:
        parsed = Address(addr_spec=address)
    except (ValueError, IndexError, HeaderParseError) as exc:
        raise AddressFormatError(field, value) from exc
    if not parsed.username or not parsed.domain:
        raise AddressFormatError(field, value)
    return address


def _resolve(requested: str, default: str, label: str) -> str:
    if requested:
        logger.debug("Using custom %s: %s", label, requested)
        return requested
    logger.debug("Using default %s", label)
    return default


def build_message(request: EmailRequest, defaults: MessageDefaults) -> OutboundMessage:
    """Resolve request fields against ``defaults`` and validate the result.

    Raises:
        AddressFormatError: If the effective sender or recipient address is
            malformed, or the sender name contains line breaks.
        InvalidMessageError: If the subject contains line breaks.
    """
    from_address = _resolve(request.from_address, defaults.from_address, "from address")
    to_address = _resolve(request.to_address, defaults.to_address, "to address")
    sender_name = _resolve(request.sender_name, defaults.sender_name, "sender name")

    if has_line_break(sender_name):
        raise AddressFormatError("sender_name", sender_name, "line breaks are not allowed")
    if has_line_break(request.subject):
        raise InvalidMessageError("subject must not contain line breaks")

    message = OutboundMessage(
        from_address=validate_address("from", from_address),
        sender_name=sender_name,
        to_address=validate_address("to", to_address),
        subject=request.subject,
        body=request.body,
    )
    logger.debug("Email message built: from=%s to=%s", message.display_from, message.to_address)
    return message
