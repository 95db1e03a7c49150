# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared-secret authentication for relay requests.

The caller presents the secret in the ``X-API-Key`` header. Equality with
the configured secret is the only criterion; the comparison runs through
:func:`secrets.compare_digest` on the UTF-8 encoding of both values so it
does not leak the length of the matching prefix.
"""

from __future__ import annotations

import secrets
from enum import Enum

from .errors import InvalidCredentialError, MissingCredentialError, RelayError
from .logger import get_logger

API_KEY_HEADER_NAME = "X-API-Key"

logger = get_logger("Auth")


class AuthResult(str, Enum):
    """Outcome of a credential check."""

    OK = "ok"
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"

    def to_error(self) -> RelayError | None:
        """Return the request error matching this outcome, None for ``OK``."""
        if self is AuthResult.MISSING_CREDENTIAL:
            return MissingCredentialError()
        if self is AuthResult.INVALID_CREDENTIAL:
            return InvalidCredentialError()
        return None


class RequestAuthenticator:
    """Validate presented credentials against one configured secret."""

    def __init__(self, configured_secret: str):
        self.configured_secret = configured_secret

    def validate(self, presented_credential: str | None) -> AuthResult:
        """Check ``presented_credential`` against the configured secret."""
        return validate(presented_credential, self.configured_secret)


def validate(presented_credential: str | None, configured_secret: str) -> AuthResult:
    """Classify a presented credential.

    Args:
        presented_credential: Header value, or None when the header is absent.
        configured_secret: The secret from the server configuration.

    Returns:
        ``MISSING_CREDENTIAL`` when nothing was presented,
        ``INVALID_CREDENTIAL`` when the values differ, ``OK`` otherwise.
    """
    if presented_credential is None:
        logger.warning("No API key provided in request")
        return AuthResult.MISSING_CREDENTIAL
    if not secrets.compare_digest(
        presented_credential.encode("utf-8"), configured_secret.encode("utf-8")
    ):
        logger.warning("Invalid API key provided")
        return AuthResult.INVALID_CREDENTIAL
    logger.debug("API key validation successful")
    return AuthResult.OK
