# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Request orchestration for the mail relay.

:class:`EmailRelay` runs every send request through a fixed chain of
steps, stopping at the first failure:

1. authenticate the ``X-API-Key`` credential
2. check and record the client identity in the rate limiter
3. build and validate the outbound message
4. hand the message to the SMTP transport (one attempt, no retry)
5. map the outcome to a status code and JSON body

Authentication runs before the limiter, so rejected credentials never
consume rate-limit slots. The transport call happens after the limiter
lock has been released.

Example:
    Wiring the relay from a loaded configuration::

        relay = EmailRelay.from_config(load_config("config.ini"))
        response = await relay.handle(api_key, identity, EmailRequest(subject="hi", body="there"))
        response.status_code  # 200
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .auth import RequestAuthenticator
from .config_loader import AppConfig
from .errors import RateLimitedError, RelayError, TransportError
from .logger import get_logger
from .message import EmailRequest, MessageDefaults, OutboundMessage, build_message
from .prometheus import RelayMetrics
from .rate_limit import SlidingWindowRateLimiter
from .transport import SmtpTransport

UNKNOWN_IDENTITY = "unknown"
SUCCESS_MESSAGE = "Email sent successfully"


class Transport(Protocol):
    async def send(self, message: OutboundMessage) -> None: ...


class RequestStage(str, Enum):
    """Pipeline position reached by a request."""

    START = "start"
    AUTHENTICATED = "authenticated"
    RATE_LIMIT_CHECKED = "rate_limit_checked"
    MESSAGE_BUILT = "message_built"
    SENT = "sent"
    RESPONDED = "responded"


@dataclass(frozen=True)
class RelayResponse:
    """Outcome of one request, ready to be serialized.

    Attributes:
        status_code: HTTP status code.
        status: ``"success"`` or ``"error"``.
        message: Human-readable result text.
        code: Machine-readable outcome (``sent`` or the error code).
        stage: Last stage completed before responding.
    """

    status_code: int
    status: str
    message: str
    code: str
    stage: RequestStage

    def body(self) -> dict[str, Any]:
        return {"status": self.status, "message": self.message}

    @classmethod
    def success(cls) -> RelayResponse:
        return cls(200, "success", SUCCESS_MESSAGE, "sent", RequestStage.SENT)

    @classmethod
    def from_error(cls, error: RelayError, stage: RequestStage) -> RelayResponse:
        return cls(error.status_code, "error", error.message, error.code, stage)


class EmailRelay:
    """Authenticate, rate-limit, build and send one message per request.

    Attributes:
        authenticator: Shared-secret credential check.
        rate_limiter: Per-identity sliding-window limiter, owned by the relay.
        transport: Collaborator exposing ``async send(message)``.
        defaults: Fallback sender, recipient and display name.
        metrics: Prometheus counters for request outcomes.
    """

    def __init__(
        self,
        authenticator: RequestAuthenticator,
        rate_limiter: SlidingWindowRateLimiter,
        transport: Transport,
        defaults: MessageDefaults,
        metrics: RelayMetrics | None = None,
        identity_source: str = "header",
    ):
        self.authenticator = authenticator
        self.rate_limiter = rate_limiter
        self.transport = transport
        self.defaults = defaults
        self.metrics = metrics or RelayMetrics()
        self.identity_source = identity_source
        self.logger = get_logger("EmailRelay")

    @classmethod
    def from_config(cls, config: AppConfig, transport: Transport | None = None) -> EmailRelay:
        """Build a relay with a fresh limiter and an SMTP transport from ``config``."""
        return cls(
            authenticator=RequestAuthenticator(config.server.api_key),
            rate_limiter=SlidingWindowRateLimiter(),
            transport=transport or SmtpTransport.from_config(config.email),
            defaults=config.email.defaults,
            identity_source=config.server.identity_source,
        )

    def resolve_identity(self, forwarded_for: str | None, peer_host: str | None = None) -> str:
        """Pick the rate-limit key for a request.

        With ``identity_source = "header"`` the ``X-Forwarded-For`` value is
        used verbatim. It is client supplied, so a caller can change buckets
        at will. ``"peer"`` keys on the socket peer address instead.
        """
        if self.identity_source == "peer":
            return peer_host or UNKNOWN_IDENTITY
        return forwarded_for or UNKNOWN_IDENTITY

    def _authenticate(self, api_key: str | None) -> None:
        error = self.authenticator.validate(api_key).to_error()
        if error is not None:
            raise error

    async def _check_rate_limit(self, identity: str) -> None:
        admitted = await self.rate_limiter.check_and_record(identity)
        self.metrics.set_tracked_identities(self.rate_limiter.tracked_identities)
        if not admitted:
            self.metrics.inc_rate_limited()
            raise RateLimitedError(identity)

    async def _send(self, message: OutboundMessage) -> None:
        try:
            await self.transport.send(message)
        except TransportError:
            self.metrics.inc_transport_error()
            raise
        self.metrics.inc_sent()

    async def handle(self, api_key: str | None, identity: str, request: EmailRequest) -> RelayResponse:
        """Run one request through the pipeline and return its response.

        Every :class:`RelayError` raised by a step is converted into an error
        response here; nothing escapes to the HTTP layer.
        """
        stage = RequestStage.START
        try:
            self._authenticate(api_key)
            stage = RequestStage.AUTHENTICATED
            self.logger.debug("Request from %s", identity)

            await self._check_rate_limit(identity)
            stage = RequestStage.RATE_LIMIT_CHECKED

            message = build_message(request, self.defaults)
            stage = RequestStage.MESSAGE_BUILT
            self.logger.info("Preparing to send email from %s to %s", message.display_from, message.to_address)

            await self._send(message)
            stage = RequestStage.SENT
        except RelayError as exc:
            self.logger.warning("Request from %s stopped after %s: %s", identity, stage.value, exc.message)
            response = RelayResponse.from_error(exc, stage)
        else:
            response = RelayResponse.success()
        self.metrics.observe_request(response.code)
        return response
