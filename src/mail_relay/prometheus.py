# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for the mail relay.

All metrics use the ``mail_relay_`` prefix.

Metrics exposed:
    - ``mail_relay_requests_total``: Counter of handled requests by outcome
      code (``sent``, ``missing_credential``, ``rate_limited`` ...).
    - ``mail_relay_sent_total``: Counter of delivered messages.
    - ``mail_relay_transport_errors_total``: Counter of failed deliveries.
    - ``mail_relay_rate_limited_total``: Counter of rejected admissions.
    - ``mail_relay_tracked_identities``: Gauge of rate-limit buckets.

Example:
    Accessing metrics via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class RelayMetrics:
    """Prometheus collector for relay request outcomes.

    Attributes:
        registry: The CollectorRegistry holding all relay metrics.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "mail_relay_requests_total",
            "Total handled send requests",
            ["outcome"],
            registry=self.registry,
        )
        self.sent = Counter(
            "mail_relay_sent_total",
            "Total delivered emails",
            registry=self.registry,
        )
        self.transport_errors = Counter(
            "mail_relay_transport_errors_total",
            "Total failed deliveries",
            registry=self.registry,
        )
        self.rate_limited = Counter(
            "mail_relay_rate_limited_total",
            "Total rate limited requests",
            registry=self.registry,
        )
        self.tracked_identities = Gauge(
            "mail_relay_tracked_identities",
            "Client identities tracked by the rate limiter",
            registry=self.registry,
        )

    def observe_request(self, outcome: str) -> None:
        """Count one finished request under ``outcome``."""
        self.requests.labels(outcome=outcome or "unknown").inc()

    def inc_sent(self) -> None:
        self.sent.inc()

    def inc_transport_error(self) -> None:
        self.transport_errors.inc()

    def inc_rate_limited(self) -> None:
        self.rate_limited.inc()

    def set_tracked_identities(self, value: int) -> None:
        self.tracked_identities.set(value)

    def generate_latest(self) -> bytes:
        """Return the latest metrics snapshot in Prometheus text format."""
        return generate_latest(self.registry)
