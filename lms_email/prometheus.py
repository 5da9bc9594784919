"""Prometheus metrics exposed by the email service."""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class EmailMetrics:
    """Wrapper around the Prometheus registry used by the service."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """Create counters inside the provided registry."""
        self.registry = registry or CollectorRegistry()
        self.signed_sent = Counter(
            "lms_email_signed_sent_total", "Emails accepted by the signing service", registry=self.registry
        )
        self.unsigned_sent = Counter(
            "lms_email_unsigned_sent_total", "Emails sent directly over SMTP", registry=self.registry
        )
        self.signing_failures = Counter(
            "lms_email_signing_failures_total",
            "Failed signing attempts",
            ["reason"],
            registry=self.registry,
        )
        self.signing_fallbacks = Counter(
            "lms_email_signing_fallbacks_total",
            "Signed deliveries that fell back to SMTP",
            registry=self.registry,
        )
        self.too_big = Counter(
            "lms_email_too_big_total", "Emails rejected for exceeding the size limit", registry=self.registry
        )
        self.suppressed = Counter(
            "lms_email_suppressed_total", "Emails only logged because sending is disabled", registry=self.registry
        )

    def inc_signed_sent(self):
        self.signed_sent.inc()

    def inc_unsigned_sent(self):
        self.unsigned_sent.inc()

    def inc_signing_failure(self, reason: str):
        """Increase the failure counter; ``reason`` is ``result`` or ``io``."""
        self.signing_failures.labels(reason=reason or "unknown").inc()

    def inc_signing_fallback(self):
        self.signing_fallbacks.inc()

    def inc_too_big(self):
        self.too_big.inc()

    def inc_suppressed(self):
        self.suppressed.inc()

    def generate_latest(self) -> bytes:
        """Return the latest metrics snapshot in Prometheus text format."""
        return generate_latest(self.registry)
