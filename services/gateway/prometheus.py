"""Prometheus metrics for the gateway.

Counters and histograms for proxied requests, upstream latency,
verification outcomes and bad-gateway failures, plus small helpers the
pipeline calls so label names live in one place.
"""

from prometheus_client import Counter, Histogram

# Counters
gateway_requests = Counter(
    "gateway_requests_total",
    "Total number of requests answered by the gateway",
    ["service", "status_code"],
)

verification_outcomes = Counter(
    "gateway_verifications_total",
    "Identity verification outcomes",
    ["outcome"],
)

bad_gateway_failures = Counter(
    "gateway_bad_gateway_total",
    "Forwards that ended without a backend response",
    ["service", "reason"],
)

# Histograms
upstream_latency_seconds = Histogram(
    "gateway_upstream_latency_seconds",
    "Latency of outbound calls in seconds",
    ["service"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)


def record_request(service: str, status_code: int) -> None:
    """Count a request answered for ``service`` (``none`` when unrouted)."""
    gateway_requests.labels(service=service, status_code=str(status_code)).inc()


def record_verification(outcome: str) -> None:
    """Count a verification outcome: verified, rejected, missing or unavailable."""
    verification_outcomes.labels(outcome=outcome).inc()


def record_bad_gateway(service: str, reason: str) -> None:
    """Count a forward that produced no backend response."""
    bad_gateway_failures.labels(service=service, reason=reason).inc()


def record_upstream_latency(service: str, latency_seconds: float) -> None:
    """Observe the latency of one outbound call."""
    upstream_latency_seconds.labels(service=service).observe(latency_seconds)
