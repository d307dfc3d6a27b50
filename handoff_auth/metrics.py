"""
Handoff Metrics
===============
Prometheus metrics for authentication handoff calls.

Metrics live in their own registry so a host application can expose them
next to its own without name clashes.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

HANDOFF_REGISTRY = CollectorRegistry()

AUTH_REQUESTS_TOTAL = Counter(
    name="handoff_auth_requests_total",
    documentation="Authentication handoff requests by outcome",
    labelnames=["transport", "outcome", "error_type"],
    registry=HANDOFF_REGISTRY,
)

AUTH_DURATION = Histogram(
    name="handoff_auth_duration_seconds",
    documentation="Time spent authenticating a request, including remote calls",
    labelnames=["transport"],
    buckets=[
        0.001, 0.005, 0.01, 0.025, 0.05,
        0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0,
    ],
    registry=HANDOFF_REGISTRY,
)

SIGNING_KEY_REQUESTS_TOTAL = Counter(
    name="handoff_signing_key_requests_total",
    documentation="Signing key requests for chunked uploads by outcome",
    labelnames=["outcome"],
    registry=HANDOFF_REGISTRY,
)

CHANNEL_UPDATES_TOTAL = Counter(
    name="handoff_channel_updates_total",
    documentation="Transport channel replacements by outcome",
    labelnames=["outcome"],
    registry=HANDOFF_REGISTRY,
)


def record_auth(transport: str, ok: bool, error_type: str, duration_seconds: float):
    """
    Record one completed authentication.

    Args:
        transport: Transport in use (grpc, http)
        ok: Whether the request was authenticated
        error_type: ErrorKind value of the result
        duration_seconds: Wall time of the whole pipeline
    """
    AUTH_REQUESTS_TOTAL.labels(
        transport=transport,
        outcome="success" if ok else "failure",
        error_type=error_type,
    ).inc()
    AUTH_DURATION.labels(transport=transport).observe(duration_seconds)


def record_signing_key(ok: bool):
    SIGNING_KEY_REQUESTS_TOTAL.labels(outcome="success" if ok else "failure").inc()


def record_channel_update(ok: bool):
    CHANNEL_UPDATES_TOTAL.labels(outcome="success" if ok else "failure").inc()


def get_metrics_text() -> bytes:
    """Render all handoff metrics in Prometheus exposition format."""
    return generate_latest(HANDOFF_REGISTRY)


__all__ = [
    "CONTENT_TYPE_LATEST",
    "HANDOFF_REGISTRY",
    "record_auth",
    "record_signing_key",
    "record_channel_update",
    "get_metrics_text",
]
