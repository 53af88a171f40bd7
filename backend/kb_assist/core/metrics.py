"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "kba_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "kba_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("endpoint", "method"),
    registry=REGISTRY,
)

RETRIEVAL_LATENCY = Histogram(
    "kba_retrieval_latency_seconds",
    "Time spent finding and ranking candidates for one chat turn",
    labelnames=("mode",),
    registry=REGISTRY,
)

INGEST_DURATION = Histogram(
    "kba_ingest_duration_seconds",
    "Ingest pipeline duration",
    labelnames=("mode",),
    registry=REGISTRY,
)

PIPELINE_FAILURES = Counter(
    "kba_pipeline_failures_total",
    "Failures surfaced by the core, by stage and error kind",
    labelnames=("stage", "kind"),
    registry=REGISTRY,
)

DOCUMENT_COUNT = Gauge(
    "kba_documents",
    "Number of documents stored in the knowledge base",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "RETRIEVAL_LATENCY",
    "INGEST_DURATION",
    "PIPELINE_FAILURES",
    "DOCUMENT_COUNT",
    "metrics_response",
]
