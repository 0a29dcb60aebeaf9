"""Prometheus metrics for the HTTP surface and the event pipeline.

Everything is registered on a dedicated ``REGISTRY`` so tests and the
``/metrics`` endpoint see only this service's collectors.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

REGISTRY = CollectorRegistry()

# Covers handler and request times from 1ms to 30s
DEFAULT_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
)

# ============================================================================
# HTTP
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=REGISTRY,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

# ============================================================================
# Publisher and hub
# ============================================================================

events_published_total = Counter(
    "taskhub_events_published_total",
    "Events durably recorded by the hub.",
    ["event_type"],
    registry=REGISTRY,
)

events_rejected_total = Counter(
    "taskhub_events_rejected_total",
    "Publish calls rejected synchronously (unknown tenant, invalid payload).",
    ["reason"],
    registry=REGISTRY,
)

hub_dispatches_total = Counter(
    "taskhub_hub_dispatches_total",
    "Handler invocations finished, by handler and outcome.",
    ["handler_id", "outcome"],
    registry=REGISTRY,
)

hub_retries_total = Counter(
    "taskhub_hub_retries_total",
    "Retries scheduled after a retryable handler outcome.",
    ["handler_id"],
    registry=REGISTRY,
)

hub_retry_delay_seconds = Histogram(
    "taskhub_hub_retry_delay_seconds",
    "Backoff delay applied before a retry.",
    ["handler_id"],
    buckets=(0.0, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
    registry=REGISTRY,
)

hub_deliveries_in_flight = Gauge(
    "taskhub_hub_deliveries_in_flight",
    "Deliveries that have not reached a terminal state.",
    registry=REGISTRY,
)

handler_duration_seconds = Histogram(
    "taskhub_handler_duration_seconds",
    "Handler invocation time in seconds.",
    ["handler_id"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

handler_timeouts_total = Counter(
    "taskhub_handler_timeouts_total",
    "Handler invocations abandoned after the configured timeout.",
    ["handler_id"],
    registry=REGISTRY,
)

# ============================================================================
# Durable queue
# ============================================================================

queue_enqueued_total = Counter(
    "taskhub_queue_enqueued_total",
    "Messages accepted by the durable queue.",
    registry=REGISTRY,
)

queue_deduplicated_total = Counter(
    "taskhub_queue_deduplicated_total",
    "Enqueue calls answered from the dedup index.",
    registry=REGISTRY,
)

queue_acked_total = Counter(
    "taskhub_queue_acked_total",
    "Messages acknowledged and removed.",
    registry=REGISTRY,
)

queue_nacked_total = Counter(
    "taskhub_queue_nacked_total",
    "Leases released early by consumers.",
    registry=REGISTRY,
)

queue_lease_expirations_total = Counter(
    "taskhub_queue_lease_expirations_total",
    "Leases that expired without an ack.",
    registry=REGISTRY,
)

queue_pending_messages = Gauge(
    "taskhub_queue_pending_messages",
    "Messages held by the durable queue (visible or leased).",
    registry=REGISTRY,
)

# ============================================================================
# Dead letters and alerts
# ============================================================================

dead_letters_total = Counter(
    "taskhub_dead_letters_total",
    "Events and messages moved to dead-letter storage.",
    ["kind", "reason"],
    registry=REGISTRY,
)

dead_letter_replays_total = Counter(
    "taskhub_dead_letter_replays_total",
    "Dead-letter entries replayed by an operator.",
    ["kind"],
    registry=REGISTRY,
)

alerts_sent_total = Counter(
    "taskhub_alerts_sent_total",
    "Alerts by channel and result.",
    ["channel", "status"],
    registry=REGISTRY,
)

# ============================================================================
# Core service
# ============================================================================

core_messages_applied_total = Counter(
    "taskhub_core_messages_applied_total",
    "Queue messages applied to the transactional store, by kind and result.",
    ["kind", "result"],
    registry=REGISTRY,
)
