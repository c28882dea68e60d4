"""Prometheus metrics definitions for load-test observability.

Metrics follow the naming convention: {namespace}_{subsystem}_{name}_{unit}
Reference: https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Gauge, Histogram

# Namespace for all metrics
NAMESPACE = "chatload"

# Exchange metrics
EXCHANGE_COUNT = Counter(
    name="exchanges_total",
    documentation="Total number of dispatched exchanges by outcome",
    labelnames=["outcome"],
    namespace=NAMESPACE,
)

EXCHANGE_LATENCY = Histogram(
    name="exchange_latency_seconds",
    documentation="Wall-clock duration of a single exchange",
    labelnames=["outcome"],
    namespace=NAMESPACE,
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

TRANSPORT_ERROR_COUNT = Counter(
    name="transport_errors_total",
    documentation="Transport failures by curl-compatible code",
    labelnames=["code"],
    namespace=NAMESPACE,
)

# Conversation metrics
ACTIVE_CONVERSATIONS = Gauge(
    name="active_conversations",
    documentation="Number of conversations currently running",
    namespace=NAMESPACE,
)

CONVERSATION_COUNT = Counter(
    name="conversations_total",
    documentation="Total number of completed conversations",
    namespace=NAMESPACE,
)

# Batch metrics
BATCH_COUNT = Counter(
    name="batches_total",
    documentation="Total number of batches that passed their join barrier",
    namespace=NAMESPACE,
)

BATCH_DURATION = Histogram(
    name="batch_duration_seconds",
    documentation="Time from batch launch to join barrier release",
    namespace=NAMESPACE,
    buckets=(1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0),
)
