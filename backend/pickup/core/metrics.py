"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Roster metrics
join_attempts = Counter(
    'game_join_attempts_total',
    'Total join attempts',
    ['result']  # joined, capacity_exceeded, already_joined, closed, conflict
)

join_latency = Histogram(
    'game_join_latency_seconds',
    'Join request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

roster_retries = Counter(
    'roster_retry_attempts_total',
    'Join retries caused by game version conflicts'
)

# Lifecycle metrics
lifecycle_transitions = Counter(
    'game_status_transitions_total',
    'Game status transitions',
    ['to_status', 'cause']  # cause: join, end, cancel, sweep
)

# Notification pipeline metrics
notifications_processed = Counter(
    'notifications_processed_total',
    'Notification queue items processed by the worker',
    ['outcome']  # sent, failed, deferred
)

push_provider_errors = Counter(
    'push_provider_errors_total',
    'Push provider batch calls that failed'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_join_attempt(result: str):
    """Record join attempt. Result: joined, capacity_exceeded, already_joined, closed, conflict"""
    join_attempts.labels(result=result).inc()

def record_transition(to_status: str, cause: str):
    lifecycle_transitions.labels(to_status=to_status, cause=cause).inc()

def record_notification(outcome: str, count: int = 1):
    """Record worker outcome. Outcome: sent, failed, deferred"""
    if count:
        notifications_processed.labels(outcome=outcome).inc(count)

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
