"""
Prometheus metrics for HTTP traffic and the registration engines
"""

import logging
from prometheus_client import Counter, Histogram, REGISTRY

logger = logging.getLogger(__name__)


def _counter(name: str, documentation: str, labelnames):
    # Re-importing the module (tests, reloads) must not register twice
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


def _histogram(name: str, documentation: str, labelnames):
    try:
        return Histogram(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


REQUEST_COUNT = _counter(
    "app_requests_total",
    "Total requests",
    ["method", "endpoint", "status"]
)
REQUEST_DURATION = _histogram(
    "app_request_duration_seconds",
    "Request duration",
    ["method", "endpoint"]
)

WAITLIST_OUTCOMES = _counter(
    "waitlist_outcomes_total",
    "Waitlist entry outcomes per processing cycle",
    ["trigger", "outcome"]
)
SCHEDULE_OUTCOMES = _counter(
    "scheduled_registration_outcomes_total",
    "Scheduled registration attempt outcomes",
    ["outcome"]
)


def record_waitlist_outcome(trigger: str, outcome: str):
    WAITLIST_OUTCOMES.labels(trigger=trigger, outcome=outcome).inc()


def record_schedule_outcome(outcome: str):
    SCHEDULE_OUTCOMES.labels(outcome=outcome).inc()
