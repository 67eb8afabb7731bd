import functools
import time

from flask import current_app
from prometheus_client import CollectorRegistry, Counter, Summary, generate_latest


class WebhookMetrics:
    """Prometheus metrics for one application instance.

    Each instance owns its registry so that several apps (e.g. in tests) can
    exist in the same process.
    """

    def __init__(self):
        self.registry = CollectorRegistry()
        self.ping_requests = Counter(
            "http_ping_requests_total",
            "Count of all HTTP requests on '/ping'",
            ["code", "method"],
            registry=self.registry,
        )
        self.request_duration = Summary(
            "http_request_duration_milliseconds",
            "The HTTP request duration in milliseconds",
            ["api_method"],
            registry=self.registry,
        )
        self.admission_requests = Counter(
            "admission_requests_total",
            "Count of admission decisions by outcome",
            ["api_method", "allowed"],
            registry=self.registry,
        )

    def record_decision(self, api_method: str, allowed: bool):
        self.admission_requests.labels(
            api_method=api_method, allowed=str(allowed).lower()
        ).inc()

    def export(self) -> bytes:
        return generate_latest(self.registry)


def timed(api_method):
    """Record how long a view takes in the request duration summary."""

    def _outer(func):
        @functools.wraps(func)
        def _inner(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed = (time.perf_counter() - start) * 1000
                current_app.metrics.request_duration.labels(
                    api_method=api_method
                ).observe(elapsed)

        return _inner

    return _outer
