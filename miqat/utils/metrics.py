# miqat/utils/metrics.py
from __future__ import annotations

"""
Prometheus metrics shared by the app factory and the API blueprint.

Names are stable; dashboards key on them.
"""

from typing import Final, Iterable

from prometheus_client import Counter, Gauge, Histogram

__all__ = [
    "MET_REQUESTS",
    "MET_SCHEDULES",
    "MET_WARNINGS",
    "GAUGE_APP_UP",
    "REQ_LATENCY",
    "seed",
]

MET_REQUESTS: Final = Counter("miqat_api_requests_total", "API requests", ["route"])
MET_SCHEDULES: Final = Counter("miqat_schedules_built_total", "Prayer schedules computed", ["method"])
MET_WARNINGS: Final = Counter("miqat_warning_total", "Non-fatal warnings", ["kind"])
GAUGE_APP_UP: Final = Gauge("miqat_app_up", "1 if app is running")
REQ_LATENCY: Final = Histogram("miqat_request_seconds", "API request latency", ["route"])


def seed(routes: Iterable[str], methods: Iterable[str]) -> None:
    """Create zero-valued series so they show up before the first request."""
    for route in routes:
        MET_REQUESTS.labels(route=route).inc(0)
        REQ_LATENCY.labels(route=route).observe(0.0)
    for method in methods:
        MET_SCHEDULES.labels(method=method).inc(0)
    MET_WARNINGS.labels(kind="polar_missing_event").inc(0)
    GAUGE_APP_UP.set(1.0)
