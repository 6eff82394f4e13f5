"""
Monitoring module for metrics and error tracking.
"""

from .prometheus_metrics import DigestMetrics, start_metrics_server
from .sentry_config import setup_sentry

__all__ = [
    "DigestMetrics",
    "start_metrics_server",
    "setup_sentry",
]
