"""
RaidGuard - Utilities Package
=============================

Async helpers and metrics shared by the engine and the API.
"""

from .async_utils import PeriodicTask, create_safe_task, gather_with_logging
from .metrics import MetricsCollector


__all__ = [
    "PeriodicTask",
    "create_safe_task",
    "gather_with_logging",
    "MetricsCollector",
]
