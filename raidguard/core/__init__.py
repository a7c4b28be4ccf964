"""
RaidGuard - Core Package
========================

Configuration, logging, constants and the clock abstraction.

DESIGN:
    Core modules are singletons or global instances so every component
    shares the same state:
    - get_config() returns the same Config instance
    - logger is a global TreeLogger instance
"""

from .clock import Clock, ManualClock, SystemClock
from .config import Config, ConfigValidationError, get_config
from .logger import logger, TreeLogger


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Clock
    "Clock",
    "ManualClock",
    "SystemClock",
    # Config
    "Config",
    "ConfigValidationError",
    "get_config",
    # Logger
    "logger",
    "TreeLogger",
]
