"""
RaidGuard - API Configuration
=============================

Centralized configuration for the FastAPI query service.
"""

from dataclasses import dataclass
from typing import Optional
import os

from raidguard.core.constants import API_PORT


@dataclass(frozen=True)
class APIConfig:
    """API configuration settings."""

    enabled: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = API_PORT
    debug: bool = False

    # CORS
    cors_origins: tuple = ("*",)


def load_api_config() -> APIConfig:
    """Load API configuration from environment."""
    origins = os.getenv("RAIDGUARD_API_CORS_ORIGINS", "*")
    return APIConfig(
        enabled=os.getenv("RAIDGUARD_API_ENABLED", "false").lower() == "true",
        host=os.getenv("RAIDGUARD_API_HOST", "127.0.0.1"),
        port=int(os.getenv("RAIDGUARD_API_PORT", str(API_PORT))),
        debug=os.getenv("RAIDGUARD_API_DEBUG", "false").lower() == "true",
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


# Singleton instance
_config: Optional[APIConfig] = None


def get_api_config() -> APIConfig:
    """Get the API configuration singleton."""
    global _config
    if _config is None:
        _config = load_api_config()
    return _config


def reset_api_config() -> None:
    """Drop the cached config (tests)."""
    global _config
    _config = None


__all__ = ["APIConfig", "get_api_config", "load_api_config", "reset_api_config"]
