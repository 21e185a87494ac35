"""
RelayBot - API Configuration
============================

Centralized configuration for the HTTP server.
"""

from dataclasses import dataclass
from typing import Optional
import os


@dataclass(frozen=True)
class APIConfig:
    """API configuration settings."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False


def load_api_config() -> APIConfig:
    """Load API configuration from environment."""
    return APIConfig(
        host=os.getenv("RELAY_API_HOST", "0.0.0.0"),
        port=int(os.getenv("RELAY_API_PORT", "8080")),
        debug=os.getenv("RELAY_API_DEBUG", "false").lower() == "true",
    )


# Singleton instance
_config: Optional[APIConfig] = None


def get_api_config() -> APIConfig:
    """Get the API configuration singleton."""
    global _config
    if _config is None:
        _config = load_api_config()
    return _config


__all__ = ["APIConfig", "get_api_config", "load_api_config"]
