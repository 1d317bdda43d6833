"""
rediscache Configuration Settings

This module contains the configuration defaults for the cache client.
Every value can be overridden through the environment.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Client configuration settings."""

    # Server endpoint
    HOST: str = os.environ.get("REDIS_CACHE_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("REDIS_CACHE_PORT", "6379"))

    # Reconnection policy: minimum time between two failed connect attempts
    RECONNECTION_DELAY_MS: int = int(
        os.environ.get("REDIS_CACHE_RECONNECTION_DELAY_MS", "1000")
    )

    # Connection settings
    READ_BUFFER_SIZE: int = 4096

    # Logging settings
    DEBUG: bool = os.environ.get("REDIS_CACHE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("REDIS_CACHE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
