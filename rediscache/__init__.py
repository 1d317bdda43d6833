"""
rediscache: Blocking Redis Cache Client

A thread-safe cache client that talks to a Redis-compatible server over a
single TCP connection, reconnecting automatically after failures.
"""

from .cache.interface import CacheInterface, CacheResult, KeyState
from .cache.redis_cache import RedisCache

__version__ = "1.0.0"

__all__ = [
    "CacheInterface",
    "CacheResult",
    "KeyState",
    "RedisCache",
]
