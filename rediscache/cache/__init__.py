"""Cache module for rediscache."""

from .interface import CacheInterface, CacheResult, Callback, KeyState
from .redis_cache import RedisCache

__all__ = ["CacheInterface", "CacheResult", "Callback", "KeyState", "RedisCache"]
