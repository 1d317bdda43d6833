"""Network module for rediscache."""

from .connection import RedisConnection, connect

__all__ = ["RedisConnection", "connect"]
