"""Exception hierarchy for rediscache."""


class RedisCacheError(Exception):
    """Base exception for all rediscache errors."""


class RedisConnectionError(RedisCacheError):
    """Raised when the server cannot be reached or the socket fails mid-command."""


class RedisProtocolError(RedisCacheError):
    """Raised when the server sends bytes that are not valid RESP."""


class CacheStateError(RedisCacheError):
    """Raised when the cache is used before start_up() or after shut_down()."""
