"""
Redis Cache Module

Blocking, thread-safe cache backed by a single connection to a Redis server.

Reconnection strategy:
1. If a (re)connection attempt fails, try again on the next operation, but
   not before reconnection_delay_ms have passed since the failed attempt.
2. If an operation fails because of a communication or protocol error, drop
   the connection and reconnect on the next operation without any delay.

This keeps an unreachable server from being hammered with connect attempts
while still recovering quickly from network glitches.
"""

import logging
import threading
import time
from typing import Callable, ContextManager, FrozenSet, Optional

from ..config.settings import Settings, settings as default_settings
from ..exceptions import CacheStateError, RedisConnectionError, RedisProtocolError
from ..network.connection import RedisConnection, connect as default_connect
from ..protocol.codec import Argument
from ..protocol.reply import Reply, ReplyType
from .interface import CacheInterface, CacheResult, Callback, Key

logger = logging.getLogger(__name__)

# Expected reply types per command
GET_REPLY_TYPES: FrozenSet[ReplyType] = frozenset({ReplyType.STRING, ReplyType.NIL})
SET_REPLY_TYPES: FrozenSet[ReplyType] = frozenset({ReplyType.STATUS})
DEL_REPLY_TYPES: FrozenSet[ReplyType] = frozenset({ReplyType.INTEGER})
FLUSHALL_REPLY_TYPES: FrozenSet[ReplyType] = frozenset({ReplyType.STATUS})


def monotonic_ms() -> float:
    """Default clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000


class RedisCache(CacheInterface):
    """
    Cache backed by a Redis server, using one blocking connection.

    Every public operation holds a single lock for its whole duration
    (reconnect if needed, send the command, read the reply), so the
    connection is never used by two threads at once.

    Failures never raise to the caller:
    - get() reports NOT_FOUND, exactly as for a real miss
    - put() and delete() silently do nothing
    - flush_all() returns False
    They are only visible through is_healthy() and the log. Using the cache
    before start_up() or after shut_down() raises CacheStateError.

    Usage:
        cache = RedisCache('127.0.0.1', 6379, reconnection_delay_ms=1000)
        cache.start_up()
        cache.put(b"key", b"value")
        cache.get(b"key", lambda result: print(result.value))
        cache.shut_down()

    Attributes:
        host: Server host name or address
        port: Server port number
        reconnection_delay_ms: Minimum delay between failed connect attempts
    """

    def __init__(
            self,
            host: str,
            port: int,
            reconnection_delay_ms: int,
            lock: Optional[ContextManager] = None,
            clock: Optional[Callable[[], float]] = None,
            connect: Optional[Callable[[str, int], RedisConnection]] = None,
    ):
        """
        Initialize the cache. No connection is made until start_up().

        Args:
            host: Server host
            port: Server port
            reconnection_delay_ms: Backoff window after a failed connect
            lock: Exclusive lock guarding the connection (default threading.Lock)
            clock: Zero-argument callable returning monotonic milliseconds
            connect: Transport factory, connect(host, port) -> RedisConnection
        """
        self.host = host
        self.port = port
        self.reconnection_delay_ms = reconnection_delay_ms

        self._lock = lock if lock is not None else threading.Lock()
        self._clock = clock if clock is not None else monotonic_ms
        self._connect = connect if connect is not None else default_connect

        # Guarded by self._lock
        self._redis: Optional[RedisConnection] = None
        self._next_reconnect_at_ms: float = 0
        self._is_started_up = False
        self._is_shut_down = False

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **kwargs) -> "RedisCache":
        """Build a cache from a Settings instance (default: global settings)."""
        config = config if config is not None else default_settings
        return cls(config.HOST, config.PORT, config.RECONNECTION_DELAY_MS, **kwargs)

    @staticmethod
    def format_name() -> str:
        return "RedisCache"

    def name(self) -> str:
        return self.format_name()

    def is_blocking(self) -> bool:
        return True

    def start_up(self) -> None:
        """
        Enable the cache and try to connect.

        A failed initial connection is logged, not raised; the next operation
        after reconnection_delay_ms will try again.

        Raises:
            CacheStateError: The cache has already been shut down
        """
        with self._lock:
            if self._is_shut_down:
                raise CacheStateError("RedisCache cannot be restarted after shut_down()")
            if self._is_started_up:
                logger.warning("RedisCache.start_up() called more than once")
                return

            self._is_started_up = True
            logger.info(f"Starting RedisCache for {self.host}:{self.port}")
            self._reconnect()

    def shut_down(self) -> None:
        """Close the connection for good. Safe to call more than once."""
        with self._lock:
            if not self._is_shut_down:
                logger.info(f"Shutting down RedisCache for {self.host}:{self.port}")
            self._is_started_up = False
            self._is_shut_down = True
            self._free_connection()

    def is_healthy(self) -> bool:
        """True if started up and currently connected. Never connects."""
        with self._lock:
            return self._is_healthy_lock_held()

    def get(self, key: Key, callback: Callback) -> None:
        """
        Look up key and report the result to callback.

        A broken connection is reported as NOT_FOUND, the same as a miss.
        The callback runs once, after the lock has been released.
        """
        result = CacheResult.not_found()
        with self._lock:
            if self._ensure_connection():
                reply = self._redis_command(GET_REPLY_TYPES, "GET", key)
                if reply is not None and reply.type == ReplyType.STRING:
                    result = CacheResult.found(reply.value)
        callback(result)

    def put(self, key: Key, value: bytes) -> None:
        """Store value under key. Failures are only logged."""
        with self._lock:
            if self._ensure_connection():
                self._redis_command(SET_REPLY_TYPES, "SET", key, value)

    def delete(self, key: Key) -> None:
        """Delete key. Deleting a missing key is not an error."""
        with self._lock:
            if self._ensure_connection():
                self._redis_command(DEL_REPLY_TYPES, "DEL", key)

    def flush_all(self) -> bool:
        """
        Remove ALL keys from the server. Meant for tests and maintenance.

        Returns:
            True if the server acknowledged the flush
        """
        with self._lock:
            if not self._ensure_connection():
                return False
            return self._redis_command(FLUSHALL_REPLY_TYPES, "FLUSHALL") is not None

    def __enter__(self) -> "RedisCache":
        self.start_up()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shut_down()

    # ------------------------------------------------------------------
    # Internals; every method below expects self._lock to be held.
    # ------------------------------------------------------------------

    def _is_healthy_lock_held(self) -> bool:
        return self._is_started_up and self._redis is not None

    def _check_started_up(self) -> None:
        if self._is_shut_down:
            raise CacheStateError("RedisCache has been shut down")
        if not self._is_started_up:
            raise CacheStateError("RedisCache is not started up")

    def _ensure_connection(self) -> bool:
        """
        Make sure a connection is available, reconnecting if allowed.

        Returns:
            True if connected; False if disconnected and the backoff window
            is still open or the reconnect attempt failed.
        """
        self._check_started_up()
        if self._redis is not None:
            return True

        if self._clock() < self._next_reconnect_at_ms:
            logger.debug(f"Not reconnecting to {self.host}:{self.port} yet")
            return False

        return self._reconnect()

    def _reconnect(self) -> bool:
        self._free_connection()
        try:
            self._redis = self._connect(self.host, self.port)
        except RedisConnectionError as e:
            self._next_reconnect_at_ms = self._clock() + self.reconnection_delay_ms
            logger.error(f"Error connecting to Redis at {self.host}:{self.port}: {e}")
            return False

        logger.info(f"Connected to Redis at {self.host}:{self.port}")
        return True

    def _free_connection(self) -> None:
        if self._redis is None:
            return

        redis, self._redis = self._redis, None
        try:
            redis.close()
        except OSError as e:
            logger.debug(f"Error closing connection to {self.host}:{self.port}: {e}")

    def _redis_command(
            self,
            expected_types: FrozenSet[ReplyType],
            *args: Argument,
    ) -> Optional[Reply]:
        """
        Send one command and validate the reply.

        On a communication error, a protocol error, an error reply or a reply
        of an unexpected type, the connection is dropped (the next operation
        reconnects without delay) and None is returned.
        """
        command = args[0]
        try:
            reply = self._redis.send_command(*args)
        except RedisConnectionError as e:
            logger.error(f"Communication error during {command}: {e}")
            self._free_connection()
            return None
        except RedisProtocolError as e:
            logger.error(f"Protocol error during {command}: {e}")
            self._free_connection()
            return None

        if not self._validate_reply(reply, expected_types, command):
            self._free_connection()
            return None

        logger.debug(f"{command} -> {reply.type.name}")
        return reply

    @staticmethod
    def _validate_reply(
            reply: Reply,
            expected_types: FrozenSet[ReplyType],
            command: str,
    ) -> bool:
        if reply.is_error:
            # TODO: an error reply such as WRONGTYPE proves the connection is
            # fine; consider failing the operation without reconnecting.
            logger.error(f"Redis returned an error for {command}: {reply.value}")
            return False

        if reply.type not in expected_types:
            expected = ", ".join(sorted(t.name for t in expected_types))
            logger.warning(
                f"Unexpected reply type {reply.type.name} for {command}, expected {expected}"
            )
            return False

        return True
