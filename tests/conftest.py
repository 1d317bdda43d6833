"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import socket
import socketserver
import threading
import time
from collections import deque
from contextlib import closing
from typing import Dict, Generator, List, Optional

import pytest

from rediscache.cache.redis_cache import RedisCache
from rediscache.exceptions import RedisConnectionError, RedisProtocolError
from rediscache.protocol.codec import RespCodec
from rediscache.protocol.reply import Reply

HOST = "127.0.0.1"
PORT = 6379
RECONNECTION_DELAY_MS = 1000


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


def _as_bytes(value) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def execute_command(data: Dict[bytes, bytes], args: List[bytes]) -> Reply:
    """Run one command against an in-memory dict, the way the server would."""
    name = _as_bytes(args[0]).upper()
    args = [_as_bytes(arg) for arg in args[1:]]

    if name == b"GET" and len(args) == 1:
        value = data.get(args[0])
        return Reply.string(value) if value is not None else Reply.nil()
    if name == b"SET" and len(args) == 2:
        data[args[0]] = args[1]
        return Reply.status("OK")
    if name == b"DEL" and args:
        return Reply.integer(sum(1 for key in args if data.pop(key, None) is not None))
    if name == b"FLUSHALL" and not args:
        data.clear()
        return Reply.status("OK")
    return Reply.error(f"ERR unknown command or wrong number of arguments for '{name.decode()}'")


# ============================================================================
# Clock and Lock Fixtures
# ============================================================================

class FakeClock:
    """Manually advanced monotonic clock, in milliseconds."""

    def __init__(self, start_ms: float = 10_000):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


class OwnedLock:
    """threading.Lock that remembers which thread holds it."""

    def __init__(self):
        self._lock = threading.Lock()
        self.owner: Optional[int] = None

    def __enter__(self):
        self._lock.acquire()
        self.owner = threading.get_ident()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.owner = None
        self._lock.release()

    def held_by_current_thread(self) -> bool:
        return self.owner == threading.get_ident()


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock starting at 10 seconds."""
    return FakeClock()


# ============================================================================
# Fake Transport Fixtures
# ============================================================================

class FakeConnection:
    """Connection handed out by FakeTransport.connect()."""

    def __init__(self, transport: "FakeTransport"):
        self.transport = transport
        self.closed = False

    def send_command(self, *args) -> Reply:
        return self.transport.handle_command(self, args)

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    """
    In-memory stand-in for the network layer.

    Counts connect attempts, records every command, lets tests script the
    next outcomes (a Reply to return or an exception to raise) and checks
    that the cache lock is held whenever the transport is touched.
    """

    def __init__(self, lock: Optional[OwnedLock] = None):
        self.lock = lock
        self.data: Dict[bytes, bytes] = {}
        self.refuse_connections = False
        self.connect_calls = 0
        self.connections: List[FakeConnection] = []
        self.commands: List[tuple] = []
        self.scripted = deque()
        self.command_delay = 0.0

        self.active = 0
        self.max_active = 0
        self.lock_violations = 0

    def connect(self, host: str, port: int) -> FakeConnection:
        self._check_lock()
        self.connect_calls += 1
        if self.refuse_connections:
            raise RedisConnectionError(f"cannot connect to {host}:{port}: connection refused")
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection

    def handle_command(self, connection: FakeConnection, args: tuple) -> Reply:
        self._check_lock()
        if connection.closed:
            raise RedisConnectionError("connection is closed")

        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            self.commands.append(args)
            if self.command_delay:
                time.sleep(self.command_delay)
            if self.scripted:
                outcome = self.scripted.popleft()
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
            return execute_command(self.data, list(args))
        finally:
            self.active -= 1

    def fail_next_command(self, error: Exception = None) -> None:
        self.scripted.append(error if error is not None else RedisConnectionError("connection reset by peer"))

    def reply_next_command(self, reply: Reply) -> None:
        self.scripted.append(reply)

    @property
    def command_names(self) -> List[str]:
        return [args[0] for args in self.commands]

    @property
    def live_connection(self) -> Optional[FakeConnection]:
        if self.connections and not self.connections[-1].closed:
            return self.connections[-1]
        return None

    def _check_lock(self) -> None:
        if self.lock is not None and not self.lock.held_by_current_thread():
            self.lock_violations += 1


@pytest.fixture
def transport() -> FakeTransport:
    """Create a fake transport guarded by an ownership-tracking lock."""
    return FakeTransport(lock=OwnedLock())


@pytest.fixture
def cache(transport: FakeTransport, clock: FakeClock) -> RedisCache:
    """Create a RedisCache wired to the fake transport (not started up)."""
    return RedisCache(
        HOST,
        PORT,
        RECONNECTION_DELAY_MS,
        lock=transport.lock,
        clock=clock,
        connect=transport.connect,
    )


@pytest.fixture
def started_cache(cache: RedisCache, transport: FakeTransport) -> Generator[RedisCache, None, None]:
    """Create a RedisCache that is started up and connected."""
    cache.start_up()
    assert transport.connect_calls == 1
    yield cache
    cache.shut_down()


# ============================================================================
# Server Fixtures
# ============================================================================

class RespRequestHandler(socketserver.StreamRequestHandler):
    """Serves RESP commands from one client until it disconnects."""

    def setup(self):
        super().setup()
        self.server.track(self.request)

    def handle(self):
        codec = RespCodec()
        while True:
            try:
                request = codec.read_reply(self.rfile)
            except (RedisConnectionError, RedisProtocolError, OSError):
                break

            args = [item.value for item in request.value]
            with self.server.data_lock:
                reply = execute_command(self.server.data, args)
            try:
                self.wfile.write(codec.encode_reply(reply))
            except OSError:
                break


class FakeRedisServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """
    Minimal Redis-compatible server backed by a dict.

    Supports GET, SET, DEL and FLUSHALL, which is all RedisCache sends.
    """

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, host: str = HOST, port: int = 0):
        super().__init__((host, port), RespRequestHandler)
        self.data: Dict[bytes, bytes] = {}
        self.data_lock = threading.Lock()
        self._clients: List[socket.socket] = []
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server_address[1]

    def track(self, sock: socket.socket) -> None:
        with self.data_lock:
            self._clients.append(sock)

    def start(self) -> None:
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)
        self._thread.start()

    def drop_clients(self) -> None:
        """Forcibly close every accepted client connection."""
        with self.data_lock:
            clients, self._clients = self._clients, []
        for sock in clients:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()

    def stop(self) -> None:
        self.shutdown()
        self.server_close()
        self.drop_clients()
        if self._thread is not None:
            self._thread.join(timeout=5)


@pytest.fixture
def server() -> Generator[FakeRedisServer, None, None]:
    """
    Start a fake Redis server on a random free port.

    This fixture:
    1. Binds the server to 127.0.0.1 on an OS-assigned port
    2. Serves it from a background thread
    3. Yields the server for testing
    4. Stops it and closes all client connections afterwards
    """
    srv = FakeRedisServer()
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def live_cache(server: FakeRedisServer) -> Generator[RedisCache, None, None]:
    """Create a started RedisCache connected to the fake server."""
    cache = RedisCache(HOST, server.port, reconnection_delay_ms=50)
    cache.start_up()
    yield cache
    cache.shut_down()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
