"""
Blocking TCP Connection Module

A single synchronous connection to a Redis-compatible server. One command is
written, then exactly one reply is read back before the call returns.

The connection is not thread-safe on its own; RedisCache serializes access.
"""

import logging
import socket
from typing import Optional

from ..config.settings import settings
from ..exceptions import RedisConnectionError
from ..protocol.codec import Argument, RespCodec
from ..protocol.reply import Reply

logger = logging.getLogger(__name__)


class RedisConnection:
    """
    Synchronous connection to a Redis-compatible server.

    Usage:
        conn = connect('127.0.0.1', 6379)
        reply = conn.send_command("GET", "key")
        conn.close()

    Attributes:
        host: Server host name or address
        port: Server port number
    """

    def __init__(self, sock: socket.socket, host: str, port: int, codec: Optional[RespCodec] = None):
        self.host = host
        self.port = port
        self.codec = codec if codec is not None else RespCodec()
        self._socket: Optional[socket.socket] = sock
        self._reader = sock.makefile("rb", buffering=settings.READ_BUFFER_SIZE)

    @property
    def is_closed(self) -> bool:
        return self._socket is None

    def send_command(self, *args: Argument) -> Reply:
        """
        Send one command and wait for its reply.

        Args:
            *args: Command name followed by its arguments

        Returns:
            The reply read from the server (possibly an ERROR reply).

        Raises:
            RedisConnectionError: Socket failure or connection already closed
            RedisProtocolError: Malformed reply
        """
        if self._socket is None:
            raise RedisConnectionError("connection is closed")

        request = self.codec.encode_command(*args)
        try:
            self._socket.sendall(request)
            return self.codec.read_reply(self._reader)
        except OSError as e:
            raise RedisConnectionError(f"I/O error talking to {self.host}:{self.port}: {e}") from e

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._socket is None:
            return

        sock, self._socket = self._socket, None
        try:
            self._reader.close()
        finally:
            try:
                sock.close()
            except OSError as e:
                logger.debug(f"Error closing socket to {self.host}:{self.port}: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def connect(host: str, port: int) -> RedisConnection:
    """
    Open a new connection to the server.

    No connect timeout is applied; the call blocks until the OS gives up.

    Raises:
        RedisConnectionError: The server could not be reached
    """
    try:
        sock = socket.create_connection((host, port))
    except OSError as e:
        raise RedisConnectionError(f"cannot connect to {host}:{port}: {e}") from e

    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        connection = RedisConnection(sock, host, port)
    except OSError as e:
        sock.close()
        raise RedisConnectionError(f"cannot set up connection to {host}:{port}: {e}") from e

    logger.debug(f"Connected to {host}:{port}")
    return connection
