"""
RESP Codec Module

This module handles encoding of commands and parsing of replies for the
Redis serialization protocol (RESP2).

- encode_command(): Format a command and its arguments as a RESP request
- read_reply(): Parse one reply from a binary stream into a Reply object
- encode_reply(): Format a Reply object as RESP (used by servers and tests)
"""

from typing import BinaryIO, List, Union

from ..exceptions import RedisConnectionError, RedisProtocolError
from .reply import Reply, ReplyType

CRLF = b"\r\n"

Argument = Union[str, bytes, int]


class RespCodec:
    """
    Codec for the Redis serialization protocol.

    Protocol Format:
        Request:  *<argc>\\r\\n followed by one $<len>\\r\\n<bytes>\\r\\n per argument
        Reply:    one of
            +<status>\\r\\n         -> STATUS
            -<message>\\r\\n        -> ERROR
            :<number>\\r\\n         -> INTEGER
            $<len>\\r\\n<bytes>\\r\\n -> STRING ($-1 -> NIL)
            *<count>\\r\\n<replies> -> ARRAY  (*-1 -> NIL)
    """

    def __init__(self, encoding: str = "utf-8"):
        """Initialize the codec with the encoding used for str arguments."""
        self.encoding = encoding

    def encode_command(self, *args: Argument) -> bytes:
        """
        Encode a command as a RESP array of bulk strings.

        Args:
            *args: Command name followed by its arguments

        Returns:
            The request bytes, ready to be written to the socket.

        Examples:
            >>> RespCodec().encode_command("GET", "key")
            b'*2\\r\\n$3\\r\\nGET\\r\\n$3\\r\\nkey\\r\\n'
        """
        if not args:
            raise ValueError("a command needs at least a name")

        parts = [b"*%d\r\n" % len(args)]
        for arg in args:
            data = self._to_bytes(arg)
            parts.append(b"$%d\r\n" % len(data))
            parts.append(data)
            parts.append(CRLF)
        return b"".join(parts)

    def read_reply(self, stream: BinaryIO) -> Reply:
        """
        Read exactly one reply from a buffered binary stream.

        Args:
            stream: Object with readline() and read(n), e.g. socket.makefile('rb')

        Returns:
            The parsed Reply.

        Raises:
            RedisConnectionError: The stream ended before a full reply arrived
            RedisProtocolError: The bytes received are not valid RESP
        """
        line = self._read_line(stream)
        prefix, body = line[:1], line[1:]

        if prefix == b"+":
            return Reply.status(body.decode(self.encoding, errors="replace"))
        if prefix == b"-":
            return Reply.error(body.decode(self.encoding, errors="replace"))
        if prefix == b":":
            return Reply.integer(self._parse_int(body))
        if prefix == b"$":
            length = self._parse_int(body)
            if length == -1:
                return Reply.nil()
            if length < 0:
                raise RedisProtocolError(f"invalid bulk length: {length}")
            data = self._read_exact(stream, length + 2)
            if data[-2:] != CRLF:
                raise RedisProtocolError("bulk string not terminated by CRLF")
            return Reply.string(data[:-2])
        if prefix == b"*":
            count = self._parse_int(body)
            if count == -1:
                return Reply.nil()
            if count < 0:
                raise RedisProtocolError(f"invalid array length: {count}")
            return Reply.array(self.read_reply(stream) for _ in range(count))

        raise RedisProtocolError(f"unknown reply prefix: {prefix!r}")

    def encode_reply(self, reply: Reply) -> bytes:
        """
        Format a Reply object as RESP.

        Examples:
            >>> RespCodec().encode_reply(Reply.status("OK"))
            b'+OK\\r\\n'
            >>> RespCodec().encode_reply(Reply.nil())
            b'$-1\\r\\n'
        """
        if reply.type == ReplyType.STATUS:
            return b"+" + reply.value.encode(self.encoding) + CRLF
        if reply.type == ReplyType.ERROR:
            return b"-" + reply.value.encode(self.encoding) + CRLF
        if reply.type == ReplyType.INTEGER:
            return b":%d\r\n" % reply.value
        if reply.type == ReplyType.STRING:
            return b"$%d\r\n" % len(reply.value) + reply.value + CRLF
        if reply.type == ReplyType.NIL:
            return b"$-1\r\n"

        items: List[bytes] = [self.encode_reply(item) for item in reply.value]
        return b"*%d\r\n" % len(items) + b"".join(items)

    def _to_bytes(self, arg: Argument) -> bytes:
        if isinstance(arg, bytes):
            return arg
        if isinstance(arg, bool):
            raise TypeError("bool is not a valid command argument")
        if isinstance(arg, int):
            return str(arg).encode("ascii")
        if isinstance(arg, str):
            return arg.encode(self.encoding)
        raise TypeError(f"unsupported argument type: {type(arg).__name__}")

    @staticmethod
    def _read_line(stream: BinaryIO) -> bytes:
        line = stream.readline()
        if not line:
            raise RedisConnectionError("connection closed by server")
        if not line.endswith(CRLF):
            if line.endswith(b"\n"):
                raise RedisProtocolError("reply line not terminated by CRLF")
            raise RedisConnectionError("connection closed mid-reply")
        return line[:-2]

    @staticmethod
    def _read_exact(stream: BinaryIO, size: int) -> bytes:
        data = stream.read(size)
        if data is None or len(data) < size:
            raise RedisConnectionError("connection closed mid-reply")
        return data

    @staticmethod
    def _parse_int(body: bytes) -> int:
        try:
            return int(body)
        except ValueError:
            raise RedisProtocolError(f"invalid integer: {body!r}") from None
