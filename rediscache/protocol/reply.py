"""
Protocol Reply Definitions

This module defines the tagged reply value returned by every command.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Iterable


class ReplyType(Enum):
    """Enumeration of RESP reply types."""
    STATUS = auto()
    INTEGER = auto()
    STRING = auto()
    ARRAY = auto()
    NIL = auto()
    ERROR = auto()


@dataclass(frozen=True)
class Reply:
    """
    Represents a single reply read from the server.

    Attributes:
        type: The reply tag
        value: Payload for the tag:
            STATUS -> str, ERROR -> str, INTEGER -> int,
            STRING -> bytes, ARRAY -> list of Reply, NIL -> None
    """
    type: ReplyType
    value: Any = None

    @classmethod
    def status(cls, message: str) -> "Reply":
        """Create a status reply (e.g. OK)."""
        return cls(type=ReplyType.STATUS, value=message)

    @classmethod
    def error(cls, message: str) -> "Reply":
        """Create an error reply."""
        return cls(type=ReplyType.ERROR, value=message)

    @classmethod
    def integer(cls, number: int) -> "Reply":
        """Create an integer reply."""
        return cls(type=ReplyType.INTEGER, value=number)

    @classmethod
    def string(cls, data: bytes) -> "Reply":
        """Create a bulk string reply."""
        return cls(type=ReplyType.STRING, value=data)

    @classmethod
    def array(cls, items: Iterable["Reply"]) -> "Reply":
        """Create an array reply."""
        return cls(type=ReplyType.ARRAY, value=list(items))

    @classmethod
    def nil(cls) -> "Reply":
        """Create a nil reply."""
        return cls(type=ReplyType.NIL)

    @property
    def is_error(self) -> bool:
        return self.type == ReplyType.ERROR
