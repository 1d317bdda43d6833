"""
Generic Cache Interface

Defines the contract every cache backend implements, together with the
result type handed to get() callbacks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

Key = Union[str, bytes]


class KeyState(Enum):
    """Outcome of a cache lookup."""
    AVAILABLE = "available"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CacheResult:
    """
    Result passed to a get() callback.

    Attributes:
        state: AVAILABLE if the value was found, NOT_FOUND otherwise
        value: The raw bytes stored under the key (None when not found)
    """
    state: KeyState
    value: Optional[bytes] = None

    @classmethod
    def found(cls, value: bytes) -> "CacheResult":
        return cls(state=KeyState.AVAILABLE, value=value)

    @classmethod
    def not_found(cls) -> "CacheResult":
        return cls(state=KeyState.NOT_FOUND)

    @property
    def is_found(self) -> bool:
        return self.state == KeyState.AVAILABLE


Callback = Callable[[CacheResult], None]


class CacheInterface(ABC):
    """
    Abstract cache.

    A cache is advisory: lookups may miss for any reason and writes may be
    dropped. Callers must never treat it as a source of truth.
    """

    @abstractmethod
    def start_up(self) -> None:
        """Make the cache ready for use."""

    @abstractmethod
    def shut_down(self) -> None:
        """Stop the cache. Further operations are rejected."""

    @abstractmethod
    def get(self, key: Key, callback: Callback) -> None:
        """Look up key and invoke callback exactly once with the result."""

    @abstractmethod
    def put(self, key: Key, value: bytes) -> None:
        """Store value under key. Best-effort."""

    @abstractmethod
    def delete(self, key: Key) -> None:
        """Remove key. Best-effort."""

    @abstractmethod
    def name(self) -> str:
        """Human readable backend name."""

    @abstractmethod
    def is_blocking(self) -> bool:
        """True if get() always calls its callback before returning."""

    @abstractmethod
    def is_healthy(self) -> bool:
        """Point-in-time health of the backend."""
